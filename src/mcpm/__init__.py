# mcpm - MCP server registry and cross-agent sync
# ABOUTME: Version information
__version__ = "0.1.0"

# ABOUTME: Export core data models and errors
from mcpm.errors import (
    AgentConfigError,
    ConfigParseError,
    McpmError,
    RegistryError,
    UnknownAgentError,
    VaultError,
)
from mcpm.models import (
    AgentMcpConfig,
    AgentParser,
    ConnectorRecord,
    CredentialField,
    ParsedConfig,
    ReadStatus,
    Registry,
    RegistryServer,
    VaultRef,
)

# ABOUTME: Export the engine entry points
from mcpm.agents import detect_installed_agents, get_agent
from mcpm.detect import parse_config
from mcpm.parsers import create_parser
from mcpm.registry import add_server, load_registry, remove_server, save_registry
from mcpm.sync import detect_drift, detect_duplicates, sync_registry_to_agents

__all__ = [
    "__version__",
    "McpmError",
    "ConfigParseError",
    "AgentConfigError",
    "RegistryError",
    "VaultError",
    "UnknownAgentError",
    "AgentMcpConfig",
    "AgentParser",
    "ConnectorRecord",
    "CredentialField",
    "ParsedConfig",
    "ReadStatus",
    "Registry",
    "RegistryServer",
    "VaultRef",
    "get_agent",
    "detect_installed_agents",
    "parse_config",
    "create_parser",
    "load_registry",
    "save_registry",
    "add_server",
    "remove_server",
    "sync_registry_to_agents",
    "detect_duplicates",
    "detect_drift",
]
