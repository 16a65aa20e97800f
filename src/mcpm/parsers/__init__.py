# Agent parser registry
from pathlib import Path
from typing import Callable, Iterable

from mcpm.agents import detect_installed_agents, get_agent
from mcpm.errors import AgentConfigError
from mcpm.models import AgentParser
from mcpm.parsers.base import BaseParser, transform_server
from mcpm.parsers.json_parser import JsonParser
from mcpm.parsers.toml_parser import TomlParser
from mcpm.parsers.xml_parser import XmlParser
from mcpm.parsers.yaml_parser import YamlParser

# Parser class per config format
PARSERS_BY_FORMAT: dict[str, type[BaseParser]] = {
    "json": JsonParser,
    "yaml": YamlParser,
    "toml": TomlParser,
    "xml": XmlParser,
}

# ABOUTME: Signature shared by create_parser and test doubles
ParserFactory = Callable[..., AgentParser]

__all__ = [
    "AgentParser",
    "BaseParser",
    "JsonParser",
    "YamlParser",
    "TomlParser",
    "XmlParser",
    "PARSERS_BY_FORMAT",
    "ParserFactory",
    "create_parser",
    "create_parsers",
    "get_installed_parsers",
    "transform_server",
]


def create_parser(
    agent_id: str,
    config_path: Path | None = None,
    project_dir: Path | None = None,
    backup_dir: Path | None = None,
) -> AgentParser:
    """Create the parser for an agent's config file.

    ABOUTME: Format comes from the agent profile
    ABOUTME: project_dir targets the agent's project-scoped file instead of the global one

    Args:
        agent_id: Agent identifier, e.g. "cursor"
        config_path: Explicit file path (overrides both global and project paths)
        project_dir: Project root for project-scoped configs
        backup_dir: Backup directory override

    Raises:
        UnknownAgentError: If agent_id is not in the catalog
        AgentConfigError: If project_dir is given for an agent without project scope
    """
    profile = get_agent(agent_id)
    if config_path is None and project_dir is not None:
        if profile.project_path is None:
            raise AgentConfigError(f"{profile.display_name} does not support project-scope config")
        config_path = project_dir / profile.project_path
    parser_cls = PARSERS_BY_FORMAT[profile.format]
    return parser_cls(profile, config_path=config_path, backup_dir=backup_dir)


def create_parsers(agent_ids: Iterable[str]) -> dict[str, AgentParser]:
    return {agent_id: create_parser(agent_id) for agent_id in agent_ids}


def get_installed_parsers() -> list[AgentParser]:
    """Parsers for every agent whose config directory exists."""
    return [create_parser(agent_id) for agent_id in detect_installed_agents()]
