# Exception hierarchy for mcpm
# ABOUTME: Read paths degrade to "empty" and never raise these
# ABOUTME: Only input rejection and refused writes surface to callers


class McpmError(Exception):
    """Base class for all mcpm errors."""


class ConfigParseError(McpmError, ValueError):
    """Pasted or fetched config text could not be understood.

    ABOUTME: Raised by the normalizer for invalid JSON/YAML or unknown shapes
    ABOUTME: Subclasses ValueError so generic callers can still catch it
    """


class AgentConfigError(McpmError):
    """A parser refused to write an agent config file."""


class RegistryError(McpmError):
    """Registry server data is invalid."""


class VaultError(McpmError):
    """Secure storage is unavailable or rejected an operation."""


class UnknownAgentError(McpmError, KeyError):
    """No agent profile exists for the given identifier."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(agent_id)
        self.agent_id = agent_id

    def __str__(self) -> str:
        return f"Unknown agent: {self.agent_id}"
