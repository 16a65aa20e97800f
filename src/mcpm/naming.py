# Managed-name prefix scheme
# ABOUTME: Installed names carry a prefix marking them as owned by mcpm
# ABOUTME: Names without the prefix belong to the user and are never overwritten
import re

PREFIX_SNAKE = "mcpm_"
PREFIX_CAMEL = "mcpm"

# ABOUTME: Agents whose installed names use camelCase (mcpmGithub); none today
CAMEL_CASE_AGENTS: frozenset[str] = frozenset()

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def uses_camel_case(agent_id: str) -> bool:
    return agent_id in CAMEL_CASE_AGENTS


def sanitize_name(name: str) -> str:
    """Sanitize a server name to the ``[A-Za-z0-9_-]`` charset.

    ABOUTME: Invalid characters become underscores, runs collapse to one
    ABOUTME: Leading/trailing underscores are trimmed; idempotent

    Examples:
        >>> sanitize_name("Framelink MCP for Figma")
        'Framelink_MCP_for_Figma'
        >>> sanitize_name("server@v2!")
        'server_v2'
    """
    cleaned = _INVALID_CHARS.sub("_", name)
    cleaned = _UNDERSCORE_RUNS.sub("_", cleaned)
    return cleaned.strip("_")


def _camel_tail(name: str) -> bool:
    """True if name is the camelCase prefix followed by an uppercase letter."""
    tail = name[len(PREFIX_CAMEL):]
    return name.startswith(PREFIX_CAMEL) and tail[:1].isupper()


def add_prefix(name: str, agent_id: str) -> str:
    """Installed name for a clean name on the given agent."""
    sanitized = sanitize_name(name)
    if uses_camel_case(agent_id):
        return PREFIX_CAMEL + sanitized[:1].upper() + sanitized[1:]
    return PREFIX_SNAKE + sanitized


def has_prefix(name: str) -> bool:
    """True if name is managed by mcpm."""
    return name.startswith(PREFIX_SNAKE) or _camel_tail(name)


def remove_prefix(name: str) -> str:
    """Inverse of add_prefix; foreign names pass through unchanged."""
    if name.startswith(PREFIX_SNAKE):
        return name[len(PREFIX_SNAKE):]
    if _camel_tail(name):
        rest = name[len(PREFIX_CAMEL):]
        return rest[:1].lower() + rest[1:]
    return name


def to_registry_name(installed_name: str) -> str:
    return remove_prefix(installed_name) if has_prefix(installed_name) else installed_name


def to_installed_name(registry_name: str, agent_id: str) -> str:
    return add_prefix(registry_name, agent_id)
