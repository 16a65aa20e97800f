# Config normalizer for externally sourced text
import json
from typing import Any, Literal, Mapping

import yaml

from mcpm.errors import ConfigParseError
from mcpm.models import ConnectorRecord, CredentialField, CredentialValue, ParsedConfig, TransportType

# ABOUTME: Wrapper keys in priority order; first present wins
WRAPPER_KEYS = ("mcpServers", "servers", "context_servers", "mcp", "mcp_servers")
DIRECT_WRAPPER = "direct"


def normalize_type(value: Any) -> TransportType | None:
    """Lowercase a transport name; unknown values become None."""
    if not isinstance(value, str):
        return None
    lowered = value.lower()
    if lowered == "stdio":
        return "stdio"
    if lowered == "http":
        return "http"
    if lowered == "sse":
        return "sse"
    return None


def credential_value(value: Any) -> CredentialValue:
    """Coerce one env/header value without collapsing metadata.

    ABOUTME: Mappings become CredentialField, None stays None
    ABOUTME: Scalars (numbers, booleans) are stringified
    """
    if value is None or isinstance(value, (str, CredentialField)):
        return value
    if isinstance(value, Mapping):
        return CredentialField.from_mapping(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def credential_map(value: Any) -> dict[str, CredentialValue]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): credential_value(item) for key, item in value.items()}


def string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def record_from_entry(entry: Mapping[str, Any]) -> ConnectorRecord:
    """Convert one agent-native entry into a ConnectorRecord.

    ABOUTME: Array command is split into command + args
    ABOUTME: environment/env and url/serverUrl/httpUrl are interchangeable
    """
    command = entry.get("command")
    if isinstance(command, list):
        parts = string_list(command)
        cmd = parts[0] if parts else None
        args = parts[1:]
        env = entry.get("environment", entry.get("env"))
    else:
        cmd = optional_str(command)
        args = string_list(entry.get("args"))
        env = entry.get("env", entry.get("environment"))

    url = entry.get("url") or entry.get("serverUrl") or entry.get("httpUrl")
    server_type = normalize_type(entry.get("type", entry.get("transport")))

    return ConnectorRecord(
        type=server_type,
        command=cmd,
        args=args,
        env=credential_map(env),
        url=optional_str(url),
        headers=credential_map(entry.get("headers")),
    )


def _load_document(text: str) -> tuple[dict[str, Any], Literal["json", "yaml"]]:
    trimmed = text.strip()
    if trimmed.startswith("{"):
        try:
            parsed = json.loads(trimmed)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"Invalid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ConfigParseError("Invalid JSON: must be an object")
        return parsed, "json"

    try:
        parsed = yaml.safe_load(trimmed)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Invalid YAML: {e}") from e
    if not isinstance(parsed, dict):
        raise ConfigParseError("Invalid YAML: must be an object")
    return parsed, "yaml"


def _looks_like_server(value: Any) -> bool:
    return isinstance(value, Mapping) and ("command" in value or "url" in value)


def parse_config(text: str) -> ParsedConfig:
    """Detect format and wrapper key of pasted or fetched config text.

    ABOUTME: JSON if the trimmed text starts with "{", otherwise YAML
    ABOUTME: Falls back to a direct server map only when the first value looks like a server

    Args:
        text: Raw configuration text

    Returns:
        ParsedConfig with normalized servers and the branch that fired

    Raises:
        ConfigParseError: Invalid JSON/YAML, no recognizable wrapper, or a
            non-object server entry

    Examples:
        >>> parse_config('{"mcpServers": {"gh": {"command": "npx"}}}').source_wrapper_key
        'mcpServers'
    """
    document, source_format = _load_document(text)

    branch: Literal["wrapper", "direct"] = "wrapper"
    wrapper_key = next((key for key in WRAPPER_KEYS if key in document), None)
    if wrapper_key is not None:
        servers_obj = document[wrapper_key]
    else:
        first_value = next(iter(document.values()), None)
        if not _looks_like_server(first_value):
            raise ConfigParseError(
                "Could not detect MCP configuration format. Expected mcpServers, "
                "servers, context_servers, mcp, or mcp_servers key."
            )
        wrapper_key = DIRECT_WRAPPER
        branch = "direct"
        servers_obj = document

    if not isinstance(servers_obj, Mapping):
        raise ConfigParseError(f"Invalid {wrapper_key} value: must be an object")

    servers: dict[str, ConnectorRecord] = {}
    for name, entry in servers_obj.items():
        if not isinstance(entry, Mapping):
            raise ConfigParseError(f'Invalid server config for "{name}": must be an object')
        servers[str(name)] = record_from_entry(entry)

    return ParsedConfig(
        servers=servers,
        source_format=source_format,
        source_wrapper_key=wrapper_key,
        branch=branch,
    )
