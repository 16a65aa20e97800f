# Minimal TOML writer for mcpm
import re
from typing import Any, Mapping

# ABOUTME: Matches a table header line: [a.b] or [[a.b]], optional trailing comment
_HEADER = re.compile(r"^\s*(?:\[\[\s*(.+?)\s*\]\]|\[\s*(.+?)\s*\])\s*(?:#.*)?$")
_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


def format_key(key: str) -> str:
    """Bare key when possible, otherwise a quoted basic string."""
    if _BARE_KEY.match(key):
        return key
    return format_string(key)


def format_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def format_value(value: Any) -> str:
    """Format a scalar, list, or mapping as an inline TOML value."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        return _format_inline_table(value)
    if isinstance(value, (list, tuple)):
        return _format_array(list(value))
    return format_string(str(value))


def _format_array(items: list[Any]) -> str:
    """Format list as TOML array.

    ABOUTME: Converts Python list to ["item1", "item2"] format
    """
    if not items:
        return "[]"
    return "[" + ", ".join(format_value(item) for item in items) + "]"


def _format_inline_table(data: Mapping[str, Any]) -> str:
    """Format dict as TOML inline table.

    ABOUTME: Converts {"KEY": "value"} to { KEY = "value" } format
    ABOUTME: Used for env and headers
    """
    if not data:
        return "{}"
    pairs = [f"{format_key(str(key))} = {format_value(value)}" for key, value in data.items()]
    return "{ " + ", ".join(pairs) + " }"


def split_key_path(text: str) -> list[str]:
    """Split a dotted TOML key into segments, honoring quoted segments.

    Examples:
        >>> split_key_path('mcp_servers."my server"')
        ['mcp_servers', 'my server']
    """
    segments: list[str] = []
    current: list[str] = []
    quote: str | None = None
    i = 0
    while i < len(text):
        char = text[i]
        if quote:
            if char == "\\" and quote == '"' and i + 1 < len(text):
                current.append(text[i + 1])
                i += 2
                continue
            if char == quote:
                quote = None
            else:
                current.append(char)
        elif char in "\"'":
            quote = char
        elif char == ".":
            segments.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    segments.append("".join(current).strip())
    return segments


def table_path(line: str) -> list[str] | None:
    """Key path of a table header line, or None for any other line."""
    match = _HEADER.match(line)
    if not match:
        return None
    return split_key_path(match.group(1) or match.group(2))


def format_tables(wrapper_key: str, servers: Mapping[str, Any]) -> str:
    """Write one [<wrapper>.<name>] table per server.

    ABOUTME: Minimal TOML writer handling only our subset (strings, arrays, inline tables)
    ABOUTME: Empty lists and mappings are omitted
    ABOUTME: Non-table values under the wrapper stay as key = value lines in [<wrapper>]

    Args:
        wrapper_key: Dotted wrapper key, e.g. mcp_servers
        servers: Server name to agent-native field mapping

    Example output:
        [mcp_servers.filesystem]
        command = "npx"
        args = ["-y", "@modelcontextprotocol/server-filesystem", "/path"]

        [mcp_servers.github]
        command = "npx"
        env = { GITHUB_TOKEN = "ghp_xxxx" }
    """
    prefix = ".".join(format_key(part) for part in wrapper_key.split("."))
    lines: list[str] = []

    # Plain keys directly under the wrapper, e.g. startup_timeout = 10
    settings = {key: value for key, value in servers.items() if not isinstance(value, Mapping)}
    if settings:
        lines.append(f"[{prefix}]")
        for key, value in settings.items():
            if value is not None:
                lines.append(f"{format_key(key)} = {format_value(value)}")
        lines.append("")

    for server_name, server_config in servers.items():
        if not isinstance(server_config, Mapping):
            continue
        lines.append(f"[{prefix}.{format_key(server_name)}]")
        for key, value in server_config.items():
            if value is None or (isinstance(value, (list, Mapping)) and not value):
                continue
            lines.append(f"{format_key(key)} = {format_value(value)}")
        lines.append("")

    return "\n".join(lines).rstrip()


def replace_tables(
    existing_text: str,
    wrapper_key: str,
    servers: Mapping[str, Any],
) -> str:
    """Regenerate connector tables while keeping every other line verbatim.

    ABOUTME: Lines inside [<wrapper>] or [<wrapper>.*] tables are dropped and rewritten
    ABOUTME: Lines outside them, including comments and blanks, are preserved

    Args:
        existing_text: Current file content ("" for a new file)
        wrapper_key: Dotted wrapper key, e.g. mcp_servers
        servers: Complete server set to write under the wrapper

    Returns:
        New file content ending with a single newline
    """
    wrapper_path = wrapper_key.split(".")
    kept: list[str] = []
    inside = False

    for line in existing_text.splitlines():
        path = table_path(line)
        if path is not None:
            inside = path[: len(wrapper_path)] == wrapper_path
        if not inside:
            kept.append(line)

    while kept and not kept[-1].strip():
        kept.pop()

    tables = format_tables(wrapper_key, servers)
    parts = ["\n".join(kept)] if kept else []
    if tables:
        parts.append(tables)
    content = "\n\n".join(parts)
    return content + "\n" if content else ""
