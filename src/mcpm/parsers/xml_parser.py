# JetBrains AI Assistant XML parser
"""Parser for JetBrains ``options/llm.mcpServers.xml``.

Document shape::

    <application>
      <component name="McpApplicationServerCommands">
        <McpServerCommand>
          <option name="enabled" value="true" />
          <option name="name" value="ServerName" />
          <option name="programPath" value="npx" />
          <option name="arguments" value="-y @pkg/server" />
          <option name="workingDirectory" value="" />
          <envs>
            <env name="VAR" value="value" />
          </envs>
        </McpServerCommand>
      </component>
    </application>
"""
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Mapping

from mcpm.agents import AgentProfile, detect_jetbrains_ides
from mcpm.detect import record_from_entry
from mcpm.errors import AgentConfigError, ConfigParseError
from mcpm.models import ConnectorRecord, WriteOptions
from mcpm.parsers.base import BaseParser, transform_server

COMPONENT_NAME = "McpApplicationServerCommands"

_XML_ENTITIES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def escape_xml(value: str) -> str:
    """Escape the five predefined XML entities ('&' first)."""
    for char, entity in _XML_ENTITIES:
        value = value.replace(char, entity)
    return value


def _entry_from_element(element: ET.Element) -> tuple[str, dict[str, Any]] | None:
    options = {
        option.get("name"): option.get("value", "")
        for option in element.findall("option")
    }
    name = options.get("name")
    program = options.get("programPath")
    if not name or not program:
        return None

    entry: dict[str, Any] = {"command": program, "args": (options.get("arguments") or "").split()}
    envs = element.find("envs")
    if envs is not None:
        env = {
            env_el.get("name"): env_el.get("value", "")
            for env_el in envs.findall("env")
            if env_el.get("name")
        }
        if env:
            entry["env"] = env
    return name, entry


def render_document(entries: Mapping[str, Mapping[str, Any]]) -> str:
    """Render the complete llm.mcpServers.xml document.

    ABOUTME: The whole file is regenerated; it holds nothing but MCP servers
    ABOUTME: Arguments are joined with single spaces, an empty <envs /> when no env
    """
    blocks: list[str] = []
    for name, entry in entries.items():
        args = " ".join(entry.get("args") or [])
        env = entry.get("env") or {}
        lines = [
            "    <McpServerCommand>",
            '      <option name="enabled" value="true" />',
            f'      <option name="name" value="{escape_xml(name)}" />',
            f'      <option name="programPath" value="{escape_xml(entry.get("command") or "")}" />',
            f'      <option name="arguments" value="{escape_xml(args)}" />',
            '      <option name="workingDirectory" value="" />',
        ]
        if env:
            lines.append("      <envs>")
            for key, value in env.items():
                lines.append(f'        <env name="{escape_xml(key)}" value="{escape_xml(value or "")}" />')
            lines.append("      </envs>")
        else:
            lines.append("      <envs />")
        lines.append("    </McpServerCommand>")
        blocks.append("\n".join(lines))

    body = "\n".join(blocks)
    return (
        "<application>\n"
        f'  <component name="{COMPONENT_NAME}">\n'
        + (body + "\n" if body else "")
        + "  </component>\n"
        "</application>\n"
    )


class XmlParser(BaseParser):
    """Parser for JetBrains IDEs (IntelliJ, PyCharm, WebStorm, ...).

    ABOUTME: Targets the newest detected IDE unless an explicit path is given
    ABOUTME: Tolerates a missing <envs> block; stdio servers only
    """

    format = "xml"

    def __init__(
        self,
        profile: AgentProfile,
        config_path: Path | None = None,
        backup_dir: Path | None = None,
    ) -> None:
        super().__init__(profile, config_path, backup_dir)
        self._explicit_path = config_path is not None

    def load_document(self, text: str) -> Any:
        try:
            return ET.fromstring(text)
        except ET.ParseError as e:
            raise ConfigParseError(f"Invalid XML in {self.config_path}: {e}") from e

    def empty_document(self) -> Any:
        return None

    def _entries(self, document: Any) -> dict[str, dict[str, Any]]:
        if document is None:
            return {}
        entries: dict[str, dict[str, Any]] = {}
        for element in document.iter("McpServerCommand"):
            parsed = _entry_from_element(element)
            if parsed is not None:
                name, entry = parsed
                entries[name] = entry
        return entries

    def extract_servers(self, document: Any) -> dict[str, ConnectorRecord]:
        return {name: record_from_entry(entry) for name, entry in self._entries(document).items()}

    def render(self, document: Any, existing_text: str, entries: dict[str, dict[str, Any]], merge: bool) -> str:
        servers = {**self._entries(document), **entries} if merge else dict(entries)
        return render_document(servers)

    def write(
        self,
        servers: Mapping[str, ConnectorRecord],
        options: WriteOptions | None = None,
    ) -> None:
        """Write servers to the IDE's llm.mcpServers.xml.

        Raises:
            AgentConfigError: No JetBrains IDE found and no explicit path given
        """
        if not self._explicit_path and not detect_jetbrains_ides():
            raise AgentConfigError(
                "No JetBrains IDE found. Please install a JetBrains IDE "
                "(IntelliJ, PyCharm, WebStorm, etc.) first."
            )
        super().write(servers, options)

    def _remove(self, names: list[str]) -> None:
        document, _ = self._load_existing()
        entries = self._entries(document)
        if not any(name in entries for name in names):
            return
        remaining = {key: value for key, value in entries.items() if key not in names}
        self._commit(render_document(remaining))

    def expected_record(self, record: ConnectorRecord) -> ConnectorRecord:
        """Arguments survive only as whitespace-separated words."""
        entry = transform_server(self.profile, record)
        entry["args"] = " ".join(entry.get("args") or []).split()
        return record_from_entry(entry)
