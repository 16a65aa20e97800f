# Agent profile catalog
import os
import re
import sys
from dataclasses import dataclass, field
from enum import Flag, auto
from pathlib import Path
from typing import Callable

from mcpm.errors import UnknownAgentError
from mcpm.models import ConfigFormat, TransportType

# ABOUTME: Every agent supports stdio; remote support varies
ALL_TRANSPORTS: frozenset[str] = frozenset({"stdio", "http", "sse"})
NO_SSE: frozenset[str] = frozenset({"stdio", "http"})
STDIO: frozenset[str] = frozenset({"stdio"})

# ABOUTME: IDE config directory prefixes under the JetBrains base directory
JETBRAINS_IDE_PATTERNS = (
    "IntelliJIdea",
    "PyCharm",
    "WebStorm",
    "Rider",
    "GoLand",
    "CLion",
    "PhpStorm",
    "RubyMine",
    "DataGrip",
    "AppCode",
    "RustRover",
    "Aqua",
    "DataSpell",
    "Fleet",
)
JETBRAINS_MCP_FILE = Path("options") / "llm.mcpServers.xml"
_IDE_VERSION = re.compile(r"^\d+\.\d+")


class Quirk(Flag):
    """Per-agent deviations from the standard command/args/env shape."""
    NONE = 0
    COMMAND_ARRAY = auto()  # command = [cmd, *args], env stored as "environment"
    STDIO_ONLY = auto()  # remote fields never written
    ALWAYS_TYPE = auto()  # stdio entries carry type = "stdio"


@dataclass(frozen=True)
class AgentProfile:
    """Static description of one agent's MCP config file.

    ABOUTME: Single source of truth for paths, wrapper key, and record shape
    ABOUTME: Remote shape is data (url_field, remote_type_field), not code
    """
    id: str
    display_name: str
    config_dir: Path
    config_path: Path
    format: ConfigFormat = "json"
    wrapper_key: str = "mcpServers"
    project_path: str | None = None
    quirks: Quirk = Quirk.NONE
    url_field: str = "url"
    remote_type_field: str | None = None
    default_remote_type: TransportType | None = None
    transports: frozenset[str] = field(default=ALL_TRANSPORTS)
    detect: Callable[[], bool] | None = field(default=None, compare=False, repr=False)

    def is_installed(self) -> bool:
        """Existence probe on the agent's config directory."""
        if self.detect is not None:
            return self.detect()
        return self.config_dir.exists()

    def supports(self, transport: str) -> bool:
        return transport in self.transports

    @property
    def supports_project_scope(self) -> bool:
        return self.project_path is not None


def _config_home() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME", "").strip()
    return Path(xdg) if xdg else Path.home() / ".config"


def _env_dir(var: str, default: Path) -> Path:
    value = os.environ.get(var, "").strip()
    return Path(value) if value else default


def _app_support_dir() -> Path:
    """Get the per-user application data directory for the current OS.

    ABOUTME: darwin uses Library/Application Support, win32 uses APPDATA
    """
    if sys.platform == "darwin":
        return Path.home() / "Library/Application Support"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", Path.home() / "AppData/Roaming"))
    else:  # Linux and others
        return _config_home()


def jetbrains_base_dir() -> Path:
    return _app_support_dir() / "JetBrains"


def detect_jetbrains_ides(base_dir: Path | None = None) -> list[Path]:
    """Find JetBrains IDE config directories, newest version first.

    ABOUTME: Matches <Pattern><version> directories, e.g. PyCharm2024.3
    ABOUTME: Returns empty list if the JetBrains base directory is absent

    Args:
        base_dir: Override for the JetBrains base directory

    Returns:
        IDE config directories sorted by version descending
    """
    base = base_dir if base_dir is not None else jetbrains_base_dir()
    if not base.is_dir():
        return []

    found: list[tuple[str, Path]] = []
    for entry in base.iterdir():
        if not entry.is_dir():
            continue
        for pattern in JETBRAINS_IDE_PATTERNS:
            version = entry.name[len(pattern):]
            if entry.name.startswith(pattern) and _IDE_VERSION.match(version):
                found.append((version, entry))
                break

    found.sort(key=lambda item: _version_key(item[0]), reverse=True)
    return [path for _, path in found]


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version))


def jetbrains_config_path() -> Path:
    """MCP file of the newest detected IDE, or the base dir placeholder when none."""
    ides = detect_jetbrains_ides()
    if ides:
        return ides[0] / JETBRAINS_MCP_FILE
    return jetbrains_base_dir() / JETBRAINS_MCP_FILE


def agent_catalog() -> dict[str, AgentProfile]:
    """Build the agent catalog from the current environment.

    ABOUTME: Paths follow HOME and env overrides at call time
    ABOUTME: Keys are agent ids, in display order
    """
    home = Path.home()
    config_home = _config_home()
    codex_home = _env_dir("CODEX_HOME", home / ".codex")
    claude_home = _env_dir("CLAUDE_CONFIG_DIR", home / ".claude")
    vscode_user = _app_support_dir() / "Code" / "User"

    profiles = [
        AgentProfile(
            id="amp",
            display_name="Amp",
            config_dir=config_home / "amp",
            config_path=config_home / "amp" / "mcp.json",
        ),
        AgentProfile(
            id="antigravity",
            display_name="Antigravity",
            config_dir=home / ".gemini" / "antigravity",
            config_path=home / ".gemini" / "antigravity" / "mcp_config.json",
            url_field="serverUrl",
        ),
        AgentProfile(
            id="claude-code",
            display_name="Claude Code",
            config_dir=claude_home,
            config_path=claude_home / "settings.json",
            project_path=".mcp.json",
            remote_type_field="type",
            default_remote_type="http",
        ),
        AgentProfile(
            id="cline",
            display_name="Cline",
            config_dir=home / ".cline",
            config_path=home / ".cline" / "mcp.json",
            remote_type_field="type",
            default_remote_type="sse",
        ),
        AgentProfile(
            id="codex",
            display_name="Codex (OpenAI)",
            config_dir=codex_home,
            config_path=codex_home / "config.toml",
            format="toml",
            wrapper_key="mcp_servers",
            quirks=Quirk.STDIO_ONLY,
            transports=STDIO,
        ),
        AgentProfile(
            id="continue",
            display_name="Continue",
            config_dir=home / ".continue",
            config_path=home / ".continue" / "config.yaml",
            format="yaml",
            transports=NO_SSE,
        ),
        AgentProfile(
            id="cursor",
            display_name="Cursor",
            config_dir=home / ".cursor",
            config_path=home / ".cursor" / "mcp.json",
            project_path=".cursor/mcp.json",
            remote_type_field="type",
            default_remote_type="sse",
        ),
        AgentProfile(
            id="droid",
            display_name="Factory Droid",
            config_dir=home / ".factory",
            config_path=home / ".factory" / "mcp.json",
            transports=NO_SSE,
        ),
        AgentProfile(
            id="gemini-cli",
            display_name="Gemini CLI",
            config_dir=home / ".gemini",
            config_path=home / ".gemini" / "settings.json",
            project_path=".gemini/settings.json",
            url_field="httpUrl",
        ),
        AgentProfile(
            id="github-copilot",
            display_name="GitHub Copilot CLI",
            config_dir=home / ".copilot",
            config_path=home / ".copilot" / "mcp-config.json",
            transports=NO_SSE,
        ),
        AgentProfile(
            id="goose",
            display_name="Goose",
            config_dir=config_home / "goose",
            config_path=config_home / "goose" / "mcp.json",
            transports=NO_SSE,
        ),
        AgentProfile(
            id="jetbrains",
            display_name="JetBrains IDEs",
            config_dir=jetbrains_base_dir(),
            config_path=jetbrains_config_path(),
            format="xml",
            wrapper_key="McpServerCommand",
            quirks=Quirk.STDIO_ONLY,
            transports=STDIO,
            detect=lambda: bool(detect_jetbrains_ides()),
        ),
        AgentProfile(
            id="opencode",
            display_name="OpenCode",
            config_dir=config_home / "opencode",
            config_path=config_home / "opencode" / "oh-my-opencode.json",
            wrapper_key="mcp",
            quirks=Quirk.COMMAND_ARRAY,
            remote_type_field="type",
            transports=NO_SSE,
        ),
        AgentProfile(
            id="roo",
            display_name="Roo Code",
            config_dir=home / ".roo",
            config_path=home / ".roo" / "mcp.json",
            project_path=".roo/mcp.json",
            remote_type_field="type",
            default_remote_type="sse",
        ),
        AgentProfile(
            id="vscode-copilot",
            display_name="VS Code + Copilot",
            config_dir=vscode_user,
            config_path=vscode_user / "mcp.json",
            project_path=".vscode/mcp.json",
            wrapper_key="servers",
            quirks=Quirk.ALWAYS_TYPE,
            remote_type_field="type",
            default_remote_type="sse",
            transports=NO_SSE,
        ),
        AgentProfile(
            id="windsurf",
            display_name="Windsurf",
            config_dir=home / ".codeium" / "windsurf",
            config_path=home / ".codeium" / "windsurf" / "mcp_config.json",
            url_field="serverUrl",
            remote_type_field="transport",
            default_remote_type="sse",
        ),
        AgentProfile(
            id="zed",
            display_name="Zed",
            config_dir=config_home / "zed",
            config_path=config_home / "zed" / "settings.json",
            wrapper_key="context_servers",
            quirks=Quirk.STDIO_ONLY,
            transports=STDIO,
        ),
    ]
    return {profile.id: profile for profile in profiles}


def get_agent(agent_id: str) -> AgentProfile:
    """Look up a profile by id.

    Raises:
        UnknownAgentError: If no profile has this id
    """
    try:
        return agent_catalog()[agent_id]
    except KeyError:
        raise UnknownAgentError(agent_id) from None


def all_agent_ids() -> list[str]:
    return list(agent_catalog())


def detect_installed_agents() -> list[str]:
    """Ids of agents whose config directory exists."""
    return [profile.id for profile in agent_catalog().values() if profile.is_installed()]


def get_unsupported_agents(transport: str) -> list[str]:
    """Ids of agents that cannot represent the given transport."""
    return [profile.id for profile in agent_catalog().values() if not profile.supports(transport)]
