# Tests for the JSON agent config parser
import json
from pathlib import Path

import pytest

from mcpm.errors import AgentConfigError
from mcpm.models import AgentParser, ConnectorRecord, ReadStatus, WriteOptions
from mcpm.parsers import JsonParser, create_parser
from mcpm.parsers.base import get_nested, set_nested

GITHUB = ConnectorRecord(
    command="npx",
    args=["-y", "@modelcontextprotocol/server-github"],
    env={"GITHUB_TOKEN": "ghp_xxxx"},
)


def make_parser(tmp_path: Path, agent: str = "claude-code") -> JsonParser:
    parser = create_parser(agent, config_path=tmp_path / "mcp.json", backup_dir=tmp_path / "backups")
    assert isinstance(parser, JsonParser)
    return parser


def test_parser_properties(tmp_path: Path) -> None:
    """Parser exposes agent, format and path, and satisfies the protocol."""
    parser = make_parser(tmp_path)

    assert parser.agent == "claude-code"
    assert parser.format == "json"
    assert parser.config_path == tmp_path / "mcp.json"
    assert not parser.exists()
    assert isinstance(parser, AgentParser)


def test_read_missing_file(tmp_path: Path) -> None:
    """A missing file reads as empty, not as an error."""
    config = make_parser(tmp_path).read()

    assert config.servers == {}
    assert config.status is ReadStatus.MISSING
    assert config.error is None


def test_read_servers(tmp_path: Path) -> None:
    (tmp_path / "mcp.json").write_text(json.dumps({
        "mcpServers": {
            "github": {"command": "npx", "args": ["-y", "@modelcontextprotocol/server-github"]},
            "remote": {"type": "http", "url": "https://api.example.com/mcp"},
            "broken": "not an object",
        }
    }))

    config = make_parser(tmp_path).read()

    assert config.status is ReadStatus.OK
    assert set(config.servers) == {"github", "remote"}
    assert config.servers["remote"].transport == "http"


def test_read_corrupt_file(tmp_path: Path) -> None:
    (tmp_path / "mcp.json").write_text("{not json")

    config = make_parser(tmp_path).read()

    assert config.servers == {}
    assert config.status is ReadStatus.CORRUPT
    assert "Invalid JSON" in config.error


def test_read_empty_file(tmp_path: Path) -> None:
    (tmp_path / "mcp.json").write_text("")

    config = make_parser(tmp_path).read()

    assert config.status is ReadStatus.OK
    assert config.servers == {}


def test_write_preserves_other_keys(tmp_path: Path) -> None:
    """Write only touches the wrapper key and keeps foreign entries when merging."""
    config_file = tmp_path / "mcp.json"
    config_file.write_text(json.dumps({
        "theme": "dark",
        "mcpServers": {"figma": {"command": "figma-mcp"}},
    }))

    make_parser(tmp_path).write({"mcpm_github": GITHUB})

    data = json.loads(config_file.read_text())
    assert data["theme"] == "dark"
    assert data["mcpServers"]["figma"] == {"command": "figma-mcp"}
    assert data["mcpServers"]["mcpm_github"] == {
        "command": "npx",
        "args": ["-y", "@modelcontextprotocol/server-github"],
        "env": {"GITHUB_TOKEN": "ghp_xxxx"},
    }


def test_write_without_merge_replaces_wrapper(tmp_path: Path) -> None:
    config_file = tmp_path / "mcp.json"
    config_file.write_text(json.dumps({"theme": "dark", "mcpServers": {"figma": {"command": "figma-mcp"}}}))

    make_parser(tmp_path).write({"mcpm_github": GITHUB}, WriteOptions(merge=False))

    data = json.loads(config_file.read_text())
    assert list(data["mcpServers"]) == ["mcpm_github"]
    assert data["theme"] == "dark"


def test_write_creates_file(tmp_path: Path) -> None:
    parser = create_parser("cursor", config_path=tmp_path / "nested" / "mcp.json")

    parser.write({"mcpm_github": GITHUB})

    assert parser.exists()
    assert parser.config_path.read_text().endswith("\n")


def test_write_refuses_missing_directory(tmp_path: Path) -> None:
    parser = create_parser("cursor", config_path=tmp_path / "nested" / "mcp.json")

    with pytest.raises(AgentConfigError, match="does not exist"):
        parser.write({"mcpm_github": GITHUB}, WriteOptions(create_if_missing=False))


def test_write_refuses_to_clobber_corrupt_file(tmp_path: Path) -> None:
    config_file = tmp_path / "mcp.json"
    config_file.write_text("{not json")

    with pytest.raises(AgentConfigError, match="Refusing to overwrite"):
        make_parser(tmp_path).write({"mcpm_github": GITHUB})

    assert config_file.read_text() == "{not json"


def test_write_creates_backup(tmp_path: Path) -> None:
    (tmp_path / "mcp.json").write_text('{"mcpServers": {}}')

    make_parser(tmp_path).write({"mcpm_github": GITHUB})

    backups = list((tmp_path / "backups").iterdir())
    assert len(backups) == 1
    assert backups[0].name.startswith("claude-code-")
    assert backups[0].read_text() == '{"mcpServers": {}}'


def test_write_without_backup(tmp_path: Path) -> None:
    (tmp_path / "mcp.json").write_text('{"mcpServers": {}}')

    make_parser(tmp_path).write({"mcpm_github": GITHUB}, WriteOptions(backup=False))

    assert not (tmp_path / "backups").exists()


def test_round_trip(tmp_path: Path) -> None:
    parser = make_parser(tmp_path)
    remote = ConnectorRecord(type="http", url="https://api.example.com/mcp", headers={"X-Team": "core"})

    parser.write({"mcpm_github": GITHUB, "mcpm_remote": remote})
    servers = parser.read().servers

    assert servers["mcpm_github"] == parser.expected_record(GITHUB)
    assert servers["mcpm_remote"] == parser.expected_record(remote)
    assert servers["mcpm_github"].command == "npx"
    assert servers["mcpm_remote"].headers == {"X-Team": "core"}


def test_remove_servers(tmp_path: Path) -> None:
    config_file = tmp_path / "mcp.json"
    config_file.write_text(json.dumps({
        "mcpServers": {"figma": {"command": "figma-mcp"}, "mcpm_github": {"command": "npx"}},
    }))
    parser = make_parser(tmp_path)

    parser.remove_servers(["mcpm_github", "not-there"])

    assert parser.get_installed_server_names() == ["figma"]


def test_remove_from_missing_file_is_noop(tmp_path: Path) -> None:
    parser = make_parser(tmp_path)

    parser.remove_servers(["mcpm_github"])

    assert not parser.exists()


def test_remove_from_corrupt_file_is_logged(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / "mcp.json").write_text("{not json")

    make_parser(tmp_path).remove_servers(["mcpm_github"])

    assert "Failed to remove" in caplog.text
    assert (tmp_path / "mcp.json").read_text() == "{not json"


def test_project_scope_path(tmp_path: Path) -> None:
    parser = create_parser("claude-code", project_dir=tmp_path)

    assert parser.config_path == tmp_path / ".mcp.json"


def test_project_scope_unsupported(tmp_path: Path) -> None:
    with pytest.raises(AgentConfigError, match="does not support project-scope"):
        create_parser("codex", project_dir=tmp_path)


def test_nested_helpers() -> None:
    document: dict = {"provider": "x"}

    set_nested(document, "provider.mcpServers", {"a": 1})

    assert document == {"provider": {"mcpServers": {"a": 1}}}
    assert get_nested(document, "provider.mcpServers") == {"a": 1}
    assert get_nested(document, "missing.key") is None
