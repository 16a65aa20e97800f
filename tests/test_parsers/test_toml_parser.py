# Tests for the TOML agent config parser (Codex CLI)
from pathlib import Path

import tomli

from mcpm.models import ConnectorRecord, ReadStatus, WriteOptions
from mcpm.parsers import TomlParser, create_parser

GITHUB = ConnectorRecord(
    type="stdio",
    command="npx",
    args=["-y", "@modelcontextprotocol/server-github"],
    env={"GITHUB_TOKEN": "ghp_xxxx"},
)

EXISTING = """model = "o3"

[profile.fast]
model = "o4-mini"  # quick one

[mcp_servers.old]
command = "old-server"
"""


def make_parser(tmp_path: Path) -> TomlParser:
    parser = create_parser("codex", config_path=tmp_path / "config.toml", backup_dir=tmp_path / "backups")
    assert isinstance(parser, TomlParser)
    return parser


def test_read_servers(tmp_path: Path) -> None:
    (tmp_path / "config.toml").write_text(
        """[mcp_servers.github]
command = "npx"
args = ["-y", "@modelcontextprotocol/server-github"]
env = { GITHUB_TOKEN = "ghp_xxxx" }
"""
    )

    servers = make_parser(tmp_path).read().servers

    assert servers["github"].command == "npx"
    assert servers["github"].env == {"GITHUB_TOKEN": "ghp_xxxx"}


def test_read_corrupt_file(tmp_path: Path) -> None:
    (tmp_path / "config.toml").write_text("[mcp_servers.github\ncommand = ")

    config = make_parser(tmp_path).read()

    assert config.status is ReadStatus.CORRUPT
    assert "Invalid TOML" in config.error


def test_write_preserves_other_sections(tmp_path: Path) -> None:
    """[profile] tables, comments and top-level keys survive a write."""
    config_file = tmp_path / "config.toml"
    config_file.write_text(EXISTING)

    make_parser(tmp_path).write({"mcpm_github": GITHUB})

    text = config_file.read_text()
    assert text.startswith('model = "o3"\n\n[profile.fast]\nmodel = "o4-mini"  # quick one\n')
    data = tomli.loads(text)
    assert data["model"] == "o3"
    assert data["profile"]["fast"]["model"] == "o4-mini"
    assert data["mcp_servers"]["old"] == {"command": "old-server"}
    assert data["mcp_servers"]["mcpm_github"] == {
        "command": "npx",
        "args": ["-y", "@modelcontextprotocol/server-github"],
        "env": {"GITHUB_TOKEN": "ghp_xxxx"},
    }


def test_write_new_file(tmp_path: Path) -> None:
    make_parser(tmp_path).write({"mcpm_github": GITHUB})

    text = (tmp_path / "config.toml").read_text()
    assert text.startswith("[mcp_servers.mcpm_github]\n")
    assert text.endswith("\n")


def test_round_trip(tmp_path: Path) -> None:
    parser = make_parser(tmp_path)

    parser.write({"mcpm_github": GITHUB})

    assert parser.read().servers["mcpm_github"] == parser.expected_record(GITHUB)


def test_remove_servers_keeps_other_sections(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text(EXISTING)
    parser = make_parser(tmp_path)
    parser.write({"mcpm_github": GITHUB})

    parser.remove_servers(["mcpm_github"])

    data = tomli.loads(config_file.read_text())
    assert list(data["mcp_servers"]) == ["old"]
    assert data["profile"]["fast"]["model"] == "o4-mini"


WRAPPER_SETTINGS = """[mcp_servers]
startup_timeout = 10

[mcp_servers.fs]
command = "fs-mcp"
"""


def test_write_keeps_wrapper_settings(tmp_path: Path) -> None:
    """Plain keys directly under [mcp_servers] are not server tables."""
    config_file = tmp_path / "config.toml"
    config_file.write_text(WRAPPER_SETTINGS)
    parser = make_parser(tmp_path)

    assert list(parser.read().servers) == ["fs"]
    parser.write({"mcpm_github": GITHUB})

    data = tomli.loads(config_file.read_text())
    assert data["mcp_servers"]["startup_timeout"] == 10
    assert data["mcp_servers"]["fs"] == {"command": "fs-mcp"}
    assert "mcpm_github" in data["mcp_servers"]


def test_replace_and_remove_keep_wrapper_settings(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text(WRAPPER_SETTINGS)
    parser = make_parser(tmp_path)

    parser.write({"mcpm_github": GITHUB}, WriteOptions(merge=False))
    data = tomli.loads(config_file.read_text())
    assert sorted(data["mcp_servers"]) == ["mcpm_github", "startup_timeout"]

    parser.remove_servers(["mcpm_github"])
    data = tomli.loads(config_file.read_text())
    assert data["mcp_servers"] == {"startup_timeout": 10}
