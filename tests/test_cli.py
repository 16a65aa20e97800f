# ABOUTME: End-to-end tests for the mcpm command line
# ABOUTME: Runs main() against a temporary home and checks output and exit codes
import json

import pytest

from mcpm.agents import get_agent
from mcpm.cli import EXIT_CONFIG_ERROR, EXIT_PARTIAL, EXIT_SUCCESS, build_parser, main, parse_pairs
from mcpm.models import RegistryServer, VaultRef
from mcpm.registry import add_server, get_server
from mcpm.vault import get_secret

GITHUB_PAT = "ghp_" + "a1B2" * 9


def agent_servers(agent_id: str) -> dict:
    return json.loads(get_agent(agent_id).config_path.read_text())["mcpServers"]


def write_agent_file(agent_id: str, servers: dict) -> None:
    path = get_agent(agent_id).config_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"mcpServers": servers}))


def test_parse_pairs():
    assert parse_pairs("A=1, B = two,broken,C=x=y") == {"A": "1", "B": "two", "C": "x=y"}
    assert parse_pairs(None) == {}


def test_command_option_does_not_replace_subcommand():
    args = build_parser().parse_args(["add", "github", "--command", "npx", "--args=-y,gh-mcp"])

    assert args.subcommand == "add"
    assert args.command == "npx"
    assert args.args == "-y,gh-mcp"


def test_no_command_prints_help(capsys):
    assert main([]) == EXIT_SUCCESS
    assert "usage: mcpm" in capsys.readouterr().out


def test_version(capsys):
    with pytest.raises(SystemExit):
        main(["--version"])
    assert "mcpm v" in capsys.readouterr().out


class TestAdd:
    """Tests for the add command."""

    def test_add_stdio(self, capsys, registry_path):
        code = main(["add", "github", "--command", "npx", "--args=-y,gh-mcp", "--env", f"GITHUB_TOKEN={GITHUB_PAT}"])

        assert code == EXIT_SUCCESS
        server = get_server("github")
        assert server.args == ["-y", "gh-mcp"]
        assert server.env == {"GITHUB_TOKEN": VaultRef("github", "GITHUB_TOKEN")}
        assert get_secret("github", "GITHUB_TOKEN") == GITHUB_PAT
        assert "stored in secure storage: GITHUB_TOKEN" in capsys.readouterr().out

    def test_add_plain(self, registry_path):
        main(["add", "github", "--command", "npx", "--env", f"GITHUB_TOKEN={GITHUB_PAT}", "--plain"])

        assert get_server("github").env == {"GITHUB_TOKEN": GITHUB_PAT}

    def test_add_http(self, registry_path):
        assert main(["add", "docs", "--url", "https://docs.example.com/mcp"]) == EXIT_SUCCESS
        assert get_server("docs").url == "https://docs.example.com/mcp"

    def test_add_remote(self, registry_path):
        assert main(["add", "docs", "--url", "https://docs.example.com/sse"]) == EXIT_SUCCESS
        assert get_server("docs").transport == "sse"

    def test_add_from_file(self, tmp_path, registry_path):
        config = tmp_path / "paste.json"
        config.write_text(json.dumps({"mcpServers": {"a1": {"command": "a"}, "b1": {"url": "https://b.dev/mcp"}}}))

        assert main(["add", "--from-file", str(config)]) == EXIT_SUCCESS
        assert get_server("a1").command == "a"
        assert get_server("b1").transport == "http"

    def test_add_without_source(self, capsys, registry_path):
        assert main(["add", "github"]) == EXIT_CONFIG_ERROR
        assert "One of --command, --url or --from-file is required" in capsys.readouterr().out


class TestListAndValidate:
    """Tests for the list and validate commands."""

    def test_list_shows_references_not_secrets(self, capsys, registry_path):
        main(["add", "github", "--command", "npx", "--env", f"GITHUB_TOKEN={GITHUB_PAT}"])
        capsys.readouterr()

        assert main(["list"]) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "GITHUB_TOKEN=keychain:github.GITHUB_TOKEN" in out
        assert GITHUB_PAT not in out
        assert "Total: 1 server(s)" in out

    def test_list_corrupt_registry(self, capsys, registry_path):
        registry_path.parent.mkdir(parents=True)
        registry_path.write_text("{not json")

        assert main(["list"]) == EXIT_CONFIG_ERROR

    def test_validate(self, capsys, registry_path):
        add_server(RegistryServer(name="good", transport="http", url="https://x.dev/mcp"))
        assert main(["validate"]) == EXIT_SUCCESS

        add_server(RegistryServer(name="bad", transport="http", url="ftp://x.dev/mcp"))
        assert main(["validate"]) == EXIT_CONFIG_ERROR
        assert "Validation failed: 1 error(s)" in capsys.readouterr().out


class TestSync:
    """Tests for the sync and status commands."""

    def test_sync_writes_resolved_secrets(self, capsys, registry_path):
        main(["add", "github", "--command", "npx", "--env", f"GITHUB_TOKEN={GITHUB_PAT}"])

        assert main(["sync", "--agent", "cursor", "--agent", "cline"]) == EXIT_SUCCESS

        for agent_id in ("cursor", "cline"):
            assert agent_servers(agent_id)["mcpm_github"]["env"] == {"GITHUB_TOKEN": GITHUB_PAT}
        assert "Sync complete: 2/2 agents updated" in capsys.readouterr().out
        assert get_server("github").last_synced_at

    def test_sync_warns_about_duplicates(self, capsys, registry_path):
        write_agent_file("cursor", {"github": {"command": "mine"}})
        add_server(RegistryServer(name="github", transport="stdio", command="npx"))

        assert main(["sync", "--agent", "cursor"]) == EXIT_SUCCESS

        assert "'github' already exists in cursor" in capsys.readouterr().out
        assert agent_servers("cursor") == {"github": {"command": "mine"}}

    def test_sync_empty_registry(self, capsys, registry_path):
        assert main(["sync", "--agent", "cursor"]) == EXIT_SUCCESS
        assert "No servers in registry to sync." in capsys.readouterr().out

    def test_sync_unknown_agent(self, capsys, registry_path):
        assert main(["sync", "--agent", "nope"]) == EXIT_CONFIG_ERROR
        assert "Unknown agent: nope" in capsys.readouterr().out

    def test_sync_corrupt_agent_is_partial(self, registry_path):
        add_server(RegistryServer(name="github", transport="stdio", command="npx"))
        path = get_agent("cline").config_path
        path.parent.mkdir(parents=True)
        path.write_text("{broken")

        assert main(["sync", "--agent", "cursor", "--agent", "cline"]) == EXIT_PARTIAL
        assert path.read_text() == "{broken"
        assert "mcpm_github" in agent_servers("cursor")

    def test_status_reports_drift(self, capsys, registry_path):
        add_server(RegistryServer(name="github", transport="stdio", command="npx"))
        main(["sync", "--agent", "cursor"])
        assert main(["status", "--agent", "cursor"]) == EXIT_SUCCESS

        servers = agent_servers("cursor")
        servers["mcpm_github"]["command"] = "hand-edited"
        write_agent_file("cursor", servers)
        capsys.readouterr()

        assert main(["status", "--agent", "cursor"]) == EXIT_PARTIAL
        assert "drifted: github" in capsys.readouterr().out


class TestRemove:
    """Tests for the remove command."""

    def test_remove_cleans_registry_vault_and_agents(self, registry_path):
        write_agent_file("cursor", {"github": {"command": "mine"}})
        main(["add", "github", "--command", "npx", "--env", f"GITHUB_TOKEN={GITHUB_PAT}"])
        main(["sync", "--agent", "cursor"])

        assert main(["remove", "github", "--agent", "cursor"]) == EXIT_SUCCESS

        assert get_server("github") is None
        assert get_secret("github", "GITHUB_TOKEN") is None
        assert agent_servers("cursor")["github"] == {"command": "mine"}

    def test_remove_synced_copy(self, registry_path):
        add_server(RegistryServer(name="github", transport="stdio", command="npx"))
        main(["sync", "--agent", "cursor"])

        main(["remove", "github", "--agent", "cursor"])

        assert "mcpm_github" not in agent_servers("cursor")

    def test_remove_missing(self, capsys, registry_path):
        assert main(["remove", "nope", "--agent", "cursor"]) == EXIT_CONFIG_ERROR


class TestImport:
    """Tests for the import command."""

    def test_import_all(self, capsys, registry_path):
        write_agent_file("cursor", {"mcpm_github": {"command": "npx"}, "figma": {"command": "figma-mcp"}})

        assert main(["import", "--agent", "cursor"]) == EXIT_SUCCESS

        assert get_server("figma").imported_from == "cursor"
        assert get_server("github") is None
        assert "Imported 'figma' from cursor" in capsys.readouterr().out

    def test_import_rename(self, registry_path):
        add_server(RegistryServer(name="figma", transport="stdio", command="old"))
        write_agent_file("cursor", {"figma": {"command": "new"}})

        code = main(["import", "figma", "--agent", "cursor", "--strategy", "rename", "--rename", "figma=figma2"])

        assert code == EXIT_SUCCESS
        assert get_server("figma2").command == "new"

    def test_import_nothing_found(self, capsys, registry_path):
        assert main(["import", "--agent", "cursor"]) == EXIT_SUCCESS
        assert "No non-managed servers found" in capsys.readouterr().out
