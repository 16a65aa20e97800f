# Tests for the shared parser flow
from pathlib import Path
from typing import Any

import pytest

from mcpm.agents import get_agent
from mcpm.errors import AgentConfigError
from mcpm.models import ConnectorRecord, RegistryServer
from mcpm.parsers import JsonParser, create_parser
from mcpm.parsers.base import BaseParser
from mcpm.registry import add_server
from mcpm.sync import sync_registry_to_agents


class BrokenRenderParser(JsonParser):
    def render(self, document: Any, existing_text: str, entries: dict[str, dict[str, Any]], merge: bool) -> str:
        raise TypeError("cannot serialize")


def test_incomplete_parser_cannot_be_created() -> None:
    class NoRender(BaseParser):
        def load_document(self, text: str) -> Any:
            return {}

    with pytest.raises(TypeError):
        NoRender(get_agent("cursor"))


def test_render_failure_becomes_config_error(tmp_path: Path) -> None:
    config_file = tmp_path / "mcp.json"
    config_file.write_text('{"mcpServers": {}}')
    parser = BrokenRenderParser(get_agent("cursor"), config_path=config_file, backup_dir=tmp_path / "backups")

    with pytest.raises(AgentConfigError, match="cannot serialize"):
        parser.write({"mcpm_github": ConnectorRecord(command="npx")})

    assert config_file.read_text() == '{"mcpServers": {}}'


def test_render_failure_is_reported_per_agent(registry_path) -> None:
    add_server(RegistryServer(name="github", transport="stdio", command="npx"))

    def factory(agent_id: str, **kwargs: Any):
        if agent_id == "cursor":
            return BrokenRenderParser(get_agent(agent_id))
        return create_parser(agent_id, **kwargs)

    results = sync_registry_to_agents(["cursor", "claude-code"], parser_factory=factory)

    by_agent = {result.agent: result for result in results}
    assert by_agent["cursor"].errors == ["github: Failed to write config: Could not render "
                                         f"{get_agent('cursor').config_path}: cannot serialize"]
    assert by_agent["claude-code"].added == ["github"]


def test_codex_wrapper_settings_do_not_block_sync(registry_path) -> None:
    add_server(RegistryServer(name="github", transport="stdio", command="npx"))
    codex_config = get_agent("codex").config_path
    codex_config.parent.mkdir(parents=True)
    codex_config.write_text('[mcp_servers]\nstartup_timeout = 10\n\n[mcp_servers.fs]\ncommand = "fs-mcp"\n')

    results = sync_registry_to_agents(["codex", "claude-code"])

    assert [result.added for result in results] == [["github"], ["github"]]
    assert "startup_timeout = 10" in codex_config.read_text()
