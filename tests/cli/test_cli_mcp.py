"""Tests for ``switchboard mcp`` CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from switchboard.cli import main
from switchboard.config.manager import MCPConfigManager
from switchboard.config.models import StdioServerConfig


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / ".mcp.json"


def _invoke(config_path: Path, *args: str) -> object:
    runner = CliRunner()
    return runner.invoke(main, ["--config", str(config_path), "mcp", *args])


class TestMcpAdd:
    def test_add_stdio_with_force(self, config_path: Path) -> None:
        result = _invoke(config_path, "add", "fs", "npx", "-y", "@mcp/fs", "--force", "--env", "TOKEN=abc")

        assert result.exit_code == 0, result.output
        assert "Added MCP server 'fs'" in result.output
        server = MCPConfigManager(config_path).get_server("fs")
        assert isinstance(server, StdioServerConfig)
        assert server.args == ["-y", "@mcp/fs"]
        assert server.env == {"TOKEN": "abc"}

    def test_add_checks_server(self, config_path: Path) -> None:
        with patch("switchboard.cli_commands.mcp.count_server_tools", new=AsyncMock(return_value=4)) as count_tools:
            result = _invoke(config_path, "add", "remote", "http://localhost:3001/mcp", "--transport", "http")

        assert result.exit_code == 0, result.output
        assert "4 tools" in result.output
        count_tools.assert_awaited_once()
        assert MCPConfigManager(config_path).get_server("remote").transport == "http"  # type: ignore[union-attr]

    def test_add_unreachable_server(self, config_path: Path) -> None:
        with patch(
            "switchboard.cli_commands.mcp.count_server_tools",
            new=AsyncMock(side_effect=ConnectionError("refused")),
        ):
            result = _invoke(config_path, "add", "remote", "http://localhost:1/mcp", "-t", "http")

        assert result.exit_code == 1
        assert "Failed to connect" in result.output
        assert not config_path.exists()

    def test_add_disabled(self, config_path: Path) -> None:
        result = _invoke(config_path, "add", "fs", "npx", "--force", "--disabled")
        assert result.exit_code == 0
        assert MCPConfigManager(config_path).get_server("fs").enabled is False  # type: ignore[union-attr]

    def test_add_invalid_url(self, config_path: Path) -> None:
        result = _invoke(config_path, "add", "r", "not-a-url", "--transport", "sse", "--force")
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_add_bad_env(self, config_path: Path) -> None:
        result = _invoke(config_path, "add", "fs", "npx", "--force", "--env", "NOVALUE")
        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output


class TestMcpAddJson:
    def test_add_json(self, config_path: Path) -> None:
        result = _invoke(config_path, "add-json", "fs", '{"command": "npx", "args": ["@mcp/fs"]}')

        assert result.exit_code == 0, result.output
        server = MCPConfigManager(config_path).get_server("fs")
        assert isinstance(server, StdioServerConfig)

    def test_invalid_json(self, config_path: Path) -> None:
        result = _invoke(config_path, "add-json", "fs", "{nope")
        assert result.exit_code == 1
        assert "Failed to add server from JSON" in result.output

    def test_invalid_config(self, config_path: Path) -> None:
        result = _invoke(config_path, "add-json", "fs", '{"transport": "stdio"}')
        assert result.exit_code == 1
        assert "Failed to add server from JSON" in result.output

    def test_not_an_object(self, config_path: Path) -> None:
        result = _invoke(config_path, "add-json", "fs", "[1, 2]")
        assert result.exit_code == 1


class TestMcpListGetRemove:
    @pytest.fixture(autouse=True)
    def _seed(self, config_path: Path) -> None:
        manager = MCPConfigManager(config_path)
        manager.upsert_server(StdioServerConfig(name="fs", command="npx", args=["@mcp/fs"], env={"SECRET": "x"}))

    def test_list_table(self, config_path: Path) -> None:
        result = _invoke(config_path, "list")
        assert result.exit_code == 0
        assert "fs" in result.output
        assert "stdio" in result.output

    def test_list_json(self, config_path: Path) -> None:
        result = _invoke(config_path, "list", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output)["mcpServers"]["fs"]["command"] == "npx"

    def test_list_empty(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path / "empty.json", "list")
        assert result.exit_code == 0
        assert "No MCP servers configured" in result.output

    def test_get(self, config_path: Path) -> None:
        result = _invoke(config_path, "get", "fs")
        assert result.exit_code == 0
        assert "npx @mcp/fs" in result.output
        assert "SECRET=***" in result.output

    def test_get_json(self, config_path: Path) -> None:
        result = _invoke(config_path, "get", "fs", "--json")
        assert json.loads(result.output)["args"] == ["@mcp/fs"]

    def test_get_missing(self, config_path: Path) -> None:
        result = _invoke(config_path, "get", "ghost")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_remove(self, config_path: Path) -> None:
        result = _invoke(config_path, "remove", "fs")
        assert result.exit_code == 0
        assert MCPConfigManager(config_path).get_server("fs") is None

    def test_remove_missing(self, config_path: Path) -> None:
        result = _invoke(config_path, "remove", "ghost")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_disable_and_enable(self, config_path: Path) -> None:
        result = _invoke(config_path, "disable", "fs")
        assert result.exit_code == 0
        assert MCPConfigManager(config_path).get_server("fs").enabled is False  # type: ignore[union-attr]

        result = _invoke(config_path, "enable", "fs")
        assert result.exit_code == 0
        assert MCPConfigManager(config_path).get_server("fs").enabled is True  # type: ignore[union-attr]

    def test_enable_missing(self, config_path: Path) -> None:
        result = _invoke(config_path, "enable", "ghost")
        assert result.exit_code == 1
        assert "not found" in result.output
