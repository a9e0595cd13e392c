"""Tests for ``switchboard tools`` CLI command."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner

from switchboard.cli import main
from switchboard.protocol.models import ToolDefinition


def _fake_client(tools: list[ToolDefinition]) -> MagicMock:
    client = MagicMock()
    client.list_tools = AsyncMock(return_value=tools)
    client.close = AsyncMock()
    return client


class TestToolsDiscover:
    def test_discover_tools(self) -> None:
        client = _fake_client([ToolDefinition(name="read_file", description="Read a file")])

        with patch("switchboard.controller.register.connect_to_mcp_server", new=AsyncMock(return_value=client)):
            result = CliRunner().invoke(main, ["tools", "discover", "npx", "-y", "@mcp/fs"])

        assert result.exit_code == 0, result.output
        assert "read_file" in result.output
        client.close.assert_awaited_once()

    def test_discover_passes_transport(self) -> None:
        client = _fake_client([])
        connect = AsyncMock(return_value=client)

        with patch("switchboard.controller.register.connect_to_mcp_server", new=connect):
            result = CliRunner().invoke(main, ["tools", "discover", "http://localhost:3000/mcp", "-t", "http"])

        assert result.exit_code == 0
        config = connect.call_args.args[0]
        assert config.transport == "http"
        assert config.url == "http://localhost:3000/mcp"

    def test_discover_json(self) -> None:
        client = _fake_client([ToolDefinition(name="read_file", description="Read a file")])

        with patch("switchboard.controller.register.connect_to_mcp_server", new=AsyncMock(return_value=client)):
            result = CliRunner().invoke(main, ["tools", "discover", "npx", "--json"])

        assert json.loads(result.output)[0]["name"] == "read_file"

    def test_discover_no_tools(self) -> None:
        with patch(
            "switchboard.controller.register.connect_to_mcp_server",
            new=AsyncMock(return_value=_fake_client([])),
        ):
            result = CliRunner().invoke(main, ["tools", "discover", "npx"])

        assert result.exit_code == 0
        assert "No tools found" in result.output

    def test_discover_error(self) -> None:
        with patch(
            "switchboard.controller.register.connect_to_mcp_server",
            new=AsyncMock(side_effect=OSError("spawn failed")),
        ):
            result = CliRunner().invoke(main, ["tools", "discover", "bad-server"])

        assert result.exit_code == 1
        assert "Tool discovery failed" in result.output

    def test_discover_real_child_process(self, fake_server: tuple[str, list[str]]) -> None:
        command, args = fake_server
        result = CliRunner().invoke(main, ["tools", "discover", command, *args, "--json"])

        assert result.exit_code == 0, result.output
        assert [tool["name"] for tool in json.loads(result.output)] == ["echo", "add"]
