"""Tests for MCP server configuration models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from switchboard.config.models import (
    HttpServerConfig,
    MCPConfigFile,
    SseServerConfig,
    StdioServerConfig,
    is_valid_server_config,
    parse_server_config,
)


class TestParseServerConfig:
    def test_stdio(self) -> None:
        config = parse_server_config({"name": "fs", "transport": "stdio", "command": "npx", "args": ["-y", "x"]})
        assert isinstance(config, StdioServerConfig)
        assert config.args == ["-y", "x"]
        assert config.enabled is True

    def test_sse(self) -> None:
        config = parse_server_config({"name": "r", "transport": "sse", "url": "http://localhost:3001"})
        assert isinstance(config, SseServerConfig)

    def test_transport_inferred_from_command(self) -> None:
        assert isinstance(parse_server_config({"name": "fs", "command": "npx"}), StdioServerConfig)

    def test_transport_inferred_from_url(self) -> None:
        assert isinstance(parse_server_config({"name": "r", "url": "https://example.com/mcp"}), HttpServerConfig)

    def test_unknown_transport(self) -> None:
        with pytest.raises(ValidationError):
            parse_server_config({"name": "x", "transport": "websocket", "url": "ws://x"})

    def test_name_must_not_contain_separator(self) -> None:
        with pytest.raises(ValidationError):
            parse_server_config({"name": "a:b", "command": "npx"})

    def test_name_length(self) -> None:
        with pytest.raises(ValidationError):
            parse_server_config({"name": "", "command": "npx"})
        with pytest.raises(ValidationError):
            parse_server_config({"name": "x" * 121, "command": "npx"})

    def test_url_scheme(self) -> None:
        with pytest.raises(ValidationError):
            parse_server_config({"name": "r", "transport": "http", "url": "ftp://example.com"})

    def test_stdio_requires_command(self) -> None:
        with pytest.raises(ValidationError):
            parse_server_config({"name": "fs", "transport": "stdio"})


class TestIsValidServerConfig:
    def test_valid(self) -> None:
        assert is_valid_server_config({"name": "fs", "command": "npx"}) is True

    def test_invalid(self) -> None:
        assert is_valid_server_config({"name": "fs"}) is False
        assert is_valid_server_config({"name": "fs", "transport": "stdio", "command": ""}) is False


class TestMCPConfigFile:
    def test_names_filled_from_keys(self) -> None:
        config = MCPConfigFile.model_validate(
            {
                "mcpServers": {
                    "fs": {"command": "npx", "args": ["@mcp/fs"]},
                    "remote": {"transport": "sse", "url": "http://localhost:3001", "enabled": False},
                }
            }
        )
        assert config.mcp_servers["fs"].name == "fs"
        assert config.mcp_servers["remote"].enabled is False

    def test_empty(self) -> None:
        assert MCPConfigFile.model_validate({}).mcp_servers == {}

    def test_to_wire_drops_name_and_nulls(self) -> None:
        config = MCPConfigFile.model_validate({"mcpServers": {"fs": {"command": "npx"}}})
        assert config.to_wire() == {
            "mcpServers": {"fs": {"enabled": True, "transport": "stdio", "command": "npx", "args": []}}
        }
