"""Tests for MCPConfigManager."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

from switchboard.config.manager import CONFIG_ENV_VAR, MCPConfigManager, default_config_path
from switchboard.config.models import HttpServerConfig, SseServerConfig, StdioServerConfig
from switchboard.protocol.errors import ConfigError


@pytest.fixture()
def manager(tmp_path: Path) -> MCPConfigManager:
    return MCPConfigManager(tmp_path / "var" / ".mcp.json")


def _stdio(name: str = "fs", enabled: bool = True) -> StdioServerConfig:
    return StdioServerConfig(name=name, command="npx", args=["@mcp/fs"], enabled=enabled)


class TestPaths:
    def test_default_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert default_config_path() == Path("var/.mcp.json")

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "custom.json"))
        assert MCPConfigManager().path == tmp_path / "custom.json"

    def test_backup_path(self, manager: MCPConfigManager) -> None:
        assert manager.backup_path.name == ".mcp.json.backup"


class TestReadWrite:
    def test_missing_file_is_empty(self, manager: MCPConfigManager) -> None:
        assert manager.get_all_servers() == []

    def test_upsert_and_read(self, manager: MCPConfigManager) -> None:
        manager.upsert_server(_stdio())

        assert manager.server_exists("fs")
        server = manager.get_server("fs")
        assert isinstance(server, StdioServerConfig)
        assert server.command == "npx"

        on_disk = json.loads(manager.path.read_text())
        assert on_disk["mcpServers"]["fs"]["command"] == "npx"
        assert "name" not in on_disk["mcpServers"]["fs"]

    def test_upsert_replaces(self, manager: MCPConfigManager) -> None:
        manager.upsert_server(_stdio())
        manager.upsert_server(HttpServerConfig(name="fs", url="http://localhost:9000/mcp"))
        assert isinstance(manager.get_server("fs"), HttpServerConfig)
        assert len(manager.get_all_servers()) == 1

    def test_write_creates_backup(self, manager: MCPConfigManager) -> None:
        manager.upsert_server(_stdio("one"))
        manager.upsert_server(_stdio("two"))

        backup = json.loads(manager.backup_path.read_text())
        assert list(backup["mcpServers"]) == ["one"]

    def test_corrupt_file_falls_back_to_backup(self, manager: MCPConfigManager) -> None:
        manager.upsert_server(_stdio("one"))
        manager.upsert_server(_stdio("two"))
        manager.path.write_text("{ not valid json")

        assert [s.name for s in manager.get_all_servers()] == ["one"]

    def test_corrupt_without_backup_is_empty(self, manager: MCPConfigManager) -> None:
        manager.path.parent.mkdir(parents=True)
        manager.path.write_text("{ not valid json")
        assert manager.get_all_servers() == []

    def test_invalid_entry_falls_back(self, manager: MCPConfigManager) -> None:
        manager.path.parent.mkdir(parents=True)
        manager.path.write_text(json.dumps({"mcpServers": {"bad": {"transport": "carrier-pigeon"}}}))
        assert manager.get_all_servers() == []

    def test_yaml_format(self, tmp_path: Path) -> None:
        manager = MCPConfigManager(tmp_path / "mcp.yaml")
        manager.upsert_server(SseServerConfig(name="remote", url="http://localhost:3001/sse"))

        data = yaml.safe_load(manager.path.read_text())
        assert data["mcpServers"]["remote"]["transport"] == "sse"
        assert isinstance(manager.get_server("remote"), SseServerConfig)

    def test_write_failure_raises_config_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        manager = MCPConfigManager(blocker / "nested" / ".mcp.json")
        with pytest.raises(ConfigError):
            manager.upsert_server(_stdio())


class TestServerOperations:
    def test_remove(self, manager: MCPConfigManager) -> None:
        manager.upsert_server(_stdio())
        assert manager.remove_server("fs") is True
        assert manager.remove_server("fs") is False
        assert manager.get_server("fs") is None

    def test_get_enabled(self, manager: MCPConfigManager) -> None:
        manager.upsert_server(_stdio("on"))
        manager.upsert_server(_stdio("off", enabled=False))
        assert [s.name for s in manager.get_enabled()] == ["on"]

    def test_enable_and_disable(self, manager: MCPConfigManager) -> None:
        manager.upsert_server(_stdio())
        manager.enable("fs", False)
        assert manager.get_server("fs").enabled is False  # type: ignore[union-attr]
        manager.enable("fs")
        assert manager.get_server("fs").enabled is True  # type: ignore[union-attr]

    def test_enable_missing(self, manager: MCPConfigManager) -> None:
        with pytest.raises(ConfigError, match='Server "ghost" not found'):
            manager.enable("ghost")


class TestCreate:
    def test_stdio(self) -> None:
        config = MCPConfigManager.create("fs", "stdio", "npx", ["-y", "@mcp/fs"], {"A": "1"})
        assert isinstance(config, StdioServerConfig)
        assert config.env == {"A": "1"}

    def test_sse_and_http(self) -> None:
        assert isinstance(MCPConfigManager.create("r", "sse", "http://x/sse"), SseServerConfig)
        assert isinstance(MCPConfigManager.create("r", "http", "http://x/mcp"), HttpServerConfig)

    def test_disabled(self) -> None:
        assert MCPConfigManager.create("fs", "stdio", "npx", enabled=False).enabled is False

    def test_unsupported_transport(self) -> None:
        with pytest.raises(ConfigError, match="Unsupported transport type: websocket"):
            MCPConfigManager.create("x", "websocket", "ws://x")

    def test_invalid_values(self) -> None:
        with pytest.raises(ConfigError):
            MCPConfigManager.create("x", "http", "not-a-url")

    def test_is_valid_config(self) -> None:
        assert MCPConfigManager.is_valid_config({"name": "fs", "command": "npx"}) is True
        assert MCPConfigManager.is_valid_config({"name": "fs", "transport": "sse"}) is False


class TestChangeNotification:
    def test_write_notifies(self, manager: MCPConfigManager) -> None:
        listener = MagicMock()
        manager.on_change(listener)
        manager.upsert_server(_stdio())
        listener.assert_called_once()

        manager.off_change(listener)
        manager.upsert_server(_stdio("other"))
        listener.assert_called_once()

    def test_failing_listener_is_logged(self, manager: MCPConfigManager, caplog: pytest.LogCaptureFixture) -> None:
        manager.on_change(MagicMock(side_effect=RuntimeError("x")))
        manager.upsert_server(_stdio())
        assert "config:changed listener failed" in caplog.text

    def test_check_for_changes_detects_external_write(self, manager: MCPConfigManager) -> None:
        manager.upsert_server(_stdio())
        listener = MagicMock()
        manager.on_change(listener)

        assert manager.check_for_changes() is False

        manager.path.write_text(json.dumps({"mcpServers": {}}))
        stat = manager.path.stat()
        os.utime(manager.path, (stat.st_atime, stat.st_mtime + 10))

        assert manager.check_for_changes() is True
        listener.assert_called_once()
        assert manager.check_for_changes() is False
