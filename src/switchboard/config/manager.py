"""MCPConfigManager — read, write and watch the MCP server configuration file.

Typical usage::

    manager = MCPConfigManager()              # $SWITCHBOARD_MCP_CONFIG or var/.mcp.json
    manager.upsert_server(MCPConfigManager.create("fs", "stdio", "npx", ["@mcp/fs"]))
    for server in manager.get_enabled():
        print(server.name, server.transport)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import ValidationError

from switchboard.config.models import (
    HttpServerConfig,
    MCPConfigFile,
    MCPServerConfig,
    SseServerConfig,
    StdioServerConfig,
    is_valid_server_config,
)
from switchboard.protocol.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SWITCHBOARD_MCP_CONFIG"
DEFAULT_CONFIG_PATH = "var/.mcp.json"

ChangeListener = Callable[[], None]


def default_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def _load(raw: str, fmt: str) -> Any:
    if fmt == "json":
        return json.loads(raw)
    return yaml.safe_load(raw)


class MCPConfigManager:
    """File-backed store of :data:`MCPServerConfig` entries.

    Every write first copies the previous file to ``<path>.backup``; a
    corrupt file is recovered from that backup on read.  Listeners
    registered with :meth:`on_change` run after each write and whenever
    :meth:`watch` sees the file change on disk.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else default_config_path()
        self._listeners: list[ChangeListener] = []
        self._last_mtime: float | None = self._mtime()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def backup_path(self) -> Path:
        return self._path.with_name(self._path.name + ".backup")

    @property
    def _format(self) -> str:
        return "yaml" if self._path.suffix in (".yaml", ".yml") else "json"

    # -- listeners -----------------------------------------------------------

    def on_change(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def off_change(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("config:changed listener failed")

    # -- file I/O ------------------------------------------------------------

    def read_config(self) -> MCPConfigFile:
        """Load the file, falling back to the backup, then to an empty config."""
        try:
            return self._read(self._path)
        except FileNotFoundError:
            return MCPConfigFile()
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.error("Config file %s is corrupt, attempting to load backup: %s", self._path, exc)

        try:
            config = self._read(self.backup_path)
        except FileNotFoundError:
            pass
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.error("Backup file %s is also corrupt: %s", self.backup_path, exc)
        else:
            logger.info("Loaded MCP config from backup %s", self.backup_path)
            return config

        logger.error("Failed to parse MCP config %s, using an empty config", self._path)
        return MCPConfigFile()

    def _read(self, path: Path) -> MCPConfigFile:
        # ValidationError subclasses ValueError; json.JSONDecodeError does too.
        raw = path.read_text(encoding="utf-8")
        data = _load(raw, self._format) if raw.strip() else {}
        return MCPConfigFile.model_validate(data or {})

    def write_config(self, config: MCPConfigFile) -> None:
        """Write *config*, backing up the previous file, and notify listeners."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(f"Failed to create config directory: {exc}") from exc

        data = config.to_wire()
        if self._format == "json":
            content = json.dumps(data, indent=2) + "\n"
        else:
            content = yaml.safe_dump(data, sort_keys=False)
        try:
            if self._path.exists():
                shutil.copyfile(self._path, self.backup_path)
            self._path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Failed to write MCP config: {exc}") from exc

        self._last_mtime = self._mtime()
        self._notify()

    # -- server entries ------------------------------------------------------

    @staticmethod
    def create(
        name: str,
        transport: str,
        command_or_url: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        enabled: bool = True,
    ) -> MCPServerConfig:
        """Build a validated server config from CLI-style arguments.

        Raises:
            ConfigError: Unsupported transport or invalid values.
        """
        try:
            if transport == "stdio":
                return StdioServerConfig(name=name, command=command_or_url, args=args or [], env=env, enabled=enabled)
            if transport == "sse":
                return SseServerConfig(name=name, url=command_or_url, env=env, enabled=enabled)
            if transport == "http":
                return HttpServerConfig(name=name, url=command_or_url, env=env, enabled=enabled)
        except ValidationError as exc:
            raise ConfigError(f"Invalid server config for {name!r}: {exc}") from exc
        raise ConfigError(f"Unsupported transport type: {transport}")

    @staticmethod
    def is_valid_config(data: Any) -> bool:
        return is_valid_server_config(data)

    def get_all_servers(self) -> list[MCPServerConfig]:
        return list(self.read_config().mcp_servers.values())

    def get_server(self, name: str) -> MCPServerConfig | None:
        return self.read_config().mcp_servers.get(name)

    def server_exists(self, name: str) -> bool:
        return self.get_server(name) is not None

    def upsert_server(self, server: MCPServerConfig) -> None:
        config = self.read_config()
        config.mcp_servers[server.name] = server
        self.write_config(config)

    def remove_server(self, name: str) -> bool:
        config = self.read_config()
        if config.mcp_servers.pop(name, None) is None:
            return False
        self.write_config(config)
        return True

    def get_enabled(self) -> list[MCPServerConfig]:
        return [server for server in self.get_all_servers() if server.enabled]

    def enable(self, name: str, enabled: bool = True) -> None:
        """Set the ``enabled`` flag of *name*.

        Raises:
            ConfigError: No server has that name.
        """
        config = self.read_config()
        server = config.mcp_servers.get(name)
        if server is None:
            raise ConfigError(f'Server "{name}" not found')
        config.mcp_servers[name] = server.model_copy(update={"enabled": enabled})
        self.write_config(config)

    # -- watching ------------------------------------------------------------

    def _mtime(self) -> float | None:
        try:
            return self._path.stat().st_mtime
        except OSError:
            return None

    def check_for_changes(self) -> bool:
        """Notify listeners if the file changed on disk since last seen."""
        mtime = self._mtime()
        if mtime == self._last_mtime:
            return False
        self._last_mtime = mtime
        logger.info("MCP config %s changed on disk", self._path)
        self._notify()
        return True

    async def watch(self, interval: float = 1.0) -> None:
        """Poll for external changes until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.check_for_changes()
