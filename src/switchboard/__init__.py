"""switchboard — MCP tool server and aggregator over stdio, SSE and HTTP.

The top-level names below are imported on first access, so ``import
switchboard`` stays cheap for the CLI.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from switchboard.client.pool import ConnectionPool as ConnectionPool
    from switchboard.config.manager import MCPConfigManager as MCPConfigManager
    from switchboard.config.settings import Settings as Settings
    from switchboard.http.app import create_app as create_app
    from switchboard.protocol.errors import McpError as McpError
    from switchboard.protocol.registry import ToolRegistry as ToolRegistry
    from switchboard.protocol.server import MCPServer as MCPServer
    from switchboard.protocol.session import SessionStore as SessionStore

_LAZY = {
    "ConnectionPool": "switchboard.client.pool",
    "MCPConfigManager": "switchboard.config.manager",
    "Settings": "switchboard.config.settings",
    "create_app": "switchboard.http.app",
    "McpError": "switchboard.protocol.errors",
    "ToolRegistry": "switchboard.protocol.registry",
    "MCPServer": "switchboard.protocol.server",
    "SessionStore": "switchboard.protocol.session",
}

__all__ = ["__version__", *_LAZY]


def __getattr__(name: str) -> object:
    try:
        module_path = _LAZY[name]
    except KeyError:
        raise AttributeError(f"module 'switchboard' has no attribute {name!r}") from None
    return getattr(importlib.import_module(module_path), name)
