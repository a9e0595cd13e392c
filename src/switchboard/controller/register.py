"""Tool registration — local tools plus tools proxied from remote MCP servers.

Proxied tools are registered as ``"{server}:{tool}"``.  Each one holds a
reference on its server's pooled connection; unregistering the last one
closes the connection.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit

from switchboard.client.base import DEFAULT_CLIENT_INFO, MCPClient
from switchboard.client.http import HttpClient
from switchboard.client.pool import ConnectionPool
from switchboard.client.sse import SseClient
from switchboard.client.stdio import StdioClient
from switchboard.config.manager import MCPConfigManager
from switchboard.config.models import (
    HttpServerConfig,
    MCPServerConfig,
    SseServerConfig,
    StdioServerConfig,
)
from switchboard.controller.tools import LOCAL_TOOLS
from switchboard.protocol.errors import ConfigError
from switchboard.protocol.models import ProgressToken, ServerInfo, ToolDefinition, ToolResult
from switchboard.protocol.registry import ToolCleanup, ToolHandler
from switchboard.protocol.server import MCPServer
from switchboard.utils.telemetry import ATTR_SERVER_NAME, ATTR_TOOL_NAME, get_tracer, traced

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

TOOL_SEPARATOR = ":"

Connector = Callable[[MCPServerConfig], Awaitable[MCPClient]]


def proxied_name(server_name: str, tool_name: str) -> str:
    return f"{server_name}{TOOL_SEPARATOR}{tool_name}"


async def connect_to_mcp_server(
    config: MCPServerConfig,
    *,
    client_info: ServerInfo = DEFAULT_CLIENT_INFO,
    timeout: float = 30.0,
) -> MCPClient:
    """Open a client for *config*, whatever its transport."""
    if isinstance(config, StdioServerConfig):
        stdio = StdioClient(
            config.command,
            config.args,
            timeout=timeout,
            cwd=os.getcwd(),
            env=config.env,
            client_info=client_info,
        )
        await stdio.connect()
        return stdio

    if isinstance(config, SseServerConfig):
        parts = urlsplit(config.url)
        sse = SseClient(
            f"{parts.scheme}://{parts.netloc}",
            endpoint=parts.path or "/sse",
            timeout=timeout,
            client_info=client_info,
        )
        await sse.connect()
        return sse

    if isinstance(config, HttpServerConfig):
        http = HttpClient(config.url, timeout=timeout)
        await http.connect()
        return http

    raise ConfigError(f"Unsupported transport: {getattr(config, 'transport', config)!r}")


def make_connector(*, timeout: float = 30.0, client_info: ServerInfo = DEFAULT_CLIENT_INFO) -> Connector:
    """Bind per-request *timeout* and *client_info* into a connector."""
    return functools.partial(connect_to_mcp_server, timeout=timeout, client_info=client_info)


def register_own_tools(server: MCPServer) -> None:
    for tool in LOCAL_TOOLS:
        tool.register(server)


def _forward(connection: MCPClient, server_name: str, tool_name: str) -> ToolHandler:
    async def handler(arguments: dict[str, Any], progress_token: ProgressToken | None = None) -> ToolResult:
        attributes = {ATTR_SERVER_NAME: server_name, ATTR_TOOL_NAME: tool_name}
        with traced(_tracer, "mcp.proxy.call", attributes):
            return await connection.call_tool(tool_name, arguments)

    return handler


def _release(pool: ConnectionPool, server_name: str) -> ToolCleanup:
    async def cleanup() -> None:
        await pool.release(server_name)

    return cleanup


async def _list_remote_tools(
    config: MCPServerConfig,
    pool: ConnectionPool,
    connect: Connector,
) -> tuple[MCPClient, list[ToolDefinition]]:
    connection = pool.get(config.name)
    fresh = connection is None
    if connection is None:
        connection = await connect(config)
        pool.set(config.name, connection)
    try:
        tools = await connection.list_tools()
    except Exception:
        if fresh:
            await _discard(pool, config.name, connection)
        raise
    if fresh and not tools:
        await _discard(pool, config.name, connection)
    return connection, tools


async def _discard(pool: ConnectionPool, name: str, connection: MCPClient) -> None:
    """Drop a connection no registered tool refers to."""
    if pool.get(name) is connection:
        pool.delete(name)
    await connection.close()


async def register_mcp_server_tools(
    server: MCPServer,
    pool: ConnectionPool,
    manager: MCPConfigManager,
    *,
    connect: Connector = connect_to_mcp_server,
) -> dict[str, int]:
    """Connect to every enabled server concurrently and register its tools.

    A server that cannot be reached or listed is logged and skipped; the
    others still register.  Returns the number of tools registered per
    server.
    """
    try:
        enabled = manager.get_enabled()
    except Exception:
        logger.warning("Failed to load enabled MCP servers", exc_info=True)
        return {}

    results = await asyncio.gather(
        *(_list_remote_tools(config, pool, connect) for config in enabled),
        return_exceptions=True,
    )

    registered: dict[str, int] = {}
    for config, result in zip(enabled, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.warning("Failed to register tools from MCP server %s: %s", config.name, result)
            continue

        connection, tools = result
        if not tools:
            continue

        # No await between acquire and the registrations below.
        pool.acquire(config.name, len(tools))
        for tool in tools:
            definition = ToolDefinition(
                name=proxied_name(config.name, tool.name),
                description=f"[{config.name}] {tool.description}",
                input_schema=tool.input_schema,
            )
            server.register(definition, _forward(connection, config.name, tool.name), _release(pool, config.name))
        registered[config.name] = len(tools)
        logger.info("Registered %d tools from MCP server: %s", len(tools), config.name)
    return registered


async def register_all_tools(
    server: MCPServer,
    pool: ConnectionPool,
    manager: MCPConfigManager,
    *,
    connect: Connector = connect_to_mcp_server,
) -> dict[str, int]:
    register_own_tools(server)
    return await register_mcp_server_tools(server, pool, manager, connect=connect)


async def refresh_mcp_server_tools(
    server: MCPServer,
    pool: ConnectionPool,
    manager: MCPConfigManager,
    *,
    connect: Connector = connect_to_mcp_server,
) -> dict[str, int]:
    """Re-sync proxied tools after a configuration change.

    Tools of servers that are no longer enabled are unregistered (closing
    their connections); enabled servers are registered again, which
    overwrites their existing entries.
    """
    try:
        enabled = {config.name for config in manager.get_enabled()}
    except Exception:
        logger.warning("Failed to load enabled MCP servers", exc_info=True)
        return {}

    for name in server.registry.names():
        prefix, sep, _ = name.partition(TOOL_SEPARATOR)
        if sep and prefix not in enabled:
            server.unregister(name)

    registered = await register_mcp_server_tools(server, pool, manager, connect=connect)
    server.emit_tool_list_changed()
    return registered
