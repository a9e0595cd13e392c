"""Stdio host — newline-delimited JSON-RPC over this process's stdin/stdout.

stdout carries protocol messages only; diagnostics go to stderr through
logging.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import AsyncIterable, Callable

from switchboard.client.pool import ConnectionPool
from switchboard.config.manager import MCPConfigManager
from switchboard.config.settings import Settings
from switchboard.controller.register import make_connector, register_all_tools
from switchboard.protocol.errors import ErrorCode, McpError
from switchboard.protocol.models import JsonRpcNotification, JsonRpcResponse
from switchboard.protocol.server import MCPServer

logger = logging.getLogger(__name__)

_STDIN_LIMIT = 16 * 1024 * 1024

Writer = Callable[[str], None]


class StdioServer:
    """Feeds lines to an engine and writes one response line per request.

    Lines are handled concurrently so that a ``notifications/cancelled``
    can arrive while a ``tools/call`` is still running.
    """

    def __init__(self, server: MCPServer, write: Writer) -> None:
        self._server = server
        self._write = write
        self._tasks: set[asyncio.Task[None]] = set()
        server.set_emitter(self._send_notification)

    async def serve(self, lines: AsyncIterable[bytes | str]) -> None:
        """Process *lines* until exhausted, then wait for in-flight requests."""
        async for line in lines:
            if not line.strip():
                continue
            task = asyncio.create_task(self.handle_line(line))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def handle_line(self, line: bytes | str) -> None:
        try:
            text = line.decode() if isinstance(line, bytes) else line
        except UnicodeDecodeError as exc:
            error = McpError("Parse error", ErrorCode.PARSE_ERROR, data=str(exc))
            self._emit(JsonRpcResponse.failure(None, error).to_wire())
            return
        response = await self._server.handle_raw(text)
        if response is not None:
            self._emit(response.to_wire())

    def _send_notification(self, notification: JsonRpcNotification) -> None:
        self._emit(notification.model_dump(exclude_none=True))

    def _emit(self, payload: dict[str, object]) -> None:
        self._write(json.dumps(payload) + "\n")


def _write_stdout(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=_STDIN_LIMIT)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


async def run_stdio_server(settings: Settings, manager: MCPConfigManager | None = None) -> None:
    """Serve the local and proxied tools on stdin/stdout until stdin closes."""
    server = MCPServer(settings.server_info)
    pool = ConnectionPool()
    manager = manager or MCPConfigManager(settings.mcp_config)
    await register_all_tools(server, pool, manager, connect=make_connector(timeout=settings.request_timeout))

    logger.info("MCP server %s v%s started with stdio transport", settings.name, settings.version)
    logger.info("Tools available: %s", ", ".join(server.registry.names()))

    try:
        await StdioServer(server, _write_stdout).serve(await _stdin_reader())
    finally:
        logger.info("Stdin closed, shutting down")
        await server.close(pool=pool)
