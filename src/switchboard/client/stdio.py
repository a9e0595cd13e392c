"""StdioClient — MCP server running as a child process.

Speaks newline-delimited JSON-RPC over the child's stdin/stdout; the
child's stderr is inherited so its diagnostics reach the terminal.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any

from switchboard.client.base import DEFAULT_CLIENT_INFO, BaseClient, initialize_params, raise_for_error
from switchboard.client.events import CONNECTED, DISCONNECTED, ERROR, MESSAGE
from switchboard.protocol.errors import (
    AlreadyConnectedError,
    ClientClosedError,
    McpError,
    NotConnectedError,
    ProcessExitedError,
    RequestTimeoutError,
    TransportError,
)
from switchboard.protocol.models import ServerInfo

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024


class StdioClient(BaseClient):
    """Spawns *command* once and correlates responses to requests by id.

    Each request waits at most *timeout* seconds.  When the process exits,
    every pending request fails with :class:`ProcessExitedError` and a
    ``disconnected`` event carries the exit code.

    Usage::

        client = StdioClient("npx", ["-y", "@modelcontextprotocol/server-everything"])
        await client.connect()
        tools = await client.list_tools()
        await client.close()
    """

    transport_name = "stdio"

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        timeout: float = 30.0,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        initialize: bool = True,
        client_info: ServerInfo = DEFAULT_CLIENT_INFO,
    ) -> None:
        super().__init__()
        self._command = command
        self._args = list(args or [])
        self._timeout = timeout
        self._cwd = cwd
        self._env = env
        self._initialize = initialize
        self._client_info = client_info
        self._process: asyncio.subprocess.Process | None = None
        self._reader: asyncio.Task[None] | None = None
        self._buffer = b""
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._request_id = 0
        self._closed = False

    @property
    def connected(self) -> bool:
        return not self._closed and self._process is not None and self._process.returncode is None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def connect(self) -> None:
        """Spawn the process and run the ``initialize`` handshake."""
        if self._process is not None:
            msg = "Process already spawned"
            raise AlreadyConnectedError(msg)
        if self._closed:
            msg = "Client is closed"
            raise ClientClosedError(msg)

        env = {**os.environ, **self._env} if self._env else None
        try:
            self._process = await asyncio.create_subprocess_exec(
                self._command,
                *self._args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                cwd=self._cwd,
                env=env,
            )
        except OSError as exc:
            self.events.emit(ERROR, {"error": exc})
            raise TransportError(f"Failed to spawn process: {exc}") from exc

        logger.info("Spawned MCP server %s (pid %s)", self._command, self._process.pid)
        self._reader = asyncio.create_task(self._read_stdout(self._process))
        asyncio.get_running_loop().call_soon(self.events.emit, CONNECTED)

        if self._initialize:
            try:
                await self.request("initialize", initialize_params(self._client_info))
                await self._write({"jsonrpc": "2.0", "method": "notifications/initialized"})
            except BaseException:
                await self.close()
                raise

    async def close(self) -> None:
        """Close stdin and terminate the process; idempotent."""
        self._closed = True
        process = self._process
        if process is None:
            return
        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        if process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("MCP server %s did not terminate; killing it", self._command)
                process.kill()
                await process.wait()
        if self._reader is not None:
            await self._reader

    def feed(self, data: bytes) -> None:
        """Consume a chunk of stdout, keeping any incomplete trailing line."""
        self._buffer += data
        *lines, self._buffer = self._buffer.split(b"\n")
        for line in lines:
            if line.strip():
                self._handle_line(line)

    def _handle_line(self, line: bytes) -> None:
        try:
            message = json.loads(line)
        except ValueError as exc:
            error = McpError(f"Failed to parse JSON: {line[:200]!r}")
            error.__cause__ = exc
            self.events.emit(ERROR, {"error": error})
            return
        try:
            self._dispatch(message)
        except Exception as exc:
            logger.warning("Dropping unusable message from %s: %s", self._command, exc)
            self.events.emit(ERROR, {"error": exc})

    def _dispatch(self, message: Any) -> None:
        self.events.emit(MESSAGE, {"message": message})
        if not isinstance(message, dict):
            return
        request_id = message.get("id")
        if not isinstance(request_id, int) or isinstance(request_id, bool):
            return
        future = self._pending.get(request_id)
        if future is None or future.done():
            return
        try:
            future.set_result(raise_for_error(message))
        except McpError as exc:
            future.set_exception(exc)

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        while True:
            chunk = await process.stdout.read(_READ_CHUNK)
            if not chunk:
                break
            self.feed(chunk)
        code = await process.wait()
        self._on_exit(code)

    def _on_exit(self, code: int | None) -> None:
        self._closed = True
        logger.info("MCP server %s exited with code %s", self._command, code)
        self.events.emit(DISCONNECTED, {"code": code})
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(ProcessExitedError(code))

    async def _send_request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        if self._closed:
            msg = "Client is closed"
            raise ClientClosedError(msg)
        if self._process is None:
            msg = "Client not connected - call connect() first"
            raise NotConnectedError(msg)

        self._request_id += 1
        request_id = self._request_id
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            payload["params"] = params
        try:
            await self._write(payload)
            return await asyncio.wait_for(future, timeout=self._timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(method, self._timeout) from None
        finally:
            self._pending.pop(request_id, None)

    async def _write(self, payload: dict[str, Any]) -> None:
        assert self._process is not None
        stdin = self._process.stdin
        if stdin is None or stdin.is_closing():
            msg = "Client is closed"
            raise ClientClosedError(msg)
        stdin.write((json.dumps(payload) + "\n").encode())
        try:
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise TransportError(f"Failed to write to process: {exc}") from exc
