"""HTTP host for the MCP engine (Starlette).

Routes:

- ``POST /mcp`` — one JSON-RPC message per request.  The answer is JSON,
  or a single ``data:`` event when the client sends
  ``Accept: text/event-stream``.  ``Mcp-Session-Id`` is echoed back, or
  generated when the request has none.
- ``GET /mcp`` — long-lived event stream: an ``endpoint`` event naming
  the POST URL, then ``notification`` events and ``:ping`` keep-alives.
- ``GET /health`` — liveness.

All sessions share one engine (one tool registry); notifications it emits
are broadcast to every open stream.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, AsyncIterator

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from switchboard.client.pool import ConnectionPool
from switchboard.config.manager import MCPConfigManager
from switchboard.config.settings import Settings
from switchboard.controller.register import (
    Connector,
    make_connector,
    refresh_mcp_server_tools,
    register_all_tools,
)
from switchboard.protocol.errors import ErrorCode, McpError
from switchboard.protocol.models import JsonRpcNotification, JsonRpcResponse, parse_json, parse_message, request_id_of
from switchboard.protocol.server import MCPServer
from switchboard.protocol.session import SessionData, SessionStore

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
EVENT_STREAM = "text/event-stream"


def format_sse(data: str, event: str | None = None) -> str:
    """Encode one server-sent event."""
    lines = [f"event: {event}"] if event else []
    lines.extend(f"data: {line}" for line in data.splitlines() or [""])
    return "\n".join(lines) + "\n\n"


class McpHttpService:
    """State behind the HTTP routes: engine, sessions, pool and background tasks."""

    def __init__(
        self,
        settings: Settings,
        manager: MCPConfigManager,
        *,
        server: MCPServer | None = None,
        pool: ConnectionPool | None = None,
        connect: Connector | None = None,
    ) -> None:
        self.settings = settings
        self.manager = manager
        self.server = server or MCPServer(settings.server_info)
        self.pool = pool or ConnectionPool()
        self.sessions = SessionStore()
        self._connect = connect or make_connector(timeout=settings.request_timeout)
        self._streams: dict[str, asyncio.Queue[JsonRpcNotification]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self.server.set_emitter(self.broadcast)

    # -- lifecycle -----------------------------------------------------------

    async def startup(self) -> None:
        registered = await register_all_tools(self.server, self.pool, self.manager, connect=self._connect)
        logger.info(
            "MCP HTTP service ready: %d tools (%d proxied servers)",
            len(self.server.registry),
            len(registered),
        )
        self.manager.on_change(self._on_config_changed)
        self._spawn(self.manager.watch(self.settings.config_watch_interval))
        self._spawn(self._sweep_sessions())

    async def shutdown(self) -> None:
        self.manager.off_change(self._on_config_changed)
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.server.close(pool=self.pool)
        self.sessions.clear()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_config_changed(self) -> None:
        logger.info("Config changed - refreshing proxied tools")
        self._spawn(refresh_mcp_server_tools(self.server, self.pool, self.manager, connect=self._connect))

    async def _sweep_sessions(self) -> None:
        while True:
            await asyncio.sleep(self.settings.session_sweep_interval)
            self.sessions.cleanup_stale(self.settings.session_max_age)

    # -- sessions & notifications -------------------------------------------

    def session_for(self, session_id: str | None) -> SessionData:
        """Return the session named *session_id*, creating it when unknown."""
        if session_id:
            session = self.sessions.get(session_id)
            if session is not None:
                return session
        return self.sessions.create_with_shared_server(self.server, session_id)

    def broadcast(self, notification: JsonRpcNotification) -> None:
        for queue in self._streams.values():
            queue.put_nowait(notification)

    async def event_stream(self, session: SessionData) -> AsyncIterator[str]:
        """Yield the SSE frames of one ``GET /mcp`` connection."""
        queue: asyncio.Queue[JsonRpcNotification] = asyncio.Queue()
        self._streams[session.session_id] = queue
        try:
            yield format_sse(f"/mcp?sessionId={session.session_id}", event="endpoint")
            while True:
                try:
                    notification = await asyncio.wait_for(queue.get(), timeout=self.settings.ping_interval)
                except asyncio.TimeoutError:
                    self.sessions.get(session.session_id)
                    yield ":ping\n\n"
                    continue
                yield format_sse(json.dumps(notification.model_dump(exclude_none=True)), event="notification")
        finally:
            if self._streams.get(session.session_id) is queue:
                del self._streams[session.session_id]

    # -- routes --------------------------------------------------------------

    async def handle_post(self, request: Request) -> Response:
        wants_sse = EVENT_STREAM in request.headers.get("accept", "")
        session = self.session_for(request.headers.get(SESSION_HEADER) or request.query_params.get("sessionId"))
        headers = {SESSION_HEADER: session.session_id}

        body = await request.body()
        try:
            raw = parse_json(body)
        except McpError as exc:
            return self._reply(JsonRpcResponse.failure(None, exc), 400, wants_sse, headers)
        try:
            message = parse_message(raw)
        except McpError as exc:
            return self._reply(JsonRpcResponse.failure(request_id_of(raw), exc), 400, wants_sse, headers)

        try:
            response = await session.server.handle_message(message)
        except Exception as exc:
            logger.exception("Unexpected error handling MCP request")
            error = McpError("Internal error", ErrorCode.INTERNAL_ERROR, data=str(exc))
            return self._reply(JsonRpcResponse.failure(None, error), 500, wants_sse, headers)

        if response is None:
            return Response(status_code=202, headers=headers)
        return self._reply(response, 200, wants_sse, headers)

    async def handle_get(self, request: Request) -> Response:
        session = self.session_for(request.headers.get(SESSION_HEADER) or request.query_params.get("sessionId"))
        return StreamingResponse(
            self.event_stream(session),
            media_type=EVENT_STREAM,
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "Access-Control-Expose-Headers": SESSION_HEADER,
                SESSION_HEADER: session.session_id,
            },
        )

    async def handle_health(self, request: Request) -> Response:
        return JSONResponse({"status": "ok", "sessions": self.sessions.size, "tools": len(self.server.registry)})

    @staticmethod
    def _reply(response: JsonRpcResponse, status: int, wants_sse: bool, headers: dict[str, str]) -> Response:
        payload = response.to_wire()
        if wants_sse:
            return Response(
                format_sse(json.dumps(payload)),
                status_code=status,
                media_type=EVENT_STREAM,
                headers={**headers, "Cache-Control": "no-cache"},
            )
        return JSONResponse(payload, status_code=status, headers=headers)


def create_app(
    settings: Settings | None = None,
    manager: MCPConfigManager | None = None,
    *,
    service: McpHttpService | None = None,
) -> Starlette:
    """Build the Starlette application; the lifespan registers and tears down tools."""
    if service is None:
        settings = settings or Settings.from_env()
        service = McpHttpService(settings, manager or MCPConfigManager(settings.mcp_config))

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        await service.startup()
        try:
            yield
        finally:
            await service.shutdown()

    app = Starlette(
        routes=[
            Route("/mcp", service.handle_post, methods=["POST"]),
            Route("/mcp", service.handle_get, methods=["GET"]),
            Route("/health", service.handle_health, methods=["GET"]),
        ],
        lifespan=lifespan,
    )
    app.state.service = service
    return app


def serve_http(settings: Settings, manager: MCPConfigManager | None = None, *, log_level: str = "info") -> None:
    """Run the HTTP host with uvicorn until interrupted."""
    import uvicorn

    app = create_app(settings, manager)
    logger.info("Starting MCP HTTP server on %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=log_level)
