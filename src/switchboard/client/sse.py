"""Server-push (SSE) transport.

:class:`SSESession` keeps one long-lived ``GET`` event stream open,
reconnecting with exponential backoff until it is closed.  The server
announces where to POST requests with an ``endpoint`` event whose data
carries the session id as a query parameter; responses come back either
on the stream (``202 Accepted``) or directly in the POST body.

:class:`SseClient` wraps a session behind the common client contract and
waits a bounded time for the handshake before declaring the connection
failed.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from switchboard.client.base import DEFAULT_CLIENT_INFO, BaseClient, initialize_params, raise_for_error
from switchboard.client.events import (
    CONNECTED,
    DISCONNECTED,
    ERROR,
    RECONNECTING,
    SESSION_CHANGED,
    ClientEvents,
)
from switchboard.protocol.errors import (
    AlreadyConnectedError,
    ClientClosedError,
    HandshakeError,
    McpError,
    NotConnectedError,
    RequestTimeoutError,
    TransportError,
)
from switchboard.protocol.models import ServerInfo

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"[?&]session[_-]?id=([^&]+)", re.IGNORECASE)


@dataclass
class SseEvent:
    """One dispatched server-sent event."""

    event: str
    data: str


class SseParser:
    """Incremental ``text/event-stream`` line parser.

    Feed it one line at a time (without the trailing newline); a blank
    line dispatches the accumulated event.
    """

    def __init__(self) -> None:
        self._event = "message"
        self._data: list[str] = []

    def feed(self, line: str) -> SseEvent | None:
        line = line.rstrip("\r")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._event = value.strip() or "message"
        elif field == "data":
            self._data.append(value)
        return None

    def _dispatch(self) -> SseEvent | None:
        event, data = self._event, self._data
        self._event, self._data = "message", []
        if not data:
            return None
        return SseEvent(event=event, data="\n".join(data))


def _decode(data: str) -> Any:
    try:
        return json.loads(data)
    except ValueError:
        return data


class SSESession:
    """A reconnecting event stream plus the POST side of the exchange.

    Events are emitted on *events*: ``connected``, ``disconnected``,
    ``reconnecting``, ``session-changed``, ``error`` and ``sse:<event>``
    for every event read from the stream.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        events: ClientEvents | None = None,
        headers: dict[str, str] | None = None,
        request_timeout: float = 30.0,
        reconnect_delay: float = 0.5,
        max_reconnect_delay: float = 30.0,
    ) -> None:
        self._client = client
        self._url = url
        self.events = events or ClientEvents()
        self._headers = dict(headers or {})
        self._request_timeout = request_timeout
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._session_id: str | None = None
        self._endpoint: str | None = None
        self._waiters: dict[int, asyncio.Future[Any]] = {}
        self._request_id = 0
        self._task: asyncio.Task[None] | None = None
        self._streaming = False
        self._reconnecting = False
        self._closed = False

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @session_id.setter
    def session_id(self, value: str | None) -> None:
        old = self._session_id
        self._session_id = value
        if old != value:
            self.events.emit(SESSION_CHANGED, {"old_id": old, "new_id": value})

    @property
    def endpoint(self) -> str | None:
        """Absolute POST URL announced by the server, once known."""
        return self._endpoint

    @property
    def connected(self) -> bool:
        return self._streaming and not self._reconnecting and not self._closed

    @property
    def reconnecting(self) -> bool:
        return self._reconnecting

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Begin reading the stream in a background task."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._streaming = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        for future in self._waiters.values():
            if not future.done():
                future.set_exception(ClientClosedError("Session is closed"))
        self._waiters.clear()
        self.events.emit(DISCONNECTED, {"code": None})

    async def send_request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """POST a request to the announced endpoint and return its result."""
        if self._closed:
            msg = "Session is closed"
            raise ClientClosedError(msg)
        if self._endpoint is None:
            msg = "Not connected - no endpoint URL received from SSE stream"
            raise NotConnectedError(msg)

        self._request_id += 1
        request_id = self._request_id
        payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            payload["params"] = params

        # Register before posting; a fast server may answer on the stream
        # before the POST returns.
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters[request_id] = future
        try:
            try:
                response = await self._client.post(self._endpoint, json=payload, headers=self._request_headers())
            except httpx.HTTPError as exc:
                self.events.emit(ERROR, {"error": exc})
                raise TransportError(exc) from exc

            if response.status_code == 202:
                try:
                    return await asyncio.wait_for(future, timeout=self._request_timeout)
                except asyncio.TimeoutError:
                    raise RequestTimeoutError(method, self._request_timeout) from None
            if response.is_error:
                msg = f"HTTP {response.status_code}: {response.reason_phrase}"
                raise TransportError(msg)
            try:
                body = response.json()
            except ValueError as exc:
                raise TransportError(f"Invalid JSON response for {method}") from exc
            return raise_for_error(body) if isinstance(body, dict) else body
        finally:
            self._waiters.pop(request_id, None)

    def _request_headers(self) -> dict[str, str]:
        headers = dict(self._headers)
        if self._session_id:
            headers["Mcp-Session-Id"] = self._session_id
        return headers

    async def _run(self) -> None:
        attempt = 0
        while not self._closed:
            try:
                await self._read_stream()
                attempt = 0
            except httpx.HTTPError as exc:
                logger.debug("SSE stream %s failed: %s", self._url, exc)
                self.events.emit(ERROR, {"error": TransportError(exc)})
            self._streaming = False
            if self._closed:
                break
            attempt += 1
            self._reconnecting = True
            self.events.emit(RECONNECTING, {"attempt": attempt})
            delay = min(self._reconnect_delay * 2 ** (attempt - 1), self._max_reconnect_delay)
            await asyncio.sleep(delay)

    async def _read_stream(self) -> None:
        headers = self._request_headers()
        headers["Accept"] = "text/event-stream"
        async with self._client.stream("GET", self._url, headers=headers) as response:
            response.raise_for_status()
            self._streaming = True
            self._reconnecting = False
            self.events.emit(CONNECTED)
            parser = SseParser()
            async for line in response.aiter_lines():
                event = parser.feed(line)
                if event is None:
                    continue
                try:
                    self._dispatch(event)
                except Exception as exc:
                    logger.warning("Dropping unusable SSE event from %s: %s", self._url, exc)
                    self.events.emit(ERROR, {"error": exc})

    def _dispatch(self, event: SseEvent) -> None:
        data = _decode(event.data)
        if event.event == "endpoint" and isinstance(data, str):
            self._endpoint = str(httpx.URL(self._url).join(data.strip()))
            match = SESSION_ID_PATTERN.search(data)
            if match:
                self.session_id = match.group(1)
        elif isinstance(data, dict) and isinstance(data.get("sessionId"), str):
            self.session_id = data["sessionId"]

        if isinstance(data, dict) and ("result" in data or "error" in data):
            request_id = data.get("id")
            if isinstance(request_id, bool) or not isinstance(request_id, int):
                future = None
            else:
                future = self._waiters.get(request_id)
            if future is not None and not future.done():
                try:
                    future.set_result(raise_for_error(data))
                except McpError as exc:
                    future.set_exception(exc)

        self.events.emit(f"sse:{event.event}", {"data": data})


class SseClient(BaseClient):
    """MCP client over a server-push event stream.

    ``connect()`` opens ``GET <base_url><endpoint>`` and polls for the
    session id and POST endpoint, *handshake_attempts* times every
    *handshake_interval* seconds.  Requests are not retried across a
    reconnect.

    Usage::

        client = SseClient("http://localhost:3000")
        await client.connect()
        result = await client.call_tool("health", {})
        await client.close()
    """

    transport_name = "sse"

    def __init__(
        self,
        base_url: str,
        *,
        endpoint: str = "/sse",
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        client_info: ServerInfo = DEFAULT_CLIENT_INFO,
        capabilities: dict[str, Any] | None = None,
        handshake_attempts: int = 50,
        handshake_interval: float = 0.1,
        initialize: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self._url = str(httpx.URL(base_url).join(endpoint))
        self._headers = headers
        self._timeout = timeout
        self._init_params = initialize_params(client_info, capabilities)
        self._handshake_attempts = handshake_attempts
        self._handshake_interval = handshake_interval
        self._initialize = initialize
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._session: SSESession | None = None
        self._closed = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._session is not None and self._session.connected

    @property
    def session_id(self) -> str | None:
        return self._session.session_id if self._session else None

    @property
    def endpoint(self) -> str | None:
        return self._session.endpoint if self._session else None

    async def connect(self) -> None:
        """Open the stream, wait for the session, then run ``initialize``.

        On any failure the stream is torn down again, so a later
        ``connect()`` starts from scratch.
        """
        if self._session is not None:
            msg = "Already connected"
            raise AlreadyConnectedError(msg)
        if self._closed:
            msg = "Client is closed"
            raise ClientClosedError(msg)

        # The stream itself must not time out between events.
        self._http = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, read=None), transport=self._transport)
        session = SSESession(
            self._http,
            self._url,
            events=self.events,
            headers=self._headers,
            request_timeout=self._timeout,
        )
        self._session = session
        session.start()

        try:
            await self._handshake(session)
            if self._initialize:
                await self.request("initialize", self._init_params)
        except BaseException:
            await self._teardown()
            raise

    async def _handshake(self, session: SSESession) -> None:
        for _ in range(self._handshake_attempts):
            if session.session_id and session.endpoint:
                break
            await asyncio.sleep(self._handshake_interval)
        if not (session.session_id and session.endpoint):
            msg = "Failed to establish SSE session"
            raise HandshakeError(msg)
        logger.info("SSE session %s established with %s", session.session_id, self._url)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._teardown()

    async def _teardown(self) -> None:
        session, http = self._session, self._http
        self._session = None
        self._http = None
        if session is not None:
            await session.close()
        if http is not None:
            await http.aclose()

    async def _send_request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        if self._session is None:
            msg = "Not connected"
            raise NotConnectedError(msg)
        return await self._session.send_request(method, params)
