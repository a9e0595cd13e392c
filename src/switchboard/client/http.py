"""HttpClient — stateless JSON-RPC over HTTP POST.

HTTP has no connection, so lifecycle events are synthetic: ``connected``
is emitted on the next loop iteration after construction and
``disconnected`` when :meth:`HttpClient.close` is called.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from switchboard.client.base import BaseClient, raise_for_error
from switchboard.client.events import CONNECTED, DISCONNECTED, ERROR
from switchboard.protocol.errors import TransportError

logger = logging.getLogger(__name__)


class HttpClient(BaseClient):
    """JSON-RPC client for an MCP server reachable over plain HTTP.

    Every call is one POST carrying its own incrementing request id.
    Transport failures are retried up to *max_tries* times; when they
    persist an ``error`` event is emitted and :class:`TransportError` is
    raised.

    Usage::

        client = HttpClient("http://localhost:3000/mcp")
        tools = await client.list_tools()
        result = await client.call_tool("health", {})
        await client.close()
    """

    transport_name = "http"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        max_tries: int = 3,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self._url = url
        self._max_tries = max(1, max_tries)
        self._request_id = 0
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)
        self._announced = False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: connect() announces instead.
            return
        loop.call_soon(self._announce)

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return True

    async def connect(self) -> None:
        self._announce()

    async def close(self) -> None:
        await self._client.aclose()
        self.events.emit(DISCONNECTED, {"code": None})

    def _announce(self) -> None:
        if not self._announced:
            self._announced = True
            self.events.emit(CONNECTED)

    async def _send_request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        self._request_id += 1
        payload: dict[str, Any] = {"jsonrpc": "2.0", "id": self._request_id, "method": method}
        if params is not None:
            payload["params"] = params

        response = await self._post(payload)
        try:
            body = response.json()
        except ValueError as exc:
            raise self._fail(exc) from exc
        if not isinstance(body, dict):
            raise self._fail(ValueError(f"Unexpected response body for {method}"))
        return raise_for_error(body)

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        last_error: Exception | None = None
        for attempt in range(1, self._max_tries + 1):
            try:
                response = await self._client.post(self._url, json=payload)
                response.raise_for_status()
            except httpx.TransportError as exc:
                last_error = exc
                logger.debug("POST %s failed (attempt %d/%d): %s", self._url, attempt, self._max_tries, exc)
                continue
            except httpx.HTTPStatusError as exc:
                raise self._fail(exc) from exc
            return response
        assert last_error is not None
        raise self._fail(last_error) from last_error

    def _fail(self, exc: Exception) -> TransportError:
        self.events.emit(ERROR, {"error": exc})
        return TransportError(exc)
