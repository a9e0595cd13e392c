"""Tests for HttpClient using httpx.MockTransport."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from switchboard.client.events import CONNECTED, DISCONNECTED, ERROR
from switchboard.client.http import HttpClient
from switchboard.protocol.errors import ErrorCode, McpError, TransportError


def _jsonrpc_server(results: dict[str, Any], seen: list[dict[str, Any]] | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if seen is not None:
            seen.append(body)
        if body["method"] not in results:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "Tool not found: x"}},
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": results[body["method"]]})

    return httpx.MockTransport(handler)


class TestHttpClientRequests:
    async def test_list_tools(self) -> None:
        transport = _jsonrpc_server({"tools/list": {"tools": [{"name": "health", "description": "Health"}]}})
        client = HttpClient("http://test/mcp", transport=transport)

        tools = await client.list_tools()

        assert [t.name for t in tools] == ["health"]
        await client.close()

    async def test_call_tool(self) -> None:
        seen: list[dict[str, Any]] = []
        transport = _jsonrpc_server(
            {"tools/call": {"content": [{"type": "text", "text": "hi"}], "isError": False}},
            seen,
        )
        client = HttpClient("http://test/mcp", transport=transport)

        result = await client.call_tool("echo", {"x": 1})

        assert result.text == "hi"
        assert seen[0]["params"] == {"name": "echo", "arguments": {"x": 1}}
        await client.close()

    async def test_request_ids_increment(self) -> None:
        seen: list[dict[str, Any]] = []
        client = HttpClient("http://test/mcp", transport=_jsonrpc_server({"tools/list": {"tools": []}}, seen))

        await client.list_tools()
        await client.list_tools()

        assert [body["id"] for body in seen] == [1, 2]
        await client.close()

    async def test_rpc_error_keeps_code(self) -> None:
        client = HttpClient("http://test/mcp", transport=_jsonrpc_server({}))

        with pytest.raises(McpError) as exc_info:
            await client.call_tool("x", {})

        assert exc_info.value.code == ErrorCode.METHOD_NOT_FOUND
        assert exc_info.value.message == "Tool not found: x"
        await client.close()


class TestHttpClientFailures:
    async def test_http_status_error(self) -> None:
        client = HttpClient("http://test/mcp", transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        errors = MagicMock()
        client.events.on(ERROR, errors)

        with pytest.raises(TransportError):
            await client.list_tools()

        errors.assert_called_once()
        await client.close()

    async def test_transport_error_is_retried(self) -> None:
        attempts: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            raise httpx.ConnectError("refused", request=request)

        client = HttpClient("http://test/mcp", max_tries=3, transport=httpx.MockTransport(handler))

        with pytest.raises(TransportError) as exc_info:
            await client.list_tools()

        assert len(attempts) == 3
        assert "refused" in exc_info.value.message
        await client.close()

    async def test_retry_then_success(self) -> None:
        attempts: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("flaky", request=request)
            body = json.loads(request.content)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"tools": []}})

        client = HttpClient("http://test/mcp", transport=httpx.MockTransport(handler))

        assert await client.list_tools() == []
        assert len(attempts) == 2
        await client.close()

    async def test_invalid_json_body(self) -> None:
        client = HttpClient(
            "http://test/mcp",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"not json")),
        )
        with pytest.raises(TransportError):
            await client.list_tools()
        await client.close()


class TestHttpClientLifecycle:
    async def test_connected_event_on_next_tick(self) -> None:
        client = HttpClient("http://test/mcp", transport=_jsonrpc_server({}))
        listener = MagicMock()
        client.events.on(CONNECTED, listener)

        await asyncio.sleep(0)

        listener.assert_called_once()
        assert client.connected is True
        await client.close()

    async def test_connect_does_not_announce_twice(self) -> None:
        client = HttpClient("http://test/mcp", transport=_jsonrpc_server({}))
        listener = MagicMock()
        client.events.on(CONNECTED, listener)

        await asyncio.sleep(0)
        await client.connect()

        listener.assert_called_once()
        await client.close()

    async def test_close_emits_disconnected(self) -> None:
        client = HttpClient("http://test/mcp", transport=_jsonrpc_server({}))
        listener = MagicMock()
        client.events.on(DISCONNECTED, listener)

        await client.close()

        listener.assert_called_once_with({"code": None})
