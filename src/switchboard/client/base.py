"""MCP client contract shared by the HTTP, stdio and server-push transports."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from switchboard.client.events import ClientEvents
from switchboard.protocol.errors import ErrorCode, McpError
from switchboard.protocol.models import MCP_PROTOCOL_VERSION, ServerInfo, ToolDefinition, ToolResult
from switchboard.utils.telemetry import ATTR_RPC_METHOD, ATTR_TRANSPORT, get_tracer, traced

_tracer = get_tracer(__name__)

DEFAULT_CLIENT_INFO = ServerInfo(name="switchboard", version="0.1.0")


@runtime_checkable
class MCPClient(Protocol):
    """One logical connection to a remote MCP server."""

    events: ClientEvents
    ref_count: int

    @property
    def connected(self) -> bool: ...
    async def connect(self) -> None: ...
    async def list_tools(self) -> list[ToolDefinition]: ...
    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult: ...
    async def close(self) -> None: ...


class BaseClient(ABC):
    """Common request plumbing; subclasses implement the wire exchange.

    ``ref_count`` tracks how many registered proxied tools point at this
    connection; the connection pool owns its bookkeeping.
    """

    transport_name = "unknown"

    def __init__(self) -> None:
        self.events = ClientEvents()
        self.ref_count = 0

    async def __aenter__(self) -> BaseClient:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    @property
    @abstractmethod
    def connected(self) -> bool: ...

    @abstractmethod
    async def connect(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def _send_request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send one request and return its ``result`` member."""

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        attributes = {ATTR_RPC_METHOD: method, ATTR_TRANSPORT: self.transport_name}
        with traced(_tracer, "mcp.client.request", attributes):
            return await self._send_request(method, params)

    async def list_tools(self) -> list[ToolDefinition]:
        result = await self.request("tools/list")
        raw_tools = result.get("tools", []) if isinstance(result, dict) else []
        try:
            return [ToolDefinition.model_validate(raw) for raw in raw_tools]
        except ValidationError as exc:
            raise McpError("Invalid tools/list result", ErrorCode.INTERNAL_ERROR, data=str(exc)) from exc

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        result = await self.request("tools/call", {"name": name, "arguments": arguments})
        try:
            return ToolResult.model_validate(result)
        except ValidationError as exc:
            raise McpError("Invalid tools/call result", ErrorCode.INTERNAL_ERROR, data=str(exc)) from exc


def initialize_params(client_info: ServerInfo, capabilities: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the ``initialize`` request parameters sent after connecting."""
    return {
        "protocolVersion": MCP_PROTOCOL_VERSION,
        "capabilities": capabilities or {},
        "clientInfo": client_info.model_dump(),
    }


def raise_for_error(message: dict[str, Any]) -> Any:
    """Return the ``result`` of a response dict, or raise its ``error``."""
    error = message.get("error")
    if error:
        if isinstance(error, dict):
            code = error.get("code")
            if not isinstance(code, int) or isinstance(code, bool):
                code = ErrorCode.INTERNAL_ERROR
            raise McpError(error.get("message"), code, error.get("data"))
        raise McpError(error)
    return message.get("result")
