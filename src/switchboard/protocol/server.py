"""MCPServer — the JSON-RPC 2.0 protocol engine.

Turns one inbound message into a response (requests) or a side effect
(notifications).  Routing is a table keyed by :class:`Method`; anything
that does not map onto a known method takes the unknown-method branch.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from switchboard.protocol.errors import ErrorCode, McpError
from switchboard.protocol.models import (
    JSONRPC_VERSION,
    MCP_PROTOCOL_VERSION,
    CancelledParams,
    InitializeParams,
    JsonRpcMessage,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    ProgressToken,
    RequestId,
    Root,
    ServerInfo,
    ToolCallParams,
    ToolDefinition,
    parse_json,
    parse_message,
    request_id_of,
)
from switchboard.protocol.registry import ToolCleanup, ToolHandler, ToolRegistry
from switchboard.utils.telemetry import (
    ATTR_RPC_METHOD,
    ATTR_RPC_REQUEST_ID,
    ATTR_TOOL_IS_ERROR,
    ATTR_TOOL_NAME,
    get_tracer,
    traced,
)

if TYPE_CHECKING:
    from switchboard.client.pool import ConnectionPool

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

NotificationSender = Callable[[JsonRpcNotification], None]

_P = TypeVar("_P", bound=BaseModel)


class Method(str, Enum):
    """Methods the engine understands."""

    INITIALIZE = "initialize"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    ROOTS_LIST = "roots/list"
    NOTIFICATIONS_CANCELLED = "notifications/cancelled"

    @classmethod
    def lookup(cls, name: str) -> Method | None:
        """Map a wire method name to a member, ``None`` when unknown."""
        try:
            return cls(name)
        except ValueError:
            return None


class Notification(str, Enum):
    """Notifications the engine emits."""

    PROGRESS = "notifications/progress"
    CANCELLED = "notifications/cancelled"
    TOOLS_LIST_CHANGED = "notifications/tools/list_changed"
    ROOTS_LIST_CHANGED = "notifications/roots/list_changed"


class MCPServer:
    """Protocol engine for one tool registry.

    Usage::

        server = MCPServer(ServerInfo(name="switchboard", version="0.1.0"))
        server.register(ToolDefinition(name="health"), handler)
        response = await server.handle_message(
            JsonRpcRequest(id=1, method="tools/list")
        )
    """

    def __init__(self, info: ServerInfo, registry: ToolRegistry | None = None) -> None:
        self._info = info
        self._registry = registry or ToolRegistry()
        self._registry.set_list_changed_listener(self.emit_tool_list_changed)
        self._roots: list[Root] = []
        self._pending: dict[RequestId, bool] = {}
        self._emit: NotificationSender | None = None
        self._request_id = 0
        self._routes: dict[Method, Callable[[JsonRpcRequest], Awaitable[Any]]] = {
            Method.INITIALIZE: self._handle_initialize,
            Method.TOOLS_LIST: self._handle_list_tools,
            Method.TOOLS_CALL: self._handle_call_tool,
            Method.ROOTS_LIST: self._handle_list_roots,
        }

    @property
    def info(self) -> ServerInfo:
        return self._info

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def set_emitter(self, sender: NotificationSender | None) -> None:
        """Install the callback that delivers outbound notifications."""
        self._emit = sender

    # -- registry delegation -------------------------------------------------

    def register(
        self,
        definition: ToolDefinition,
        handler: ToolHandler,
        cleanup: ToolCleanup | None = None,
    ) -> None:
        self._registry.register(definition, handler, cleanup)

    def unregister(self, name: str) -> bool:
        return self._registry.unregister(name)

    def list_tools(self) -> list[ToolDefinition]:
        return self._registry.list()

    def get_tools_by_prefix(self, prefix: str) -> list[ToolDefinition]:
        return self._registry.get_by_prefix(prefix)

    async def close(self, *, pool: ConnectionPool | None = None) -> None:
        """Run every tool cleanup; with *pool*, also force-close its connections."""
        await self._registry.close()
        if pool is not None:
            await pool.close_all()

    # -- inbound messages ----------------------------------------------------

    async def handle_raw(self, payload: str | bytes | Any) -> JsonRpcResponse | None:
        """Decode and validate an envelope, then dispatch it.

        Malformed JSON yields ``PARSE_ERROR``; anything that is not a
        JSON-RPC 2.0 envelope yields ``INVALID_REQUEST``.  Neither reaches
        method dispatch.
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = parse_json(payload)
            except McpError as exc:
                return JsonRpcResponse.failure(None, exc)
        try:
            message = parse_message(payload)
        except McpError as exc:
            return JsonRpcResponse.failure(request_id_of(payload), exc)
        return await self.handle_message(message)

    async def handle_message(self, message: JsonRpcMessage) -> JsonRpcResponse | None:
        """Dispatch one message; notifications and stray responses return ``None``."""
        if isinstance(message, JsonRpcRequest):
            return await self._handle_request(message)
        if isinstance(message, JsonRpcNotification):
            self._handle_notification(message)
        return None

    async def _handle_request(self, request: JsonRpcRequest) -> JsonRpcResponse:
        method = Method.lookup(request.method)
        route = self._routes.get(method) if method is not None else None
        if route is None:
            error = McpError(f"Method not found: {request.method}", ErrorCode.METHOD_NOT_FOUND)
            return JsonRpcResponse.failure(request.id, error)

        try:
            result = await route(request)
        except McpError as exc:
            logger.debug("Request %s (%s) failed: %s", request.id, request.method, exc)
            return JsonRpcResponse.failure(request.id, exc)
        except Exception as exc:
            logger.exception("Unhandled error while handling %s", request.method)
            return JsonRpcResponse.failure(request.id, McpError(exc, ErrorCode.INTERNAL_ERROR))
        return JsonRpcResponse.success(request.id, result)

    def _handle_notification(self, notification: JsonRpcNotification) -> None:
        if Method.lookup(notification.method) is not Method.NOTIFICATIONS_CANCELLED:
            logger.debug("Ignoring notification %s", notification.method)
            return
        try:
            params = CancelledParams.model_validate(notification.params or {})
        except ValidationError:
            logger.warning("Ignoring malformed cancellation: %s", notification.params)
            return
        self._cancel(params.request_id)

    # -- method handlers -----------------------------------------------------

    async def _handle_initialize(self, request: JsonRpcRequest) -> dict[str, Any]:
        params = _parse_params(InitializeParams, request.params, "Invalid initialize parameters")
        logger.info(
            "Initialize from %s %s (protocol %s)",
            params.client_info.name,
            params.client_info.version,
            params.protocol_version,
        )
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {
                "tools": {"listChanged": True},
                "roots": {"listChanged": True},
            },
            "serverInfo": self._info.model_dump(),
        }

    async def _handle_list_tools(self, request: JsonRpcRequest) -> dict[str, Any]:
        return {"tools": [tool.to_wire() for tool in self._registry.list()]}

    async def _handle_call_tool(self, request: JsonRpcRequest) -> dict[str, Any]:
        params = _parse_params(ToolCallParams, request.params, "Invalid tool call parameters")
        progress_token = params.meta.progress_token if params.meta else None

        self._pending[request.id] = True
        try:
            attributes = {
                ATTR_RPC_METHOD: request.method,
                ATTR_RPC_REQUEST_ID: str(request.id),
                ATTR_TOOL_NAME: params.name,
            }
            with traced(_tracer, "mcp.tools.call", attributes) as span:
                result = await self._registry.call(params.name, params.arguments or {}, progress_token)
                span.set_attribute(ATTR_TOOL_IS_ERROR, bool(result.is_error))
        finally:
            self._pending.pop(request.id, None)
        return result.to_wire()

    async def _handle_list_roots(self, request: JsonRpcRequest) -> dict[str, Any]:
        return {"roots": [root.model_dump(exclude_none=True) for root in self._roots]}

    # -- outbound notifications ---------------------------------------------

    def _notify(self, method: Notification, params: dict[str, Any] | None = None) -> None:
        if self._emit is None:
            return
        self._emit(JsonRpcNotification(jsonrpc=JSONRPC_VERSION, method=method.value, params=params))

    def emit_tool_list_changed(self) -> None:
        self._notify(Notification.TOOLS_LIST_CHANGED)

    def send_progress(
        self,
        token: ProgressToken,
        progress: float,
        total: float | None = None,
        message: str | None = None,
    ) -> None:
        """Emit ``notifications/progress``; a no-op without an emitter."""
        params: dict[str, Any] = {"progressToken": token, "progress": progress}
        if total is not None:
            params["total"] = total
        if message:
            params["message"] = message
        self._notify(Notification.PROGRESS, params)

    def cancel_request(self, request_id: RequestId, reason: str | None = None) -> None:
        """Emit ``notifications/cancelled`` for *request_id*.

        The pending entry stays until a cancellation notification is
        handled, exactly as if the cancel had arrived from outside.
        """
        params: dict[str, Any] = {"requestId": request_id}
        if reason:
            params["reason"] = reason
        self._notify(Notification.CANCELLED, params)

    # -- roots & pending -----------------------------------------------------

    def set_roots(self, roots: Iterable[Root | dict[str, Any]]) -> None:
        """Replace the roots; notify only when the new value differs."""
        new_roots = [Root.model_validate(root) for root in roots]
        changed = new_roots != self._roots
        self._roots = new_roots
        if changed:
            self._notify(Notification.ROOTS_LIST_CHANGED)

    def get_roots(self) -> list[Root]:
        return list(self._roots)

    def is_pending(self, request_id: RequestId) -> bool:
        return request_id in self._pending

    def next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _cancel(self, request_id: RequestId) -> None:
        if self._pending.pop(request_id, None) is not None:
            logger.info("Request %s cancelled", request_id)


def _parse_params(model: type[_P], params: dict[str, Any] | None, message: str) -> _P:
    try:
        return model.model_validate(params or {})
    except ValidationError as exc:
        raise McpError(message, ErrorCode.INVALID_PARAMS, data=str(exc)) from exc
