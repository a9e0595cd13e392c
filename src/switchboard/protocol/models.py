"""MCP models — JSON-RPC 2.0 envelopes and MCP payloads.

Implements the message format used by the Model Context Protocol for
initialization (``initialize``), tool discovery (``tools/list``), tool
execution (``tools/call``), roots (``roots/list``) and the out-of-band
notifications layered on top of them.
"""

from __future__ import annotations

import json
from typing import Any, Literal, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from switchboard.protocol.errors import ErrorCode, McpError

JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

RequestId = Union[int, str]
ProgressToken = Union[int, str]

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request message."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: int | str
    method: str
    params: dict[str, Any] | None = None


class JsonRpcNotification(BaseModel):
    """A JSON-RPC 2.0 notification (a request without ``id``)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] | None = None


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response message.

    Exactly one of ``result`` and ``error`` is set.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    id: int | str | None = None
    result: Any = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> JsonRpcResponse:
        if (self.result is None) == (self.error is None):
            msg = "response must carry exactly one of 'result' or 'error'"
            raise ValueError(msg)
        return self

    @classmethod
    def success(cls, request_id: RequestId | None, result: Any) -> JsonRpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: RequestId | None, error: McpError) -> JsonRpcResponse:
        return cls(id=request_id, error=error.to_error())

    def to_wire(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict; ``id`` is kept even when null."""
        out: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            out["error"] = self.error.model_dump(exclude_none=True)
        else:
            out["result"] = self.result
        return out


JsonRpcMessage = Union[JsonRpcRequest, JsonRpcNotification, JsonRpcResponse]


def parse_json(text: str | bytes) -> Any:
    """Decode a JSON document, raising ``PARSE_ERROR`` on failure."""
    try:
        return json.loads(text)
    except ValueError as exc:
        raise McpError("Parse error", ErrorCode.PARSE_ERROR, data=str(exc)) from exc


def request_id_of(raw: Any) -> RequestId | None:
    """Best-effort extraction of the id of a (possibly malformed) message."""
    if isinstance(raw, dict):
        value = raw.get("id")
        if isinstance(value, (int, str)) and not isinstance(value, bool):
            return value
    return None


def parse_message(raw: Any) -> JsonRpcMessage:
    """Classify a decoded JSON value as a request, notification or response.

    Raises:
        McpError: ``INVALID_REQUEST`` when the value is not a JSON-RPC 2.0
            envelope (wrong version, missing method, wrong shape).
    """
    if not isinstance(raw, dict):
        raise McpError("Invalid Request", ErrorCode.INVALID_REQUEST)
    if raw.get("jsonrpc") != JSONRPC_VERSION:
        raise McpError("Invalid JSON-RPC version", ErrorCode.INVALID_REQUEST)

    try:
        if "method" in raw:
            if raw.get("id") is not None:
                return JsonRpcRequest.model_validate(raw)
            return JsonRpcNotification.model_validate(raw)
        if "result" in raw or "error" in raw:
            return JsonRpcResponse.model_validate(raw)
    except ValidationError as exc:
        raise McpError("Invalid Request", ErrorCode.INVALID_REQUEST, data=str(exc)) from exc

    raise McpError("Invalid Request: missing method", ErrorCode.INVALID_REQUEST)


# ---------------------------------------------------------------------------
# MCP-specific payloads
# ---------------------------------------------------------------------------


class ServerInfo(BaseModel):
    """Name and version advertised during ``initialize``."""

    name: str
    version: str


class Root(BaseModel):
    """A workspace root advertised to clients."""

    uri: str
    name: str | None = None


class TextContent(BaseModel):
    """Plain text content part of a tool result."""

    type: Literal["text"] = "text"
    text: str


class ToolDefinition(BaseModel):
    """A tool definition as returned by ``tools/list``."""

    model_config = {"populate_by_name": True}

    name: str = Field(min_length=1)
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        alias="inputSchema",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ToolResult(BaseModel):
    """The outcome of a ``tools/call``.

    ``is_error`` marks a graceful tool failure (bad arguments and similar);
    it is not a protocol error.
    """

    model_config = {"populate_by_name": True}

    content: list[TextContent] = []
    is_error: bool | None = Field(default=None, alias="isError")

    @classmethod
    def from_text(cls, text: str, *, is_error: bool = False) -> ToolResult:
        """Create a result with a single text content part."""
        return cls(content=[TextContent(text=text)], is_error=is_error)

    @classmethod
    def error(cls, message: str) -> ToolResult:
        """Create an ``isError`` result carrying a human-readable message."""
        return cls.from_text(message, is_error=True)

    @property
    def text(self) -> str:
        """Concatenated text of all content parts."""
        return "\n".join(part.text for part in self.content)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ToolCallMeta(BaseModel):
    """The ``_meta`` object attached to a ``tools/call``."""

    model_config = {"populate_by_name": True, "extra": "allow"}

    progress_token: int | str | None = Field(default=None, alias="progressToken")


class ToolCallParams(BaseModel):
    """Parameters of a ``tools/call`` request."""

    model_config = {"populate_by_name": True}

    name: str
    arguments: dict[str, Any] | None = None
    meta: ToolCallMeta | None = Field(default=None, alias="_meta")


class InitializeParams(BaseModel):
    """Parameters of an ``initialize`` request."""

    model_config = {"populate_by_name": True}

    protocol_version: str = Field(alias="protocolVersion")
    capabilities: dict[str, Any] = {}
    client_info: ServerInfo = Field(alias="clientInfo")


class CancelledParams(BaseModel):
    """Parameters of a ``notifications/cancelled`` notification."""

    model_config = {"populate_by_name": True}

    request_id: int | str = Field(alias="requestId")
    reason: str | None = None


class ProgressParams(BaseModel):
    """Parameters of a ``notifications/progress`` notification."""

    model_config = {"populate_by_name": True}

    progress_token: int | str = Field(alias="progressToken")
    progress: int | float
    total: int | float | None = None
    message: str | None = None
