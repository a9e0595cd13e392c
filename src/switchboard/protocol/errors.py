"""Error types for the protocol and transport layers.

Every error raised by switchboard derives from :class:`McpError`, which
carries a JSON-RPC error code so that anything reaching the engine's
dispatch boundary can be serialized into a response without guessing.
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from switchboard.protocol.models import JsonRpcError


class ErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


def _message_of(value: object) -> str:
    if value is None:
        return "Unknown error"
    if isinstance(value, str):
        return value or "Unknown error"
    if isinstance(value, BaseException):
        return str(value) or type(value).__name__
    if isinstance(value, dict) and isinstance(value.get("message"), str):
        return value["message"] or "Unknown error"
    return str(value) or "Unknown error"


class McpError(Exception):
    """A protocol error carrying ``(code, message, data)``.

    Accepts a string, another exception, or any other value as *message*;
    the resulting :attr:`message` is never empty.

    Usage::

        raise McpError("Tool not found: x", ErrorCode.METHOD_NOT_FOUND)
        raise McpError.wrap(exc)
    """

    def __init__(
        self,
        message: object = None,
        code: int = ErrorCode.INTERNAL_ERROR,
        data: Any = None,
    ) -> None:
        text = _message_of(message)
        self._code = int(code)
        self._message = text
        self._data = data
        super().__init__(text)

    @property
    def code(self) -> int:
        return self._code

    @property
    def message(self) -> str:
        return self._message

    @property
    def data(self) -> Any:
        return self._data

    @classmethod
    def wrap(cls, value: object, code: int = ErrorCode.INTERNAL_ERROR) -> McpError:
        """Return *value* if it already is an :class:`McpError`, else wrap it."""
        if isinstance(value, McpError):
            return value
        return cls(value, code)

    def to_error(self) -> JsonRpcError:
        """Convert to the wire-level error object."""
        from switchboard.protocol.models import JsonRpcError

        return JsonRpcError(code=self._code, message=self._message, data=self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self._code}, message={self._message!r})"


class ToolHandlerError(McpError):
    """A tool handler raised instead of returning a result."""

    def __init__(self, name: str, cause: BaseException) -> None:
        self.tool_name = name
        super().__init__(cause, ErrorCode.INTERNAL_ERROR, data={"tool": name, "type": type(cause).__name__})


class ConfigError(McpError):
    """The MCP server configuration is missing, invalid or inconsistent."""


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


class TransportError(McpError):
    """Base error for transport-level failures (network, process, stream)."""


class NotConnectedError(TransportError):
    """A request was issued before ``connect()`` completed."""


class ClientClosedError(TransportError):
    """A request was issued after the client was closed."""


class AlreadyConnectedError(TransportError):
    """``connect()`` was called on an already connected client."""


class HandshakeError(TransportError):
    """The server-push handshake did not deliver a session in time."""


class RequestTimeoutError(TransportError):
    """No response arrived within the per-request timeout."""

    def __init__(self, method: str, timeout: float) -> None:
        self.method = method
        self.timeout = timeout
        super().__init__(f"Request timeout for method: {method} after {timeout}s")


class ProcessExitedError(TransportError):
    """The child process exited while requests were still pending."""

    def __init__(self, exit_code: int | None) -> None:
        self.exit_code = exit_code
        super().__init__(f"Process exited with code {exit_code}")
