"""Protocol core — JSON-RPC messages, tool registry, engine and sessions."""

from switchboard.protocol.errors import ErrorCode, McpError, ToolHandlerError
from switchboard.protocol.models import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Root,
    ServerInfo,
    ToolDefinition,
    ToolResult,
)
from switchboard.protocol.registry import ToolRegistry
from switchboard.protocol.server import MCPServer, Method
from switchboard.protocol.session import SessionData, SessionStore

__all__ = [
    "ErrorCode",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MCPServer",
    "McpError",
    "Method",
    "Root",
    "ServerInfo",
    "SessionData",
    "SessionStore",
    "ToolDefinition",
    "ToolHandlerError",
    "ToolRegistry",
    "ToolResult",
]
