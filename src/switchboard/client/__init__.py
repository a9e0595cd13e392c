"""MCP clients — HTTP, child-process and server-push transports."""

from switchboard.client.base import BaseClient, MCPClient
from switchboard.client.events import ClientEvents
from switchboard.client.http import HttpClient
from switchboard.client.pool import ConnectionPool
from switchboard.client.sse import SseClient, SSESession
from switchboard.client.stdio import StdioClient

__all__ = [
    "BaseClient",
    "ClientEvents",
    "ConnectionPool",
    "HttpClient",
    "MCPClient",
    "SSESession",
    "SseClient",
    "StdioClient",
]
