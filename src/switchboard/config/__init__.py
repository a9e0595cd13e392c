"""Configuration — MCP server entries and host settings."""

from switchboard.config.manager import MCPConfigManager
from switchboard.config.models import (
    HttpServerConfig,
    MCPConfigFile,
    MCPServerConfig,
    SseServerConfig,
    StdioServerConfig,
)
from switchboard.config.settings import Settings

__all__ = [
    "HttpServerConfig",
    "MCPConfigFile",
    "MCPConfigManager",
    "MCPServerConfig",
    "Settings",
    "SseServerConfig",
    "StdioServerConfig",
]
