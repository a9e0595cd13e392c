"""Controller — wires local and proxied tools into an engine."""

from switchboard.controller.register import (
    connect_to_mcp_server,
    refresh_mcp_server_tools,
    register_all_tools,
    register_mcp_server_tools,
    register_own_tools,
)

__all__ = [
    "connect_to_mcp_server",
    "refresh_mcp_server_tools",
    "register_all_tools",
    "register_mcp_server_tools",
    "register_own_tools",
]
