"""health — liveness tool."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from switchboard.protocol.models import ProgressToken, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from switchboard.protocol.server import MCPServer

DEFINITION = ToolDefinition(
    name="health",
    description="Check server health status",
    input_schema={"type": "object", "properties": {}, "required": []},
)


async def health(arguments: dict[str, Any], progress_token: ProgressToken | None = None) -> ToolResult:
    payload = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }
    return ToolResult.from_text(json.dumps(payload, indent=2))


def register(server: MCPServer) -> None:
    server.register(DEFINITION, health)
