"""Shared fixtures: a minimal MCP server script run as a child process."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

FAKE_SERVER = r'''
import json
import sys

TOOLS = [
    {"name": "echo", "description": "Echo the arguments", "inputSchema": {"type": "object"}},
    {"name": "add", "description": "Add two numbers", "inputSchema": {"type": "object"}},
]

while True:
    line = sys.stdin.readline()
    if not line:
        break
    msg = json.loads(line)
    if "id" not in msg:
        continue
    method = msg["method"]
    if method == "exit":
        sys.exit(3)
    if method == "initialize":
        result = {
            "protocolVersion": "2024-11-05",
            "capabilities": {"tools": {}},
            "serverInfo": {"name": "fake", "version": "0.0.1"},
        }
    elif method == "tools/list":
        result = {"tools": TOOLS}
    elif method == "tools/call":
        args = msg["params"].get("arguments") or {}
        if msg["params"]["name"] == "add":
            text = str(args["a"] + args["b"])
        else:
            text = json.dumps(args, sort_keys=True)
        result = {"content": [{"type": "text", "text": text}]}
    else:
        reply = {"jsonrpc": "2.0", "id": msg["id"], "error": {"code": -32601, "message": "Method not found"}}
        print(json.dumps(reply), flush=True)
        continue
    print(json.dumps({"jsonrpc": "2.0", "id": msg["id"], "result": result}), flush=True)
'''


@pytest.fixture()
def fake_server(tmp_path: Path) -> tuple[str, list[str]]:
    """``(command, args)`` launching a stdio MCP server with ``echo`` and ``add`` tools."""
    script = tmp_path / "fake_mcp_server.py"
    script.write_text(FAKE_SERVER, encoding="utf-8")
    return sys.executable, [str(script)]
