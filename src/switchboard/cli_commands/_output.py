"""Shared CLI output formatters."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from switchboard.config.models import MCPServerConfig
    from switchboard.protocol.models import ToolDefinition

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}")


def server_target(server: MCPServerConfig) -> str:
    """``command args...`` for stdio servers, the URL otherwise."""
    command = getattr(server, "command", None)
    if command is not None:
        return " ".join([command, *getattr(server, "args", [])])
    return str(getattr(server, "url", ""))


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def print_servers_table(servers: list[MCPServerConfig]) -> None:
    """Pretty-print configured MCP servers as a table."""
    table = Table(title="MCP Servers")
    table.add_column("Name", style="cyan")
    table.add_column("Transport")
    table.add_column("Target")
    table.add_column("Enabled")

    for server in servers:
        table.add_row(
            server.name,
            server.transport,
            escape(_truncate(server_target(server))),
            "[green]yes[/green]" if server.enabled else "[red]no[/red]",
        )

    console.print(table)


def print_server(server: MCPServerConfig) -> None:
    """Print the details of one server entry."""
    console.print(f"[bold]{server.name}[/bold]")
    console.print(f"  Transport: {server.transport}")
    console.print(f"  Target: {escape(server_target(server))}")
    console.print(f"  Enabled: {'yes' if server.enabled else 'no'}")
    if server.description:
        console.print(f"  Description: {escape(server.description)}")
    if server.env:
        console.print("  Environment:")
        for key in sorted(server.env):
            console.print(f"    {key}=***")


def print_tools_table(tools: list[ToolDefinition]) -> None:
    """Pretty-print a list of tool definitions as a table."""
    table = Table(title="Discovered Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Description")

    for tool in tools:
        table.add_row(escape(tool.name), escape(_truncate(tool.description)))

    console.print(table)


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
