"""``switchboard tools`` — inspect tools exposed by an MCP server."""

from __future__ import annotations

import asyncio
import sys

import click

from switchboard.cli_commands.mcp import TRANSPORTS


@click.group()
def tools() -> None:
    """Tool discovery."""


@tools.command(context_settings={"ignore_unknown_options": True})
@click.argument("target")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option("--transport", "-t", type=click.Choice(TRANSPORTS), default="stdio", help="Transport type.")
@click.option("--json", "as_json", is_flag=True, help="Output the definitions as JSON.")
def discover(target: str, args: tuple[str, ...], transport: str, as_json: bool) -> None:
    """List the tools of an MCP server without adding it to the config.

    TARGET is the command for stdio servers and the URL for sse/http ones.

    Examples:

      switchboard tools discover npx -y @modelcontextprotocol/server-everything

      switchboard tools discover http://localhost:3000/mcp --transport http
    """
    from switchboard.cli_commands._output import console, print_error, print_json, print_tools_table
    from switchboard.config.manager import MCPConfigManager
    from switchboard.controller.register import connect_to_mcp_server
    from switchboard.protocol.errors import ConfigError

    try:
        config = MCPConfigManager.create("discover", transport, target, list(args))
    except ConfigError as exc:
        print_error(str(exc))
        sys.exit(1)

    async def _discover():  # noqa: ANN202
        client = await connect_to_mcp_server(config)
        try:
            return await client.list_tools()
        finally:
            await client.close()

    try:
        found = asyncio.run(_discover())
    except Exception as exc:
        print_error(f"Tool discovery failed: {exc}")
        sys.exit(1)

    if as_json:
        print_json([tool.to_wire() for tool in found])
        return
    if not found:
        console.print("No tools found.")
        return
    print_tools_table(found)
