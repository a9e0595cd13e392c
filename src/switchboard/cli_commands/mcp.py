"""``switchboard mcp`` — manage the MCP server configuration file."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import TYPE_CHECKING

import click

from switchboard.cli_commands import get_manager

if TYPE_CHECKING:
    from switchboard.config.models import MCPServerConfig

TRANSPORTS = ["stdio", "sse", "http"]


def parse_env(pairs: tuple[str, ...]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` items into a dict.

    Raises:
        click.BadParameter: An item has no ``=`` or an empty key.
    """
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            msg = f"Expected KEY=VALUE, got {pair!r}"
            raise click.BadParameter(msg, param_hint="--env")
        env[key] = value
    return env


async def count_server_tools(config: MCPServerConfig) -> int:
    """Connect to *config*, list its tools and disconnect; returns the tool count."""
    from switchboard.controller.register import connect_to_mcp_server

    client = await connect_to_mcp_server(config)
    try:
        return len(await client.list_tools())
    finally:
        await client.close()


@click.group()
def mcp() -> None:
    """Manage the MCP servers whose tools are proxied."""


@mcp.command(context_settings={"ignore_unknown_options": True})
@click.argument("name")
@click.argument("target")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option("--transport", "-t", type=click.Choice(TRANSPORTS), default="stdio", help="Transport type.")
@click.option("--env", "-e", "env_pairs", multiple=True, help="Environment variable KEY=VALUE (repeatable).")
@click.option("--disabled", is_flag=True, help="Add the server disabled.")
@click.option("--force", is_flag=True, help="Skip the connection check.")
@click.pass_context
def add(
    ctx: click.Context,
    name: str,
    target: str,
    args: tuple[str, ...],
    transport: str,
    env_pairs: tuple[str, ...],
    disabled: bool,
    force: bool,
) -> None:
    """Add or replace an MCP server.

    TARGET is the command for stdio servers and the URL for sse/http ones.
    """
    from switchboard.cli_commands._output import console, print_error
    from switchboard.config.manager import MCPConfigManager
    from switchboard.protocol.errors import ConfigError

    env = parse_env(env_pairs) or None
    try:
        config = MCPConfigManager.create(name, transport, target, list(args), env, not disabled)
    except ConfigError as exc:
        print_error(str(exc))
        sys.exit(1)

    if not force:
        try:
            count = asyncio.run(count_server_tools(config))
        except Exception as exc:
            print_error(f"Failed to connect to MCP server '{name}': {exc}")
            console.print("Use --force to add it anyway.")
            sys.exit(1)
        console.print(f"Connected to '{name}' ({count} tools)")

    manager = get_manager(ctx)
    try:
        manager.upsert_server(config)
    except ConfigError as exc:
        print_error(str(exc))
        sys.exit(1)
    console.print(f"[green]Added MCP server '{name}'[/green] to {manager.path}")


@mcp.command("add-json")
@click.argument("name")
@click.argument("config_json", metavar="JSON")
@click.pass_context
def add_json(ctx: click.Context, name: str, config_json: str) -> None:
    """Add or replace an MCP server from a JSON object."""
    from pydantic import ValidationError

    from switchboard.cli_commands._output import console, print_error
    from switchboard.config.models import parse_server_config
    from switchboard.protocol.errors import ConfigError

    try:
        data = json.loads(config_json)
        if not isinstance(data, dict):
            msg = "expected a JSON object"
            raise ValueError(msg)
        config = parse_server_config({**data, "name": name})
        get_manager(ctx).upsert_server(config)
    except (ValueError, ValidationError, ConfigError) as exc:
        print_error(f"Failed to add server from JSON: {exc}")
        sys.exit(1)
    console.print(f"[green]Added MCP server '{name}'[/green]")


@mcp.command()
@click.argument("name")
@click.pass_context
def remove(ctx: click.Context, name: str) -> None:
    """Remove an MCP server."""
    from switchboard.cli_commands._output import console, print_error

    if not get_manager(ctx).remove_server(name):
        print_error(f"MCP server '{name}' not found")
        sys.exit(1)
    console.print(f"Removed MCP server '{name}'")


@mcp.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output the raw configuration as JSON.")
@click.pass_context
def list_servers(ctx: click.Context, as_json: bool) -> None:
    """List configured MCP servers."""
    from switchboard.cli_commands._output import console, print_json, print_servers_table

    manager = get_manager(ctx)
    if as_json:
        print_json(manager.read_config().to_wire())
        return

    servers = manager.get_all_servers()
    if not servers:
        console.print("No MCP servers configured.")
        return
    print_servers_table(servers)


@mcp.command()
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output the entry as JSON.")
@click.pass_context
def get(ctx: click.Context, name: str, as_json: bool) -> None:
    """Show one MCP server."""
    from switchboard.cli_commands._output import print_error, print_json, print_server

    server = get_manager(ctx).get_server(name)
    if server is None:
        print_error(f"MCP server '{name}' not found")
        sys.exit(1)
    if as_json:
        print_json(server.model_dump(exclude={"name"}, exclude_none=True))
        return
    print_server(server)


def _set_enabled(ctx: click.Context, name: str, enabled: bool) -> None:
    from switchboard.cli_commands._output import console, print_error
    from switchboard.protocol.errors import ConfigError

    try:
        get_manager(ctx).enable(name, enabled)
    except ConfigError as exc:
        print_error(str(exc))
        sys.exit(1)
    console.print(f"MCP server '{name}' {'enabled' if enabled else 'disabled'}")


@mcp.command()
@click.argument("name")
@click.pass_context
def enable(ctx: click.Context, name: str) -> None:
    """Enable an MCP server."""
    _set_enabled(ctx, name, True)


@mcp.command()
@click.argument("name")
@click.pass_context
def disable(ctx: click.Context, name: str) -> None:
    """Disable an MCP server; its tools are no longer proxied."""
    _set_enabled(ctx, name, False)
