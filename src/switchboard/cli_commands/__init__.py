"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click

    from switchboard.config.manager import MCPConfigManager


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from switchboard.cli_commands.mcp import mcp
    from switchboard.cli_commands.serve import serve, serve_http_cmd
    from switchboard.cli_commands.tools import tools

    cli.add_command(serve)
    cli.add_command(serve_http_cmd)
    cli.add_command(mcp)
    cli.add_command(tools)


def get_manager(ctx: click.Context) -> MCPConfigManager:
    """Config manager for the file selected with ``--config``."""
    from switchboard.config.manager import MCPConfigManager

    obj = ctx.find_root().obj or {}
    return MCPConfigManager(obj.get("config_path"))
