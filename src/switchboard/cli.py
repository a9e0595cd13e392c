"""switchboard CLI entrypoint."""

from __future__ import annotations

import logging
import sys

import click

from switchboard import __version__

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.version_option(version=__version__, prog_name="switchboard")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="SWITCHBOARD_LOG_LEVEL",
    help="Log level for diagnostics written to stderr.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    envvar="SWITCHBOARD_MCP_CONFIG",
    help="MCP server configuration file (default: var/.mcp.json).",
)
@click.pass_context
def main(ctx: click.Context, log_level: str, config_path: str | None) -> None:
    """switchboard — MCP tool server and aggregator."""
    logging.basicConfig(
        level=log_level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config_path": config_path}


# Register subcommands
from switchboard.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
