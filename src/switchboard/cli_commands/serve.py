"""``switchboard serve`` / ``serve-http`` — run an MCP host."""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

import click

from switchboard.cli_commands import get_manager

if TYPE_CHECKING:
    from switchboard.config.manager import MCPConfigManager
    from switchboard.config.settings import Settings


def _settings(ctx: click.Context, **overrides: object) -> tuple[Settings, MCPConfigManager]:
    from switchboard.cli_commands._output import print_error
    from switchboard.config.settings import Settings
    from switchboard.protocol.errors import ConfigError

    manager = get_manager(ctx)
    try:
        settings = Settings.from_env(mcp_config=str(manager.path), **overrides)
    except ConfigError as exc:
        print_error(str(exc))
        sys.exit(1)
    return settings, manager


@click.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Serve MCP over stdin/stdout (newline-delimited JSON-RPC)."""
    from switchboard.stdio import run_stdio_server

    settings, manager = _settings(ctx)
    try:
        asyncio.run(run_stdio_server(settings, manager))
    except KeyboardInterrupt:
        pass


@click.command("serve-http")
@click.option("--host", default=None, help="Bind address (default 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Bind port (default 3000).")
@click.option("--otlp-endpoint", default=None, help="Export traces via OTLP/gRPC to this endpoint.")
@click.pass_context
def serve_http_cmd(ctx: click.Context, host: str | None, port: int | None, otlp_endpoint: str | None) -> None:
    """Serve MCP over HTTP: POST /mcp, GET /mcp (SSE) and GET /health."""
    from switchboard.http.app import serve_http

    settings, manager = _settings(ctx, host=host, port=port)

    if otlp_endpoint:
        from switchboard.cli_commands._output import print_error
        from switchboard.utils.telemetry import configure_telemetry

        try:
            configure_telemetry(
                service_name=settings.name,
                service_version=settings.version,
                otlp_endpoint=otlp_endpoint,
            )
        except ImportError as exc:
            print_error(str(exc))
            sys.exit(1)

    serve_http(settings, manager)
