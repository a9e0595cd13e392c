"""HTTP host surface."""

from switchboard.http.app import McpHttpService, create_app, format_sse, serve_http

__all__ = ["McpHttpService", "create_app", "format_sse", "serve_http"]
