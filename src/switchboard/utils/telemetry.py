"""Tracing for JSON-RPC traffic in and out of switchboard.

Spans are opened through :func:`traced`, which works against the bare
OpenTelemetry API: until :func:`configure_telemetry` installs an SDK
provider, every span is a no-op.

Usage::

    _tracer = get_tracer(__name__)

    with traced(_tracer, "mcp.tools.call", {ATTR_TOOL_NAME: "health"}) as span:
        result = await registry.call("health", {})
        span.set_attribute(ATTR_TOOL_IS_ERROR, bool(result.is_error))

Exporters need the ``otel`` extra (``pip install switchboard[otel]``).
"""

from __future__ import annotations

import contextlib
import sys
from typing import Any, Iterator, Mapping

from opentelemetry import trace

ATTR_RPC_METHOD = "switchboard.rpc.method"
ATTR_RPC_REQUEST_ID = "switchboard.rpc.request_id"
ATTR_TOOL_NAME = "switchboard.tool.name"
ATTR_TOOL_IS_ERROR = "switchboard.tool.is_error"
ATTR_TRANSPORT = "switchboard.transport"
ATTR_SERVER_NAME = "switchboard.server.name"

_INSTRUMENTATION_NAME = "switchboard"

AttributeValue = str | bool | int | float


def get_tracer(name: str | None = None) -> trace.Tracer:
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


@contextlib.contextmanager
def traced(
    tracer: trace.Tracer,
    name: str,
    attributes: Mapping[str, AttributeValue | None] | None = None,
) -> Iterator[trace.Span]:
    """Open a span named *name*; ``None`` attribute values are left out.

    An exception escaping the block is recorded on the span and marks it
    as failed before it propagates.
    """
    clean = {key: value for key, value in (attributes or {}).items() if value is not None}
    with tracer.start_as_current_span(name, attributes=clean) as span:
        yield span


def configure_telemetry(
    *,
    service_name: str = _INSTRUMENTATION_NAME,
    service_version: str | None = None,
    export_to_console: bool = False,
    otlp_endpoint: str | None = None,
) -> Any:
    """Install an SDK tracer provider and return it.

    Console export writes to stderr: the stdio host reserves stdout for
    JSON-RPC.  With *otlp_endpoint*, spans are batched to that OTLP/gRPC
    collector.

    Raises:
        ImportError: ``opentelemetry-sdk`` (or, for OTLP, the exporter
            package) is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = "opentelemetry-sdk is required for tracing. Install it with: pip install switchboard[otel]"
        raise ImportError(msg) from exc

    resource_attributes = {"service.name": service_name}
    if service_version:
        resource_attributes["service.version"] = service_version
    provider = TracerProvider(resource=Resource.create(resource_attributes))

    if export_to_console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))
    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))

    trace.set_tracer_provider(provider)
    return provider


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
            OTLPSpanExporter,
        )
    except ImportError as exc:
        msg = "opentelemetry-exporter-otlp is required for OTLP export. Install it with: pip install switchboard[otel]"
        raise ImportError(msg) from exc
    return OTLPSpanExporter(endpoint=endpoint)
