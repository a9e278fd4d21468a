"""OpenTelemetry tracing setup for gitterm.

Each command line run by a :class:`~gitterm.shell.Shell` becomes one span
carrying ``gitterm.command.*`` attributes.

Design follows Function Core / Imperative Shell:
- Pure functions: build_resource, resolve_exporter_type, command_attributes
  compute plain values, no OTel SDK imports.
- Imperative shell (internal): _create_tracer_provider builds a provider
  without setting it globally, enabling isolated testing.
- Imperative shell (public): init_tracing, get_tracer, shutdown_tracing.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.trace import Tracer

    from gitterm.models import CommandResult

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SERVICE_NAME = "gitterm"
SERVICE_VERSION = "0.1.0"

GITTERM_OTEL_EXPORTER_ENV = "GITTERM_OTEL_EXPORTER"
GITTERM_OTEL_ENDPOINT_ENV = "GITTERM_OTEL_ENDPOINT"


# ---------------------------------------------------------------------------
# Enum
# ---------------------------------------------------------------------------


class ExporterType(Enum):
    """Supported trace exporter backends."""

    CONSOLE = "console"
    OTLP_HTTP = "otlp_http"
    NONE = "none"


# ---------------------------------------------------------------------------
# Pure functions (no OTel SDK imports)
# ---------------------------------------------------------------------------


def build_resource(
    service_name: str = SERVICE_NAME,
    service_version: str = SERVICE_VERSION,
    extra_attributes: dict[str, str] | None = None,
) -> dict[str, str]:
    """Compute resource attributes as a plain dict.

    ``service.name`` and ``service.version`` always come from the explicit
    parameters, even if *extra_attributes* contains those keys.
    """
    attrs: dict[str, str] = {}
    if extra_attributes:
        attrs.update(extra_attributes)
    attrs["service.name"] = service_name
    attrs["service.version"] = service_version
    return attrs


def resolve_exporter_type(exporter: ExporterType | None = None) -> ExporterType:
    """Determine the exporter type.

    Resolution order:

    1. Explicit *exporter* parameter.
    2. ``GITTERM_OTEL_EXPORTER`` environment variable.
    3. Default: ``ExporterType.NONE``.

    Raises:
        ValueError: If the environment variable contains an unrecognised value.
    """
    if exporter is not None:
        return exporter

    env_value = os.environ.get(GITTERM_OTEL_EXPORTER_ENV)
    if env_value is not None:
        try:
            return ExporterType(env_value)
        except ValueError:
            valid = ", ".join(e.value for e in ExporterType)
            msg = f"Invalid {GITTERM_OTEL_EXPORTER_ENV} value {env_value!r}. Valid options: {valid}"
            raise ValueError(msg) from None

    return ExporterType.NONE


def command_attributes(
    argv: Sequence[str],
    result: CommandResult,
    command_id: str | None = None,
) -> dict[str, str | int]:
    """Build ``gitterm.command.*`` span attributes for one command line.

    Only the program and, for ``git``, the subcommand are recorded; operands
    such as commit messages and paths are left out.
    """
    attrs: dict[str, str | int] = {
        "gitterm.command.name": argv[0] if argv else "",
        "gitterm.command.exit_code": result.code,
    }
    if argv and argv[0] == "git" and len(argv) > 1:
        attrs["gitterm.command.subcommand"] = argv[1]
    if command_id is not None:
        attrs["gitterm.command.id"] = command_id
    return attrs


# ---------------------------------------------------------------------------
# Imperative shell: internal
# ---------------------------------------------------------------------------


def _create_tracer_provider(
    resource_attrs: dict[str, str],
    exporter_type: ExporterType,
    endpoint: str | None = None,
) -> TracerProvider:
    """Build a ``TracerProvider`` without setting it globally.

    This enables tests to inspect providers in isolation.
    """
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider

    resource = Resource.create(resource_attrs)
    provider = TracerProvider(resource=resource)

    if exporter_type is ExporterType.CONSOLE:
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    elif exporter_type is ExporterType.OTLP_HTTP:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        exporter_http = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
        provider.add_span_processor(BatchSpanProcessor(exporter_http))

    # ExporterType.NONE: no processors added (no-op provider).

    return provider


# ---------------------------------------------------------------------------
# Imperative shell: public
# ---------------------------------------------------------------------------


def init_tracing(
    exporter: ExporterType | None = None,
    endpoint: str | None = None,
    service_name: str = SERVICE_NAME,
    service_version: str = SERVICE_VERSION,
) -> None:
    """Create and globally register a ``TracerProvider``.

    Each call replaces the previous provider (after shutting it down) and
    resets the OTel set-once guard so the new provider is accepted.
    """
    from opentelemetry import trace

    resource_attrs = build_resource(service_name, service_version)
    exporter_type = resolve_exporter_type(exporter)
    endpoint = endpoint or os.environ.get(GITTERM_OTEL_ENDPOINT_ENV)
    provider = _create_tracer_provider(resource_attrs, exporter_type, endpoint)

    current = trace.get_tracer_provider()
    if hasattr(current, "shutdown"):
        current.shutdown()

    once = trace._TRACER_PROVIDER_SET_ONCE
    with once._lock:
        once._done = False

    trace.set_tracer_provider(provider)


def get_tracer(name: str = "gitterm") -> Tracer:
    """Return a tracer from the globally registered provider.

    If ``init_tracing`` has not been called, the default no-op provider is
    used: calls succeed but produce no spans.
    """
    from opentelemetry import trace

    return trace.get_tracer(name)


def shutdown_tracing() -> None:
    """Flush pending spans and shut down the global tracer provider."""
    from opentelemetry import trace

    provider = trace.get_tracer_provider()
    if hasattr(provider, "shutdown"):
        provider.shutdown()
