"""OpenTelemetry tracing setup for blobpod.

Tracing is off unless BLOBPOD_OTEL_ENABLED is set. Store operations are
wrapped by blobpod.storage.tracing and only emit spans once a provider has
been installed here.

Environment Variables:
    BLOBPOD_OTEL_ENABLED: "1" to enable tracing (default: disabled)
    BLOBPOD_REQUIRE_OTEL: "1" to raise instead of logging when setup fails
    BLOBPOD_OTEL_SERVICE_NAME: service.name resource attribute (default: "blobpod")
    BLOBPOD_OTEL_EXPORTER: "otlp" or "console" (default: "otlp")
    BLOBPOD_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP gRPC endpoint (optional)
    BLOBPOD_OTEL_TEST_CAPTURE: "1" to keep spans in memory for tests

Spans never carry tokens, Authorization headers, object bodies or raw keys.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor

logger = logging.getLogger(__name__)

OTEL_ENABLED_ENV = "BLOBPOD_OTEL_ENABLED"
REQUIRE_OTEL_ENV = "BLOBPOD_REQUIRE_OTEL"
OTEL_SERVICE_NAME_ENV = "BLOBPOD_OTEL_SERVICE_NAME"
OTEL_EXPORTER_ENV = "BLOBPOD_OTEL_EXPORTER"
OTEL_OTLP_ENDPOINT_ENV = "BLOBPOD_OTEL_EXPORTER_OTLP_ENDPOINT"
OTEL_TEST_CAPTURE_ENV = "BLOBPOD_OTEL_TEST_CAPTURE"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

# The global TracerProvider can be installed once per process.
_provider_installed = False
_memory_exporter: Any = None


class TracingConfigError(Exception):
    """Tracing setup failed while BLOBPOD_REQUIRE_OTEL=1."""


def _flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class TracingSettings:
    """Tracing options read from the environment."""

    enabled: bool
    required: bool
    service_name: str
    exporter: str
    otlp_endpoint: str | None
    test_capture: bool

    @classmethod
    def from_env(cls) -> TracingSettings:
        return cls(
            enabled=_flag(OTEL_ENABLED_ENV),
            required=_flag(REQUIRE_OTEL_ENV),
            service_name=os.environ.get(OTEL_SERVICE_NAME_ENV, "").strip() or "blobpod",
            exporter=os.environ.get(OTEL_EXPORTER_ENV, "").strip().lower() or "otlp",
            otlp_endpoint=os.environ.get(OTEL_OTLP_ENDPOINT_ENV, "").strip() or None,
            test_capture=_flag(OTEL_TEST_CAPTURE_ENV),
        )


def is_tracing_enabled() -> bool:
    """Whether BLOBPOD_OTEL_ENABLED turns tracing on."""
    return _flag(OTEL_ENABLED_ENV)


def _span_processor(settings: TracingSettings) -> SpanProcessor:
    global _memory_exporter

    from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

    if settings.test_capture:
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

        _memory_exporter = InMemorySpanExporter()
        return SimpleSpanProcessor(_memory_exporter)

    if settings.exporter == "console":
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter

        return SimpleSpanProcessor(ConsoleSpanExporter())

    if settings.exporter != "otlp":
        raise ValueError(f"Unknown exporter {settings.exporter!r}")

    # Needs the "otlp" extra.
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    if settings.otlp_endpoint:
        return BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
    return BatchSpanProcessor(OTLPSpanExporter())


def configure_tracing() -> bool:
    """Install a TracerProvider according to the environment.

    Calling it again is a no-op once a provider is installed.

    Returns:
        Whether spans will be recorded.

    Raises:
        TracingConfigError: If setup fails and BLOBPOD_REQUIRE_OTEL=1.
    """
    global _provider_installed

    settings = TracingSettings.from_env()
    if not settings.enabled:
        logger.debug("Tracing disabled; set %s=1 to enable", OTEL_ENABLED_ENV)
        return False
    if _provider_installed:
        return True

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider

        provider = TracerProvider(resource=Resource.create({"service.name": settings.service_name}))
        provider.add_span_processor(_span_processor(settings))
        trace.set_tracer_provider(provider)
    except Exception as e:
        logger.error("Tracing setup failed: %s", e)
        if settings.required:
            raise TracingConfigError(f"Tracing is required but setup failed: {e}") from e
        return False

    _provider_installed = True
    logger.info(
        "Tracing enabled: service=%s exporter=%s",
        settings.service_name,
        "memory" if settings.test_capture else settings.exporter,
    )
    return True


def get_test_spans() -> list[ReadableSpan]:
    """Finished spans held by the in-memory exporter."""
    if _memory_exporter is None:
        return []
    return list(_memory_exporter.get_finished_spans())


def clear_test_spans() -> None:
    if _memory_exporter is not None:
        _memory_exporter.clear()


def reset_tracing() -> None:
    """Reset tracing between tests.

    The installed provider and its in-memory exporter stay in place; only
    the captured spans are dropped.
    """
    clear_test_spans()
