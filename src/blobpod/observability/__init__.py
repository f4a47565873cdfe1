"""blobpod observability: OpenTelemetry tracing setup."""

from blobpod.observability.tracing import (
    TracingConfigError,
    TracingSettings,
    clear_test_spans,
    configure_tracing,
    get_test_spans,
    is_tracing_enabled,
    reset_tracing,
)

__all__ = [
    "TracingConfigError",
    "TracingSettings",
    "clear_test_spans",
    "configure_tracing",
    "get_test_spans",
    "is_tracing_enabled",
    "reset_tracing",
]
