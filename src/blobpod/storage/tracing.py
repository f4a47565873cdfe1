"""blobpod object storage OpenTelemetry tracing integration.

Provides tracing decorators for object store coroutines and async generators.

Security:
    - Never export raw object keys in span attributes, only their SHA256
    - No tokens or credentials in any span attribute
"""

from __future__ import annotations

import functools
import hashlib
import inspect
from collections.abc import Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace

from blobpod.observability.tracing import is_tracing_enabled
from blobpod.storage.models import ObjectHead, StoredObject

F = TypeVar("F", bound=Callable[..., Any])

TRACER_NAME = "blobpod.object_store"


def _key_sha256(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _start_span(operation: str) -> Any:
    tracer = trace.get_tracer(TRACER_NAME)
    return tracer.start_as_current_span(f"{TRACER_NAME}.{operation}")


def _set_base_attributes(span: Any, store: Any, key: str) -> None:
    # SECURITY: keys embed resource paths; export a hash for correlation only.
    span.set_attribute("blobpod.object_key_sha256", _key_sha256(key))
    span.set_attribute("storage.backend", getattr(store, "backend_name", "unknown"))


def _mark_error(span: Any, error: BaseException) -> None:
    span.set_attribute("error", True)
    span.set_attribute("error.type", type(error).__name__)


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace object store operations with OpenTelemetry.

    Works on coroutine methods (head, get, put, delete) and on async
    generator methods (list, stream). When tracing is disabled the method
    runs untraced.

    Args:
        operation: Operation name (e.g., "put", "head", "list").

    Returns:
        Decorated method that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        if inspect.isasyncgenfunction(func):

            @functools.wraps(func)
            async def gen_wrapper(self: Any, key: str, *args: Any, **kwargs: Any) -> Any:
                if not is_tracing_enabled():
                    async for item in func(self, key, *args, **kwargs):
                        yield item
                    return

                # Not attached to the current context: the generator may be
                # resumed or closed from another task.
                span = trace.get_tracer(TRACER_NAME).start_span(f"{TRACER_NAME}.{operation}")
                _set_base_attributes(span, self, key)
                count = 0
                try:
                    async for item in func(self, key, *args, **kwargs):
                        count += 1
                        yield item
                except Exception as e:
                    _mark_error(span, e)
                    raise
                finally:
                    span.set_attribute("blobpod.item_count", count)
                    span.end()

            return cast(F, gen_wrapper)

        @functools.wraps(func)
        async def wrapper(self: Any, key: str, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return await func(self, key, *args, **kwargs)

            with _start_span(operation) as span:
                _set_base_attributes(span, self, key)
                try:
                    result = await func(self, key, *args, **kwargs)
                except Exception as e:
                    _mark_error(span, e)
                    raise
                _add_result_attributes(span, result)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any) -> None:
    """Add result-based attributes to span safely (size and content type only)."""
    head: ObjectHead | None = None
    if isinstance(result, ObjectHead):
        head = result
    elif isinstance(result, StoredObject):
        head = result.head

    if head is not None:
        span.set_attribute("blobpod.object_size_bytes", head.size_bytes)
        if head.content_type:
            span.set_attribute("blobpod.object_content_type", head.content_type)
