"""Pytest configuration and fixtures for blobpod tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import pytest

from blobpod.observability.tracing import (
    OTEL_ENABLED_ENV,
    OTEL_TEST_CAPTURE_ENV,
    reset_tracing,
)
from blobpod.resources.accessor import BlobDataAccessor
from blobpod.resources.mapper import BlobIdentifierMapper
from blobpod.storage.memory_store import InMemoryObjectStore
from tests.fixtures.resources import TEST_BASE_URL


@pytest.fixture(autouse=True)
def disable_tracing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test untraced unless it opts in explicitly."""
    monkeypatch.delenv(OTEL_ENABLED_ENV, raising=False)
    monkeypatch.delenv(OTEL_TEST_CAPTURE_ENV, raising=False)


@pytest.fixture
def traced(monkeypatch: pytest.MonkeyPatch) -> object:
    """Enable OpenTelemetry with the in-memory test exporter."""
    from blobpod.observability.tracing import clear_test_spans, configure_tracing

    monkeypatch.setenv(OTEL_ENABLED_ENV, "1")
    monkeypatch.setenv(OTEL_TEST_CAPTURE_ENV, "1")
    reset_tracing()
    configure_tracing()
    clear_test_spans()
    yield
    reset_tracing()


@pytest.fixture
def memory_store() -> InMemoryObjectStore:
    """Return an empty in-memory store using the prefix strategy."""
    return InMemoryObjectStore()


@pytest.fixture
def mapper() -> BlobIdentifierMapper:
    """Return a mapper rooted at the test base URL."""
    return BlobIdentifierMapper(TEST_BASE_URL)


@pytest.fixture
def accessor(memory_store: InMemoryObjectStore, mapper: BlobIdentifierMapper) -> BlobDataAccessor:
    """Return an accessor over the in-memory store."""
    return BlobDataAccessor(memory_store, mapper)
