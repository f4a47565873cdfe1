"""Tests for blobpod filesystem object storage.

- Roundtrip: put then get returns identical bytes and a matching head
- Flat keys: keys containing "/" or ".." never leave the base directory
- Listing: prefix filtering, key order, no partial files
- Overwrite and idempotent delete semantics
- OTel spans: with tracing enabled, spans carry safe attributes only
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path
from typing import Any

import pytest

from blobpod.storage.errors import ObjectExistsError, ObjectNotFoundError, StorageBackendError
from blobpod.storage.filesystem_store import (
    BLOBPOD_OBJECT_STORE_BASE_DIR_ENV,
    FilesystemObjectStore,
)
from blobpod.storage.models import ContainerStrategy, PutOptions


@pytest.fixture
def temp_storage_dir() -> Any:
    """Create a temporary directory for storage tests."""
    with tempfile.TemporaryDirectory(prefix="blobpod_test_storage_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_storage_dir: Path) -> FilesystemObjectStore:
    """Create a FilesystemObjectStore with a temp directory."""
    return FilesystemObjectStore(base_dir=temp_storage_dir)


async def _list_keys(store: FilesystemObjectStore, prefix: str) -> list[str]:
    return [head.key async for head in store.list(prefix)]


class TestRoundtrip:
    """Tests for basic put/get roundtrip functionality."""

    @pytest.mark.asyncio
    async def test_put_then_get_returns_identical_bytes(self, store: FilesystemObjectStore) -> None:
        """Put then get should return identical bytes."""
        key = "/docs/a.txt"
        data = b"Hello, World! This is test content."

        await store.put(key, data, content_type="text/plain")

        result = await store.get(key)

        assert result.body == data
        assert result.head.key == key
        assert result.head.size_bytes == len(data)
        assert result.head.content_type == "text/plain"

    @pytest.mark.asyncio
    async def test_head_matches_put_result(self, store: FilesystemObjectStore) -> None:
        """Head should report what put returned."""
        written = await store.put("/docs/b.bin", b"X" * 1024)

        head = await store.head("/docs/b.bin")

        assert head == written
        assert head.size_bytes == 1024
        assert head.modified_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_empty_content(self, store: FilesystemObjectStore) -> None:
        """Should handle empty content correctly (container markers are empty)."""
        head = await store.put("/docs/", b"")

        assert head.size_bytes == 0
        assert (await store.get("/docs/")).body == b""

    @pytest.mark.asyncio
    async def test_binary_content(self, store: FilesystemObjectStore) -> None:
        """Should handle binary content with all byte values."""
        data = bytes(range(256)) + os.urandom(1024)

        await store.put("/bin/raw", data)

        assert (await store.get("/bin/raw")).body == data

    @pytest.mark.asyncio
    async def test_stream_yields_chunks(self, store: FilesystemObjectStore) -> None:
        """The default stream should split content by chunk size."""
        await store.put("/docs/c.txt", b"abcdefghij")

        chunks = [chunk async for chunk in store.stream("/docs/c.txt", chunk_size=4)]

        assert chunks == [b"abcd", b"efgh", b"ij"]

    @pytest.mark.asyncio
    async def test_missing_key_raises_not_found(self, store: FilesystemObjectStore) -> None:
        """Head and get on an absent key should raise ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError):
            await store.head("/missing")
        with pytest.raises(ObjectNotFoundError):
            await store.get("/missing")
        assert await store.exists("/missing") is False


class TestFlatKeys:
    """Keys are opaque; separators and dots never create directories."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "key",
        [
            "/a/b/c.txt",
            "../escape",
            "/docs/../../etc/passwd",
            "..\\escape",
            "/space name/ü.txt",
        ],
    )
    async def test_keys_stay_inside_base_dir(
        self, store: FilesystemObjectStore, temp_storage_dir: Path, key: str
    ) -> None:
        """Every key should map to files directly inside the base directory."""
        await store.put(key, b"data")

        assert (await store.get(key)).body == b"data"
        for path in temp_storage_dir.iterdir():
            assert path.parent == temp_storage_dir
            assert path.is_file()

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(
        self, store: FilesystemObjectStore, temp_storage_dir: Path
    ) -> None:
        """Atomic writes should not leave temp files."""
        await store.put("/docs/a.txt", b"one")
        await store.put("/docs/a.txt", b"two")

        assert not [p for p in temp_storage_dir.iterdir() if p.name.endswith(".tmp")]

    @pytest.mark.asyncio
    async def test_long_keys_use_hashed_file_names(
        self, store: FilesystemObjectStore, temp_storage_dir: Path
    ) -> None:
        """Keys too long for one file name are stored, read and listed by hash."""
        long_key = "/docs/" + "ü" * 120 + ".txt"
        await store.put(long_key, b"long")
        await store.put("/docs/a.txt", b"short")

        assert (await store.get(long_key)).body == b"long"
        assert await _list_keys(store, "/docs/") == sorted(["/docs/a.txt", long_key])
        for path in temp_storage_dir.iterdir():
            assert len(path.name.encode("utf-8")) <= 255

        await store.delete(long_key)

        with pytest.raises(ObjectNotFoundError):
            await store.head(long_key)
        assert await _list_keys(store, "/docs/") == ["/docs/a.txt"]


class TestListing:
    """Tests for prefix listing."""

    @pytest.mark.asyncio
    async def test_list_filters_by_prefix_in_key_order(self, store: FilesystemObjectStore) -> None:
        """Only keys starting with the prefix are listed, sorted."""
        for key in ["/docs/sub/c.txt", "/docs/a.txt", "/other/x", "/docs/sub/b.txt"]:
            await store.put(key, b"x")

        assert await _list_keys(store, "/docs/") == [
            "/docs/a.txt",
            "/docs/sub/b.txt",
            "/docs/sub/c.txt",
        ]

    @pytest.mark.asyncio
    async def test_list_of_missing_base_dir_is_empty(self, temp_storage_dir: Path) -> None:
        """A store whose directory was never created lists nothing."""
        store = FilesystemObjectStore(base_dir=temp_storage_dir / "never-created")

        assert await _list_keys(store, "/") == []

    @pytest.mark.asyncio
    async def test_listed_heads_carry_size(self, store: FilesystemObjectStore) -> None:
        """Listing returns full heads, not just keys."""
        await store.put("/docs/a.txt", b"hello")

        heads = [head async for head in store.list("/docs/")]

        assert [(h.key, h.size_bytes) for h in heads] == [("/docs/a.txt", 5)]


class TestOverwriteAndDelete:
    """Tests for overwrite options and idempotent delete."""

    @pytest.mark.asyncio
    async def test_put_overwrites_by_default(self, store: FilesystemObjectStore) -> None:
        """Last write wins."""
        await store.put("/k", b"first")
        await store.put("/k", b"second")

        assert (await store.get("/k")).body == b"second"

    @pytest.mark.asyncio
    async def test_put_without_overwrite_rejects_existing(
        self, store: FilesystemObjectStore
    ) -> None:
        """overwrite=False should refuse to replace an object."""
        await store.put("/k", b"first")

        with pytest.raises(ObjectExistsError):
            await store.put("/k", b"second", options=PutOptions(overwrite=False))
        assert (await store.get("/k")).body == b"first"

    @pytest.mark.asyncio
    async def test_delete_removes_object(self, store: FilesystemObjectStore) -> None:
        """Deleted objects are gone from get and list."""
        await store.put("/docs/a.txt", b"data")

        await store.delete("/docs/a.txt")

        with pytest.raises(ObjectNotFoundError):
            await store.get("/docs/a.txt")
        assert await _list_keys(store, "/docs/") == []

    @pytest.mark.asyncio
    async def test_delete_absent_key_is_not_an_error(self, store: FilesystemObjectStore) -> None:
        """Deleting twice should not raise."""
        await store.delete("/never-written")
        await store.delete("/never-written")


class TestCorruption:
    """Tests for unreadable head files."""

    @pytest.mark.asyncio
    async def test_corrupt_head_raises_backend_error(
        self, store: FilesystemObjectStore, temp_storage_dir: Path
    ) -> None:
        """A head file that is not valid JSON is a backend failure, not a missing key."""
        await store.put("/docs/a.txt", b"data")
        head_file = next(p for p in temp_storage_dir.iterdir() if p.name.endswith(".head.json"))
        head_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageBackendError):
            await store.head("/docs/a.txt")


class TestConfiguration:
    """Tests for base directory and strategy configuration."""

    def test_base_dir_from_env(
        self, monkeypatch: pytest.MonkeyPatch, temp_storage_dir: Path
    ) -> None:
        """Base directory should default to the environment variable."""
        monkeypatch.setenv(BLOBPOD_OBJECT_STORE_BASE_DIR_ENV, str(temp_storage_dir))

        store = FilesystemObjectStore()

        assert store.base_dir == temp_storage_dir.resolve()
        assert store.backend_name == "filesystem"

    def test_container_strategy_is_exposed(self, temp_storage_dir: Path) -> None:
        """The configured container strategy is reported by the store."""
        store = FilesystemObjectStore(temp_storage_dir, container_strategy=ContainerStrategy.MARKER)

        assert store.container_strategy is ContainerStrategy.MARKER


class TestOtelSpans:
    """Tests for OpenTelemetry span emission."""

    @pytest.mark.asyncio
    async def test_put_emits_span_with_safe_attributes(
        self, store: FilesystemObjectStore, traced: object
    ) -> None:
        """Put should emit a span with the key hash, never the raw key or paths."""
        from blobpod.observability.tracing import get_test_spans

        key = "/private/report.txt"
        expected_key_sha256 = hashlib.sha256(key.encode("utf-8")).hexdigest()
        await store.put(key, b"test data", content_type="text/plain")

        put_spans = [s for s in get_test_spans() if s.name == "blobpod.object_store.put"]
        assert len(put_spans) == 1

        attrs = dict(put_spans[0].attributes or {})
        assert attrs["blobpod.object_key_sha256"] == expected_key_sha256
        assert attrs["storage.backend"] == "filesystem"
        assert attrs["blobpod.object_size_bytes"] == 9
        assert attrs["blobpod.object_content_type"] == "text/plain"
        for attr_value in attrs.values():
            assert "report.txt" not in str(attr_value)
            assert str(store.base_dir) not in str(attr_value)

    @pytest.mark.asyncio
    async def test_list_emits_one_span_with_item_count(
        self, store: FilesystemObjectStore, traced: object
    ) -> None:
        """A consumed listing should end its span with the number of items."""
        from blobpod.observability.tracing import clear_test_spans, get_test_spans

        await store.put("/docs/a", b"1")
        await store.put("/docs/b", b"2")
        clear_test_spans()

        assert await _list_keys(store, "/docs/") == ["/docs/a", "/docs/b"]

        list_spans = [s for s in get_test_spans() if s.name == "blobpod.object_store.list"]
        assert len(list_spans) == 1
        assert list_spans[0].attributes["blobpod.item_count"] == 2

    @pytest.mark.asyncio
    async def test_failed_get_marks_span_as_error(
        self, store: FilesystemObjectStore, traced: object
    ) -> None:
        """Errors should be recorded by type only."""
        from blobpod.observability.tracing import get_test_spans

        with pytest.raises(ObjectNotFoundError):
            await store.get("/missing")

        get_spans = [s for s in get_test_spans() if s.name == "blobpod.object_store.get"]
        assert len(get_spans) == 1
        assert get_spans[0].attributes["error"] is True
        assert get_spans[0].attributes["error.type"] == "ObjectNotFoundError"
