"""Tests for the blobpod in-memory object store."""

from __future__ import annotations

import pytest

from blobpod.storage.errors import ObjectExistsError, ObjectNotFoundError
from blobpod.storage.memory_store import InMemoryObjectStore
from blobpod.storage.models import ContainerStrategy, PutOptions


class TestInMemoryObjectStore:
    """Contract tests for the dictionary-backed store."""

    @pytest.mark.asyncio
    async def test_seeded_objects_are_readable(self) -> None:
        store = InMemoryObjectStore({"/docs/a.txt": b"hello"})

        result = await store.get("/docs/a.txt")

        assert result.body == b"hello"
        assert result.head.size_bytes == 5
        assert store.keys() == ["/docs/a.txt"]

    @pytest.mark.asyncio
    async def test_put_records_content_type(self, memory_store: InMemoryObjectStore) -> None:
        head = await memory_store.put("/k", b"{}", content_type="application/json")

        assert head.content_type == "application/json"
        assert (await memory_store.head("/k")).content_type == "application/json"

    @pytest.mark.asyncio
    async def test_missing_key(self, memory_store: InMemoryObjectStore) -> None:
        with pytest.raises(ObjectNotFoundError) as exc_info:
            await memory_store.head("/missing")

        assert exc_info.value.key == "/missing"
        assert "/missing" in str(exc_info.value)
        assert await memory_store.exists("/missing") is False

    @pytest.mark.asyncio
    async def test_overwrite_disabled(self, memory_store: InMemoryObjectStore) -> None:
        await memory_store.put("/k", b"1")

        with pytest.raises(ObjectExistsError):
            await memory_store.put("/k", b"2", options=PutOptions(overwrite=False))

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, memory_store: InMemoryObjectStore) -> None:
        await memory_store.put("/k", b"1")

        await memory_store.delete("/k")
        await memory_store.delete("/k")

        assert memory_store.keys() == []

    @pytest.mark.asyncio
    async def test_list_is_sorted_and_prefix_filtered(self) -> None:
        store = InMemoryObjectStore(
            {"/b/2": b"", "/a/1": b"", "/b/1": b"", "/bz": b"", "/c": b""}
        )

        keys = [head.key async for head in store.list("/b")]

        assert keys == ["/b/1", "/b/2", "/bz"]

    @pytest.mark.asyncio
    async def test_list_tolerates_writes_during_iteration(
        self, memory_store: InMemoryObjectStore
    ) -> None:
        await memory_store.put("/docs/a", b"")
        await memory_store.put("/docs/b", b"")

        seen = []
        async for head in memory_store.list("/docs/"):
            seen.append(head.key)
            await memory_store.put("/docs/c", b"")

        assert seen == ["/docs/a", "/docs/b"]

    def test_strategy_and_backend_name(self) -> None:
        store = InMemoryObjectStore(container_strategy=ContainerStrategy.MARKER)

        assert store.container_strategy is ContainerStrategy.MARKER
        assert store.backend_name == "memory"
