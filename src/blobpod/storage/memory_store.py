"""blobpod in-memory object storage backend.

Process-local store for development and testing. Listing is always
consistent with the latest write.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

from blobpod.storage.errors import ObjectExistsError, ObjectNotFoundError
from blobpod.storage.models import ContainerStrategy, ObjectHead, PutOptions, StoredObject
from blobpod.storage.object_store import ObjectStore
from blobpod.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Entry:
    head: ObjectHead
    body: bytes


class InMemoryObjectStore(ObjectStore):
    """Dictionary-backed object store.

    Args:
        objects: Optional initial content, key to bytes.
        container_strategy: How containers are witnessed on this store.
    """

    def __init__(
        self,
        objects: Mapping[str, bytes] | None = None,
        container_strategy: ContainerStrategy = ContainerStrategy.PREFIX,
    ) -> None:
        super().__init__(container_strategy)
        self._entries: dict[str, _Entry] = {}
        for key, body in (objects or {}).items():
            self._entries[key] = self._make_entry(key, body, None)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "memory"

    def keys(self) -> list[str]:
        """Return every stored key, sorted."""
        return sorted(self._entries)

    @staticmethod
    def _make_entry(key: str, data: bytes, content_type: str | None) -> _Entry:
        head = ObjectHead(
            key=key,
            size_bytes=len(data),
            modified_at=datetime.now(UTC),
            content_type=content_type,
        )
        return _Entry(head=head, body=bytes(data))

    def _entry(self, key: str) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            raise ObjectNotFoundError(key=key)
        return entry

    @traced_storage_operation("head")
    async def head(self, key: str) -> ObjectHead:
        """Get object metadata without retrieving content."""
        return self._entry(key).head

    @traced_storage_operation("get")
    async def get(self, key: str) -> StoredObject:
        """Retrieve an object."""
        entry = self._entry(key)
        return StoredObject(head=entry.head, body=entry.body)

    @traced_storage_operation("put")
    async def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        options: PutOptions | None = None,
    ) -> ObjectHead:
        """Store an object."""
        options = options or PutOptions()
        if not options.overwrite and key in self._entries:
            raise ObjectExistsError(key=key)
        entry = self._make_entry(key, data, content_type)
        self._entries[key] = entry
        logger.debug("Stored object: key=%s size=%d", key, entry.head.size_bytes)
        return entry.head

    @traced_storage_operation("delete")
    async def delete(self, key: str) -> None:
        """Delete an object; absent keys are ignored."""
        if self._entries.pop(key, None) is not None:
            logger.debug("Deleted object: key=%s", key)

    @traced_storage_operation("list")
    async def list(self, prefix: str) -> AsyncIterator[ObjectHead]:
        """List objects whose key starts with prefix."""
        # Snapshot so concurrent writes do not break iteration.
        matches = [
            entry.head for key, entry in sorted(self._entries.items()) if key.startswith(prefix)
        ]
        for head in matches:
            yield head
