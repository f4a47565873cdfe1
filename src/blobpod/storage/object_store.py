"""blobpod object storage interface definition.

Provides the ObjectStore abstract base class that all flat storage backends
implement. Keys are opaque strings; there is no directory concept.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from blobpod.storage.errors import ObjectNotFoundError
from blobpod.storage.models import ContainerStrategy, ObjectHead, PutOptions, StoredObject

DEFAULT_CHUNK_SIZE = 64 * 1024


class ObjectStore(ABC):
    """Abstract base class for flat, key-addressed object stores.

    Implementations:
    - InMemoryObjectStore: process-local dictionary (dev/test)
    - FilesystemObjectStore: local filesystem (dev/test)
    - HttpBlobStore: remote blob HTTP API (production)
    """

    def __init__(self, container_strategy: ContainerStrategy = ContainerStrategy.PREFIX) -> None:
        self._container_strategy = container_strategy

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability.

        Returns:
            Backend name string (e.g., "memory", "filesystem", "http").
        """
        ...

    @property
    def container_strategy(self) -> ContainerStrategy:
        """Return how container existence is witnessed on this store."""
        return self._container_strategy

    @abstractmethod
    async def head(self, key: str) -> ObjectHead:
        """Get object metadata without retrieving content.

        Raises:
            ObjectNotFoundError: If no object exists under the key.
            StorageBackendError: If the backend cannot complete the operation.
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> StoredObject:
        """Retrieve an object with its content.

        Raises:
            ObjectNotFoundError: If no object exists under the key.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    async def stream(self, key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the content of an object in chunks.

        Backends that can stream natively override this; the default reads
        the whole object first.
        """
        stored = await self.get(key)
        for start in range(0, len(stored.body), chunk_size):
            yield stored.body[start : start + chunk_size]

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        options: PutOptions | None = None,
    ) -> ObjectHead:
        """Store an object, replacing any previous object under the key.

        Args:
            key: Opaque storage key.
            data: Object content as bytes.
            content_type: Optional MIME type of the content.
            options: Overwrite and visibility options.

        Returns:
            Head of the stored object.

        Raises:
            ObjectExistsError: If overwrite is disabled and the key exists.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an object. Deleting an absent key is not an error.

        Raises:
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...

    @abstractmethod
    def list(self, prefix: str) -> AsyncIterator[ObjectHead]:
        """List every object whose key starts with prefix, ordered by key.

        Listing may lag behind recent writes on eventually consistent stores.

        Raises:
            StorageBackendError: If the backend cannot complete the listing.
        """
        ...

    async def exists(self, key: str) -> bool:
        """Return whether an object exists under the key."""
        try:
            await self.head(key)
        except ObjectNotFoundError:
            return False
        return True
