"""blobpod flat object storage.

Provides key-addressed object storage with head, get, put, delete and
prefix listing, plus observability hooks. There is no directory concept.

Backends:
- InMemoryObjectStore: process-local dictionary (dev/test)
- FilesystemObjectStore: local filesystem (dev/test)
- HttpBlobStore: remote blob HTTP API (production)

Environment Variables:
    BLOBPOD_OBJECT_STORE_BACKEND: "memory", "filesystem" or "http" (default: "memory")
    See blobpod.storage.config for the full list.
"""

from blobpod.storage.config import ObjectStoreConfig, load_object_store_config
from blobpod.storage.errors import (
    ObjectExistsError,
    ObjectNotFoundError,
    ObjectStorageError,
    StorageBackendError,
    StorageConfigError,
)
from blobpod.storage.factory import create_object_store
from blobpod.storage.filesystem_store import FilesystemObjectStore
from blobpod.storage.http_store import HttpBlobStore
from blobpod.storage.memory_store import InMemoryObjectStore
from blobpod.storage.models import (
    ContainerStrategy,
    ObjectHead,
    PutOptions,
    StoredObject,
    Visibility,
)
from blobpod.storage.object_store import ObjectStore

__all__ = [
    "ContainerStrategy",
    "FilesystemObjectStore",
    "HttpBlobStore",
    "InMemoryObjectStore",
    "ObjectExistsError",
    "ObjectHead",
    "ObjectNotFoundError",
    "ObjectStorageError",
    "ObjectStore",
    "ObjectStoreConfig",
    "PutOptions",
    "StorageBackendError",
    "StorageConfigError",
    "StoredObject",
    "Visibility",
    "create_object_store",
    "load_object_store_config",
]
