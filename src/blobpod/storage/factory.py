"""Build an ObjectStore from configuration."""

from __future__ import annotations

import logging

from blobpod.storage.config import ObjectStoreConfig, load_object_store_config
from blobpod.storage.filesystem_store import FilesystemObjectStore
from blobpod.storage.http_store import HttpBlobStore
from blobpod.storage.memory_store import InMemoryObjectStore
from blobpod.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)


def create_object_store(config: ObjectStoreConfig | None = None) -> ObjectStore:
    """Create the configured object store backend.

    Args:
        config: Store configuration; loaded from the environment when None.

    Returns:
        A ready-to-use ObjectStore.

    Raises:
        StorageConfigError: If the environment configuration is invalid.
    """
    if config is None:
        config = load_object_store_config()

    store: ObjectStore
    if config.backend == "http":
        store = HttpBlobStore(config)
    elif config.backend == "filesystem":
        store = FilesystemObjectStore(config.base_dir, container_strategy=config.container_strategy)
    else:
        store = InMemoryObjectStore(container_strategy=config.container_strategy)

    logger.info(
        "Object store created: backend=%s container_strategy=%s",
        store.backend_name,
        store.container_strategy.value,
    )
    return store
