"""Wire a BlobDataAccessor from environment configuration."""

from __future__ import annotations

import logging
import os
from typing import Final

from blobpod.resources.accessor import BlobDataAccessor
from blobpod.resources.mapper import DEFAULT_METADATA_SUFFIX, BlobIdentifierMapper
from blobpod.storage.config import ObjectStoreConfig, load_object_store_config
from blobpod.storage.errors import StorageConfigError
from blobpod.storage.factory import create_object_store
from blobpod.storage.models import PutOptions

logger = logging.getLogger(__name__)

BLOBPOD_BASE_URL_ENV: Final[str] = "BLOBPOD_BASE_URL"
BLOBPOD_METADATA_SUFFIX_ENV: Final[str] = "BLOBPOD_METADATA_SUFFIX"


def create_data_accessor(
    config: ObjectStoreConfig | None = None,
    base_url: str | None = None,
) -> BlobDataAccessor:
    """Create an accessor with mapper, codec and store from configuration.

    Args:
        config: Store configuration; loaded from the environment when None.
        base_url: Root URL of the resource space; read from BLOBPOD_BASE_URL
            when None.

    Raises:
        StorageConfigError: If the base URL is missing or the store
            configuration is invalid.
    """
    if base_url is None:
        base_url = os.environ.get(BLOBPOD_BASE_URL_ENV, "").strip()
    if not base_url:
        raise StorageConfigError(f"{BLOBPOD_BASE_URL_ENV} must be set")

    suffix = os.environ.get(BLOBPOD_METADATA_SUFFIX_ENV, "").strip() or DEFAULT_METADATA_SUFFIX
    if config is None:
        config = load_object_store_config()

    try:
        mapper = BlobIdentifierMapper(base_url, metadata_suffix=suffix)
    except ValueError as e:
        raise StorageConfigError(f"{BLOBPOD_METADATA_SUFFIX_ENV}: {e}") from e

    store = create_object_store(config)
    logger.info("Data accessor created: base_url=%s backend=%s", base_url, store.backend_name)
    return BlobDataAccessor(
        store,
        mapper,
        put_options=PutOptions(overwrite=True, visibility=config.visibility),
    )
