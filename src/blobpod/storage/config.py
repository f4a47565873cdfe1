"""blobpod object store configuration.

Provides a validated, immutable configuration object for the object store
client. Credentials live only here, as ``SecretStr``, and are handed to the
client at construction.

Environment Variables:
    BLOBPOD_OBJECT_STORE_BACKEND: "memory", "filesystem" or "http" (default: "memory")
    BLOBPOD_OBJECT_STORE_BASE_DIR: Base directory for the filesystem backend
    BLOBPOD_BLOB_API_URL: Blob API endpoint for the http backend
    BLOBPOD_BLOB_PUBLIC_URL: Public base URL blobs are served from
    BLOBPOD_BLOB_TOKEN: Read-write token for the blob API
    BLOBPOD_BLOB_TIMEOUT_SECONDS: Request timeout (default: 30)
    BLOBPOD_OBJECT_VISIBILITY: "public" or "private" (default: "public")
    BLOBPOD_CONTAINER_STRATEGY: "prefix" or "marker" (default: "prefix")
"""

from __future__ import annotations

import os
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator

from blobpod.storage.errors import StorageConfigError
from blobpod.storage.models import ContainerStrategy, Visibility

ENV_BACKEND: Final[str] = "BLOBPOD_OBJECT_STORE_BACKEND"
ENV_BASE_DIR: Final[str] = "BLOBPOD_OBJECT_STORE_BASE_DIR"
ENV_API_URL: Final[str] = "BLOBPOD_BLOB_API_URL"
ENV_PUBLIC_URL: Final[str] = "BLOBPOD_BLOB_PUBLIC_URL"
ENV_TOKEN: Final[str] = "BLOBPOD_BLOB_TOKEN"
ENV_TIMEOUT_SECONDS: Final[str] = "BLOBPOD_BLOB_TIMEOUT_SECONDS"
ENV_VISIBILITY: Final[str] = "BLOBPOD_OBJECT_VISIBILITY"
ENV_CONTAINER_STRATEGY: Final[str] = "BLOBPOD_CONTAINER_STRATEGY"

DEFAULT_API_URL: Final[str] = "https://blob.vercel-storage.com"
DEFAULT_API_VERSION: Final[str] = "7"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0

Backend = Literal["memory", "filesystem", "http"]


class ObjectStoreConfig(BaseModel):
    """Object store client configuration (immutable).

    Attributes:
        backend: Which ObjectStore implementation to build.
        base_dir: Storage directory for the filesystem backend.
        api_url: Blob API endpoint for the http backend.
        public_url: Base URL under which blobs are downloadable.
        token: Read-write API token; never logged or exported.
        api_version: Value of the x-api-version header.
        timeout_seconds: Per-request timeout for the http backend.
        visibility: Access level of written objects.
        container_strategy: How container existence is witnessed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backend: Backend = "memory"
    base_dir: str | None = None
    api_url: str = DEFAULT_API_URL
    public_url: str | None = None
    token: SecretStr | None = None
    api_version: str = DEFAULT_API_VERSION
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    visibility: Visibility = Visibility.PUBLIC
    container_strategy: ContainerStrategy = ContainerStrategy.PREFIX

    @model_validator(mode="after")
    def http_backend_requires_credentials(self) -> ObjectStoreConfig:
        if self.backend == "http":
            if self.token is None or not self.token.get_secret_value():
                raise ValueError(f"{ENV_TOKEN} is required for the http backend")
            if not self.public_url:
                raise ValueError(f"{ENV_PUBLIC_URL} is required for the http backend")
        return self


def _env(name: str) -> str | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def load_object_store_config() -> ObjectStoreConfig:
    """Load object store configuration from environment variables.

    Returns:
        ObjectStoreConfig with validated values.

    Raises:
        StorageConfigError: If any value is invalid.
    """
    values: dict[str, object] = {}
    for field_name, env_name in (
        ("backend", ENV_BACKEND),
        ("base_dir", ENV_BASE_DIR),
        ("api_url", ENV_API_URL),
        ("public_url", ENV_PUBLIC_URL),
        ("token", ENV_TOKEN),
        ("timeout_seconds", ENV_TIMEOUT_SECONDS),
        ("visibility", ENV_VISIBILITY),
        ("container_strategy", ENV_CONTAINER_STRATEGY),
    ):
        raw = _env(env_name)
        if raw is not None:
            values[field_name] = raw

    try:
        return ObjectStoreConfig.model_validate(values)
    except ValidationError as e:
        # Messages only: input values may include the token.
        problems = "; ".join(
            f"{err['loc'][0] if err['loc'] else 'config'}: {err['msg']}" for err in e.errors()
        )
        raise StorageConfigError(f"Invalid object store configuration: {problems}") from None
