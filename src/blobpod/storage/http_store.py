"""blobpod HTTP blob storage backend.

Client for a remote blob service modelled on the Vercel Blob REST API:
- GET    {api_url}/?url=<blob url>                 head
- PUT    {api_url}/?pathname=<pathname>            put (body = content)
- POST   {api_url}/delete  {"urls": [...]}         delete
- GET    {api_url}/?prefix=&cursor=&limit=         paginated list
- GET    <blob url>                                download

Keys map to blob pathnames by dropping one leading "/"; listing restores it.
No request is retried: a failed call surfaces as StorageBackendError.

Security:
    - The bearer token is read from ObjectStoreConfig at construction only
    - Tokens and Authorization headers are never logged
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from blobpod.storage.config import ObjectStoreConfig
from blobpod.storage.errors import (
    ObjectExistsError,
    ObjectNotFoundError,
    StorageBackendError,
)
from blobpod.storage.models import ObjectHead, PutOptions, StoredObject
from blobpod.storage.object_store import DEFAULT_CHUNK_SIZE, ObjectStore
from blobpod.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 1000
USER_AGENT = "blobpod/1.0"


def _parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    return datetime.now(UTC)


@contextmanager
def _transport_errors(key: str | None) -> Iterator[None]:
    """Convert httpx transport failures into StorageBackendError."""
    try:
        yield
    except httpx.HTTPError as e:
        raise StorageBackendError(
            message=f"Blob API request failed: {type(e).__name__}",
            key=key,
            cause=e,
        ) from e


def _raise_for_status(response: httpx.Response, key: str | None) -> None:
    if response.is_success:
        return
    if response.status_code == 404:
        raise ObjectNotFoundError(key=key)
    raise StorageBackendError(
        message=f"Blob API returned HTTP {response.status_code}",
        key=key,
        status_code=response.status_code,
    )


class HttpBlobStore(ObjectStore):
    """Object store backed by a remote blob HTTP API."""

    def __init__(
        self,
        config: ObjectStoreConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the blob API client.

        Args:
            config: Validated configuration carrying endpoint URLs and token.
            http_client: Optional httpx.AsyncClient for dependency injection (testing).
        """
        super().__init__(config.container_strategy)
        if config.token is None or not config.public_url:
            raise StorageBackendError(message="HttpBlobStore requires a token and a public_url")
        self._api_url = config.api_url.rstrip("/")
        self._public_url = config.public_url.rstrip("/")
        self._visibility = config.visibility
        self._headers = {
            "authorization": f"Bearer {config.token.get_secret_value()}",
            "x-api-version": config.api_version,
            "user-agent": USER_AGENT,
        }
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)
        logger.info("HttpBlobStore initialized: api_url=%s", self._api_url)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "http"

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this store created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpBlobStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @staticmethod
    def _pathname(key: str) -> str:
        return key[1:] if key.startswith("/") else key

    @staticmethod
    def _key(pathname: str) -> str:
        return f"/{pathname}"

    def _blob_url(self, key: str) -> str:
        return f"{self._public_url}/{quote(self._pathname(key), safe='/')}"

    def _head_from_payload(self, key: str, payload: dict[str, Any]) -> ObjectHead:
        return ObjectHead(
            key=key,
            size_bytes=int(payload.get("size") or 0),
            modified_at=_parse_timestamp(payload.get("uploadedAt")),
            content_type=payload.get("contentType") or None,
        )

    async def _head_payload(self, key: str) -> dict[str, Any]:
        with _transport_errors(key):
            response = await self._client.get(
                f"{self._api_url}/",
                params={"url": self._blob_url(key)},
                headers=self._headers,
            )
        _raise_for_status(response, key)
        payload: dict[str, Any] = response.json()
        return payload

    @traced_storage_operation("head")
    async def head(self, key: str) -> ObjectHead:
        """Get object metadata without retrieving content."""
        return self._head_from_payload(key, await self._head_payload(key))

    @traced_storage_operation("get")
    async def get(self, key: str) -> StoredObject:
        """Retrieve an object by downloading it from its blob URL."""
        payload = await self._head_payload(key)
        url = payload.get("url") or self._blob_url(key)
        with _transport_errors(key):
            response = await self._client.get(url)
        _raise_for_status(response, key)
        return StoredObject(head=self._head_from_payload(key, payload), body=response.content)

    @traced_storage_operation("stream")
    async def stream(self, key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Stream an object from its blob URL without buffering it whole."""
        payload = await self._head_payload(key)
        url = payload.get("url") or self._blob_url(key)
        with _transport_errors(key):
            async with self._client.stream("GET", url) as response:
                _raise_for_status(response, key)
                async for chunk in response.aiter_bytes(chunk_size):
                    yield chunk

    @traced_storage_operation("put")
    async def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        options: PutOptions | None = None,
    ) -> ObjectHead:
        """Upload an object under its exact pathname (no random suffix)."""
        options = options or PutOptions(visibility=self._visibility)
        headers = {
            **self._headers,
            "x-add-random-suffix": "0",
            "x-allow-overwrite": "1" if options.overwrite else "0",
            "x-vercel-blob-access": options.visibility.value,
        }
        if content_type:
            headers["x-content-type"] = content_type

        with _transport_errors(key):
            response = await self._client.put(
                f"{self._api_url}/",
                params={"pathname": self._pathname(key)},
                content=data,
                headers=headers,
            )
        if response.status_code == 409:
            raise ObjectExistsError(key=key)
        _raise_for_status(response, key)

        payload: dict[str, Any] = response.json()
        logger.debug("Uploaded blob: pathname=%s size=%d", self._pathname(key), len(data))
        return ObjectHead(
            key=key,
            size_bytes=len(data),
            modified_at=_parse_timestamp(payload.get("uploadedAt")),
            content_type=payload.get("contentType") or content_type,
        )

    @traced_storage_operation("delete")
    async def delete(self, key: str) -> None:
        """Delete an object; the API treats unknown URLs as already deleted."""
        with _transport_errors(key):
            response = await self._client.post(
                f"{self._api_url}/delete",
                json={"urls": [self._blob_url(key)]},
                headers=self._headers,
            )
        if response.status_code == 404:
            return
        _raise_for_status(response, key)
        logger.debug("Deleted blob: pathname=%s", self._pathname(key))

    @traced_storage_operation("list")
    async def list(self, prefix: str) -> AsyncIterator[ObjectHead]:
        """List objects page by page; pages are fetched lazily."""
        cursor: str | None = None
        while True:
            params: dict[str, str | int] = {
                "prefix": self._pathname(prefix),
                "limit": LIST_PAGE_SIZE,
            }
            if cursor:
                params["cursor"] = cursor
            with _transport_errors(None):
                response = await self._client.get(
                    f"{self._api_url}/", params=params, headers=self._headers
                )
            _raise_for_status(response, None)

            page: dict[str, Any] = response.json()
            for blob in page.get("blobs", []):
                key = self._key(blob["pathname"])
                # Pathname prefixes drop the leading "/", so re-check the key.
                if key.startswith(prefix):
                    yield self._head_from_payload(key, blob)

            cursor = page.get("cursor")
            if not page.get("hasMore") or not cursor:
                return
