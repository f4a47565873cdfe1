"""blobpod filesystem object storage backend.

Provides flat local filesystem storage for development and testing with:
- One data file and one JSON head file per key
- Percent-encoded file names, so keys never create directories
- Hashed file names for keys too long to encode within the name limit
- Atomic writes via temp file + replace
- Blocking I/O offloaded with asyncio.to_thread

Environment Variables:
    BLOBPOD_OBJECT_STORE_BASE_DIR: Base directory for storage
        (default: tempfile.gettempdir() / blobpod_objects)
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import tempfile
import uuid
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import quote, unquote

from blobpod.storage.errors import (
    ObjectExistsError,
    ObjectNotFoundError,
    StorageBackendError,
)
from blobpod.storage.models import ContainerStrategy, ObjectHead, PutOptions, StoredObject
from blobpod.storage.object_store import ObjectStore
from blobpod.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

BLOBPOD_OBJECT_STORE_BASE_DIR_ENV = "BLOBPOD_OBJECT_STORE_BASE_DIR"

_HEAD_SUFFIX = ".head.json"
_CONTENT_SUFFIX = ".data"


# Leaves room for the head suffix and the temp-file decoration within 255 bytes.
_MAX_NAME_BYTES = 200
_HASHED_NAME_PREFIX = "#"


def _encode_key(key: str) -> str:
    name = quote(key, safe="")
    if len(name) > _MAX_NAME_BYTES:
        # "#" is always percent-encoded above, so hashed names cannot collide.
        return _HASHED_NAME_PREFIX + hashlib.sha256(key.encode("utf-8")).hexdigest()
    return name


def _decode_name(name: str) -> str | None:
    """Key of a file name, or None when the name is hashed."""
    if name.startswith(_HASHED_NAME_PREFIX):
        return None
    return unquote(name)


class FilesystemObjectStore(ObjectStore):
    """Filesystem-based flat object storage implementation.

    Objects are stored directly under the base directory:
        {base_dir}/{quoted_key}.data       # content
        {base_dir}/{quoted_key}.head.json  # size, modification time, content type

    Keys whose quoted form is longer than 200 bytes are stored under
    "#" plus the SHA256 of the key; their head file still records the key.
    """

    def __init__(
        self,
        base_dir: str | Path | None = None,
        container_strategy: ContainerStrategy = ContainerStrategy.PREFIX,
    ) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, uses
                BLOBPOD_OBJECT_STORE_BASE_DIR env var or OS temp directory.
            container_strategy: How containers are witnessed on this store.
        """
        super().__init__(container_strategy)
        if base_dir is None:
            base_dir = os.environ.get(BLOBPOD_OBJECT_STORE_BASE_DIR_ENV)

        if base_dir is None:
            base_dir = Path(tempfile.gettempdir()) / "blobpod_objects"
        else:
            base_dir = Path(base_dir)

        self._base_dir = base_dir.resolve()
        logger.debug("FilesystemObjectStore initialized with base_dir=%s", self._base_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def _paths(self, key: str) -> tuple[Path, Path]:
        """Return the (content, head) file paths for a key."""
        name = _encode_key(key)
        content_file = self._base_dir / f"{name}{_CONTENT_SUFFIX}"
        head_file = self._base_dir / f"{name}{_HEAD_SUFFIX}"
        for path in (content_file, head_file):
            if path.parent != self._base_dir:
                raise StorageBackendError(message="Key resolves outside base directory", key=key)
        return content_file, head_file

    def _write_atomic(self, target: Path, data: bytes, key: str) -> None:
        tmp_file = target.parent / f".{target.name}.{uuid.uuid4().hex}.tmp"
        try:
            tmp_file.write_bytes(data)
            tmp_file.replace(target)
        except OSError as e:
            if tmp_file.exists():
                tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write {target.name}: {e}",
                key=key,
                cause=e,
            ) from e

    def _read_head(self, key: str) -> ObjectHead:
        _, head_file = self._paths(key)
        return self._read_head_file(head_file, key)

    def _read_head_file(self, head_file: Path, key: str | None) -> ObjectHead:
        try:
            raw = head_file.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key=key) from e
        except OSError as e:
            raise StorageBackendError(message=f"Failed to read head: {e}", key=key, cause=e) from e
        try:
            return ObjectHead.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            raise StorageBackendError(message=f"Corrupt head file: {e}", key=key, cause=e) from e

    def _read_object(self, key: str) -> StoredObject:
        head = self._read_head(key)
        content_file, _ = self._paths(key)
        try:
            body = content_file.read_bytes()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(message="Object content not found", key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to read content: {e}", key=key, cause=e
            ) from e
        return StoredObject(head=head, body=body)

    def _write_object(
        self, key: str, data: bytes, content_type: str | None, options: PutOptions
    ) -> ObjectHead:
        content_file, head_file = self._paths(key)
        if not options.overwrite and head_file.exists():
            raise ObjectExistsError(key=key)

        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create base directory: {e}",
                key=key,
                cause=e,
            ) from e

        head = ObjectHead(
            key=key,
            size_bytes=len(data),
            modified_at=datetime.now(UTC),
            content_type=content_type,
        )
        # Content first: a head file always points at complete content.
        self._write_atomic(content_file, data, key)
        self._write_atomic(head_file, json.dumps(head.to_dict(), indent=2).encode("utf-8"), key)
        return head

    def _delete_object(self, key: str) -> None:
        content_file, head_file = self._paths(key)
        try:
            head_file.unlink(missing_ok=True)
            content_file.unlink(missing_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete object files: {e}", key=key, cause=e
            ) from e

    def _list_heads(self, prefix: str) -> list[ObjectHead]:
        if not self._base_dir.exists():
            return []
        keys: list[str] = []
        hashed: list[Path] = []
        try:
            for entry in os.scandir(self._base_dir):
                if entry.name.endswith(_HEAD_SUFFIX):
                    key = _decode_name(entry.name[: -len(_HEAD_SUFFIX)])
                    if key is None:
                        hashed.append(Path(entry.path))
                    elif key.startswith(prefix):
                        keys.append(key)
        except OSError as e:
            raise StorageBackendError(message=f"Failed to list objects: {e}", cause=e) from e

        heads: list[ObjectHead] = []
        for key in keys:
            try:
                heads.append(self._read_head(key))
            except ObjectNotFoundError:
                # Deleted between scan and read.
                continue
        for head_file in hashed:
            try:
                head = self._read_head_file(head_file, None)
            except ObjectNotFoundError:
                continue
            if head.key.startswith(prefix):
                heads.append(head)
        heads.sort(key=lambda head: head.key)
        return heads

    @traced_storage_operation("head")
    async def head(self, key: str) -> ObjectHead:
        """Get object metadata without retrieving content."""
        return await asyncio.to_thread(self._read_head, key)

    @traced_storage_operation("get")
    async def get(self, key: str) -> StoredObject:
        """Retrieve an object."""
        return await asyncio.to_thread(self._read_object, key)

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
        head = await asyncio.to_thread(
            self._write_object, key, data, content_type, options or PutOptions()
        )
        logger.debug("Stored object: key=%s size=%d", key, head.size_bytes)
        return head

    @traced_storage_operation("delete")
    async def delete(self, key: str) -> None:
        """Delete an object; absent keys are ignored."""
        await asyncio.to_thread(self._delete_object, key)
        logger.debug("Deleted object: key=%s", key)

    @traced_storage_operation("list")
    async def list(self, prefix: str) -> AsyncIterator[ObjectHead]:
        """List objects whose key starts with prefix."""
        heads = await asyncio.to_thread(self._list_heads, prefix)
        for head in heads:
            yield head
