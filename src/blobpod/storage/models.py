"""blobpod object storage data models.

Provides typed dataclasses describing flat storage objects and write options.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Visibility(str, Enum):
    """Access level requested for a stored object."""

    PUBLIC = "public"
    PRIVATE = "private"


class ContainerStrategy(str, Enum):
    """How container existence is witnessed on a store without directories.

    PREFIX: a container exists when at least one key shares its prefix.
    MARKER: a container exists when its placeholder object exists.
    """

    PREFIX = "prefix"
    MARKER = "marker"


@dataclass(frozen=True)
class PutOptions:
    """Options for a single put.

    Attributes:
        overwrite: Replace an existing object under the same key.
        visibility: Access level of the written object.
    """

    overwrite: bool = True
    visibility: Visibility = Visibility.PUBLIC


@dataclass(frozen=True)
class ObjectHead:
    """Metadata for a stored object as reported by head and list.

    Attributes:
        key: Opaque storage key.
        size_bytes: Size of the object content in bytes.
        modified_at: Timestamp of the last write.
        content_type: MIME type recorded by the backend, if any.
    """

    key: str
    size_bytes: int
    modified_at: datetime
    content_type: str | None = None

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert head to dictionary for JSON serialization."""
        return {
            "key": self.key,
            "size_bytes": self.size_bytes,
            "modified_at": self.modified_at.isoformat(),
            "content_type": self.content_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str | int | None]) -> ObjectHead:
        """Create a head from its dictionary form."""
        size_raw = data.get("size_bytes")
        content_type_raw = data.get("content_type")
        return cls(
            key=str(data["key"]),
            size_bytes=int(size_raw) if size_raw is not None else 0,
            modified_at=datetime.fromisoformat(str(data["modified_at"])),
            content_type=str(content_type_raw) if content_type_raw else None,
        )


@dataclass(frozen=True)
class StoredObject:
    """A stored object with its head and body content."""

    head: ObjectHead
    body: bytes = field(repr=False)
