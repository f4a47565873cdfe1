"""Live stat results derived from the object store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ObjectKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class StorageObjectStat:
    """Kind, modification time and size of a resource.

    Never persisted or cached; size is always 0 for directories.
    """

    kind: ObjectKind
    mtime: datetime
    size: int = 0

    @classmethod
    def file(cls, mtime: datetime, size: int) -> StorageObjectStat:
        return cls(kind=ObjectKind.FILE, mtime=mtime, size=size)

    @classmethod
    def directory(cls, mtime: datetime) -> StorageObjectStat:
        return cls(kind=ObjectKind.DIRECTORY, mtime=mtime, size=0)
