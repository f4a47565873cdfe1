"""Resource identifiers, storage links and representations."""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from blobpod.resources.metadata import RepresentationMetadata

PATH_SEPARATOR = "/"

RepresentationData = Union[bytes, Iterable[bytes], AsyncIterable[bytes]]


@dataclass(frozen=True)
class ResourceIdentifier:
    """An absolute resource URL; a trailing "/" denotes a container."""

    path: str

    @property
    def is_container(self) -> bool:
        return self.path.endswith(PATH_SEPARATOR)

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class ResourceLink:
    """Result of mapping an identifier onto the object store.

    Attributes:
        identifier: The identifier that was mapped.
        storage_key: Object store key for the primary object or sidecar.
        content_type: Content type the key was resolved with, if any.
        is_metadata: Whether storage_key addresses the metadata sidecar.
    """

    identifier: ResourceIdentifier
    storage_key: str
    content_type: str | None = None
    is_metadata: bool = False


@dataclass
class Representation:
    """Data plus metadata handed to the accessor by the hosting server.

    Attributes:
        metadata: Descriptive metadata of the representation.
        data: Body as bytes or a (possibly async) iterable of chunks.
        binary: Whether data is an opaque byte stream.
    """

    metadata: RepresentationMetadata
    data: RepresentationData
    binary: bool = True
