"""Hierarchical resources over a flat object store.

The accessor stores documents and containers, each with RDF metadata kept in
a sidecar object, on any blobpod.storage.ObjectStore.
"""

from blobpod.resources.accessor import BlobDataAccessor
from blobpod.resources.codec import MetadataCodec, RdfMetadataCodec
from blobpod.resources.identifiers import (
    Representation,
    RepresentationData,
    ResourceIdentifier,
    ResourceLink,
)
from blobpod.resources.mapper import DEFAULT_METADATA_SUFFIX, BlobIdentifierMapper
from blobpod.resources.metadata import RepresentationMetadata
from blobpod.resources.stat import ObjectKind, StorageObjectStat

__all__ = [
    "DEFAULT_METADATA_SUFFIX",
    "BlobDataAccessor",
    "BlobIdentifierMapper",
    "MetadataCodec",
    "ObjectKind",
    "RdfMetadataCodec",
    "Representation",
    "RepresentationData",
    "RepresentationMetadata",
    "ResourceIdentifier",
    "ResourceLink",
    "StorageObjectStat",
]
