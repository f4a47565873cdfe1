"""Hierarchical resource storage over a flat object store.

BlobDataAccessor presents containers and documents, each with descriptive
metadata, on top of an ObjectStore that only knows opaque keys:

- Directory semantics are emulated. A container exists while any key shares
  its prefix, or while its marker object exists under the marker strategy.
- Metadata lives in a sidecar object next to the primary key. Kind, size and
  modification time are never stored there; they are derived live.
- An extension appended to an extension-less document name is recorded in
  the document's sidecar. Only that key is claimed for the document.
- Documents are written sidecar first, data second. A failed data write
  removes the sidecar again. Between the two writes a reader can observe
  metadata without data; the store has no transactions to close that window.
- Children are found by listing the container prefix and grouping keys by
  their first path segment.

There is no locking, no retry and no read-after-write guarantee beyond what
the store provides.
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterable, AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from datetime import datetime

from rdflib import Literal, URIRef

from blobpod.errors import (
    BadRequestHttpError,
    MetadataParseError,
    NotFoundHttpError,
    ResourceHttpError,
    UnsupportedMediaTypeHttpError,
)
from blobpod.resources.codec import MetadataCodec, RdfMetadataCodec
from blobpod.resources.identifiers import (
    PATH_SEPARATOR,
    Representation,
    RepresentationData,
    ResourceIdentifier,
    ResourceLink,
)
from blobpod.resources.mapper import BlobIdentifierMapper
from blobpod.resources.metadata import RepresentationMetadata, Triple
from blobpod.resources.stat import ObjectKind, StorageObjectStat
from blobpod.resources.vocabulary import (
    CONTENT_TYPE,
    DCTERMS,
    DERIVED_PREDICATES,
    IANA_MEDIA_TYPES,
    KIND_TYPES,
    LDP,
    METADATA_CONTENT_TYPE,
    POSIX,
    RDF,
    STORED_EXTENSION,
    XSD,
)
from blobpod.storage.errors import ObjectNotFoundError, ObjectStorageError, StorageBackendError
from blobpod.storage.models import ContainerStrategy, ObjectHead, PutOptions
from blobpod.storage.object_store import DEFAULT_CHUNK_SIZE, ObjectStore

logger = logging.getLogger(__name__)

# RFC 6838 restricted-name characters for type and subtype.
_MEDIA_TYPE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*/[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*$")
_STORED_EXTENSION = re.compile(r"^\.[^./]+$")


@dataclass
class _ChildEntry:
    """A direct child being assembled from one or more listed keys."""

    name: str
    head: ObjectHead
    latest: datetime

    def include(self, head: ObjectHead) -> None:
        if head.modified_at > self.latest:
            self.latest = head.modified_at


def _media_type_uri(content_type: str) -> URIRef:
    media_type = content_type.split(";", 1)[0].strip()
    if not _MEDIA_TYPE.match(media_type):
        raise ValueError(f"Cannot form a type URI from content type {content_type!r}")
    return URIRef(f"{IANA_MEDIA_TYPES}{media_type}#Resource")


def _stem(name: str) -> str:
    """Part of a key name before its first dot; the whole name if it has none."""
    stem, dot, _ = name.partition(".")
    return stem if stem and dot else name


async def _collect(data: RepresentationData) -> bytes:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    chunks: list[bytes] = []
    if isinstance(data, AsyncIterable):
        async for chunk in data:
            chunks.append(bytes(chunk))
    else:
        for chunk in data:
            chunks.append(bytes(chunk))
    return b"".join(chunks)


class BlobDataAccessor:
    """Stores resources and their metadata in a flat object store.

    Args:
        store: Flat object store client.
        mapper: Identifier to storage key mapper.
        codec: Sidecar serializer; rdflib Turtle by default.
        metadata_content_type: Serialization used for sidecars.
        put_options: Options passed on every put.
        chunk_size: Chunk size of streams returned by get_data.
    """

    def __init__(
        self,
        store: ObjectStore,
        mapper: BlobIdentifierMapper,
        codec: MetadataCodec | None = None,
        *,
        metadata_content_type: str = METADATA_CONTENT_TYPE,
        put_options: PutOptions | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._store = store
        self._mapper = mapper
        self._codec = codec or RdfMetadataCodec()
        self._metadata_content_type = metadata_content_type
        self._put_options = put_options or PutOptions()
        self._chunk_size = chunk_size

    @property
    def store(self) -> ObjectStore:
        return self._store

    @property
    def mapper(self) -> BlobIdentifierMapper:
        return self._mapper

    async def can_handle(self, representation: Representation) -> None:
        """Only binary representations can be stored.

        Raises:
            UnsupportedMediaTypeHttpError: If the representation is not binary.
        """
        if not representation.binary:
            raise UnsupportedMediaTypeHttpError("Only binary data can be directly stored")

    async def get_data(self, identifier: ResourceIdentifier) -> AsyncIterator[bytes]:
        """Return a single-use byte stream of a document.

        Raises:
            NotFoundHttpError: If no document exists for the identifier.
        """
        if identifier.is_container:
            raise NotFoundHttpError(details={"identifier": identifier.path})
        link = await self._locate(identifier)
        await self._get_stat(link)
        return self._stream(link.storage_key)

    async def get_metadata(self, identifier: ResourceIdentifier) -> RepresentationMetadata:
        """Return stored metadata merged with live kind, size and mtime.

        Raises:
            NotFoundHttpError: If nothing of the identifier's kind exists.
            MetadataParseError: If the sidecar cannot be parsed.
        """
        link = await self._locate(identifier)
        stat = await self._get_stat(link)
        expected = ObjectKind.DIRECTORY if identifier.is_container else ObjectKind.FILE
        if stat.kind is not expected:
            raise NotFoundHttpError(details={"identifier": identifier.path})

        metadata = await self._read_sidecar(identifier)
        metadata.remove_all(STORED_EXTENSION)
        if stat.kind is ObjectKind.DIRECTORY:
            self._add_container_triples(metadata, stat)
        else:
            if metadata.content_type is None:
                metadata.content_type = self._mapper.content_type_for_key(link.storage_key)
            self._add_document_triples(metadata, stat)
        return metadata

    async def get_children(
        self, identifier: ResourceIdentifier
    ) -> AsyncIterator[RepresentationMetadata]:
        """Yield one metadata record per direct child of a container.

        Keys below the container are listed once and grouped by their first
        path segment. Sidecars and the container's own marker are hidden. A
        document stored under an appended extension is listed by its own
        name. The result can be consumed once, front to back.

        Raises:
            NotFoundHttpError: If identifier is not a container.
        """
        if not identifier.is_container:
            raise NotFoundHttpError("Only containers have children")
        prefix = self._mapper.map_url_to_key(identifier).storage_key

        emitted: set[str] = set()
        current: _ChildEntry | None = None
        # Direct keys sharing one stem are contiguous in key order.
        block: list[ObjectHead] = []
        with self._store_errors(prefix):
            async for head in self._store.list(prefix):
                suffix = head.key[len(prefix) :]
                separator = suffix.find(PATH_SEPARATOR)
                if not suffix or separator == 0:
                    continue
                if separator < 0:
                    if current is not None:
                        yield self._child_metadata(identifier, current)
                        current = None
                    if block and _stem(block[0].key[len(prefix) :]) != _stem(suffix):
                        async for child in self._block_children(identifier, prefix, block, emitted):
                            yield child
                        block = []
                    block.append(head)
                    continue

                if block:
                    async for child in self._block_children(identifier, prefix, block, emitted):
                        yield child
                    block = []
                name = suffix[: separator + 1]
                if current is not None and current.name == name:
                    current.include(head)
                    continue
                if current is not None:
                    yield self._child_metadata(identifier, current)
                    current = None
                if name in emitted:
                    # Listing was not in key order; the child was already reported.
                    continue
                emitted.add(name)
                current = _ChildEntry(name=name, head=head, latest=head.modified_at)
            if block:
                async for child in self._block_children(identifier, prefix, block, emitted):
                    yield child
        if current is not None:
            yield self._child_metadata(identifier, current)

    async def write_document(
        self,
        identifier: ResourceIdentifier,
        data: RepresentationData,
        metadata: RepresentationMetadata,
    ) -> None:
        """Write a document: stale key cleanup, sidecar, then data.

        Raises:
            BadRequestHttpError: If identifier is a container.
        """
        if identifier.is_container:
            raise BadRequestHttpError("Containers cannot be written as documents")

        content_type = metadata.content_type
        link = self._mapper.map_url_to_key(identifier, content_type=content_type)

        existing_key = await self._find_primary_key(identifier)
        if existing_key is not None and existing_key != link.storage_key:
            # The content type changed the extension; drop the old object.
            logger.debug("Removing %s superseded by %s", existing_key, link.storage_key)
            with self._store_errors(existing_key):
                await self._store.delete(existing_key)

        wrote_sidecar = await self._write_sidecar(identifier, metadata, link.storage_key)
        stored_type = content_type or self._mapper.content_type_for_key(link.storage_key)
        async with self._sidecar_compensation(identifier, wrote_sidecar):
            body = await _collect(data)
            with self._store_errors(link.storage_key):
                await self._store.put(
                    link.storage_key,
                    body,
                    content_type=stored_type,
                    options=self._put_options,
                )
        logger.debug("Wrote document %s to %s", identifier.path, link.storage_key)

    async def write_container(
        self, identifier: ResourceIdentifier, metadata: RepresentationMetadata
    ) -> None:
        """Make sure a container exists, then write its metadata.

        Raises:
            BadRequestHttpError: If identifier is not a container.
        """
        if not identifier.is_container:
            raise BadRequestHttpError("Documents cannot be written as containers")

        key = self._mapper.map_url_to_key(identifier).storage_key
        if not await self._container_exists(key):
            with self._store_errors(key):
                await self._store.put(key, b"", options=self._put_options)
            logger.debug("Created container marker %s", key)

        await self._write_sidecar(identifier, metadata, None)

    async def write_metadata(
        self, identifier: ResourceIdentifier, metadata: RepresentationMetadata
    ) -> None:
        """Write only the sidecar, whether or not the resource exists."""
        primary_key = None
        if not identifier.is_container:
            primary_key = await self._find_primary_key(identifier)
            if primary_key is None:
                primary_key = self._mapper.map_url_to_key(
                    identifier, content_type=metadata.content_type
                ).storage_key
        await self._write_sidecar(identifier, metadata, primary_key)

    async def delete_resource(self, identifier: ResourceIdentifier) -> None:
        """Delete a resource's sidecar and primary object.

        Raises:
            NotFoundHttpError: If nothing of the identifier's kind exists.
        """
        # The sidecar may record the stored key; locate before deleting it.
        link = await self._locate(identifier)
        sidecar_key = self._mapper.map_url_to_key(identifier, is_metadata=True).storage_key
        with self._store_errors(sidecar_key):
            try:
                await self._store.delete(sidecar_key)
            except ObjectNotFoundError:
                pass

        if identifier.is_container:
            if not await self._container_exists(link.storage_key):
                raise NotFoundHttpError(details={"identifier": identifier.path})
        else:
            await self._get_stat(link)

        with self._store_errors(link.storage_key):
            await self._store.delete(link.storage_key)
        logger.debug("Deleted %s at %s", identifier.path, link.storage_key)

    @contextmanager
    def _store_errors(self, key: str) -> Iterator[None]:
        """Normalize store failures: absent keys become NotFoundHttpError."""
        try:
            yield
        except ObjectNotFoundError as e:
            raise NotFoundHttpError(details={"key": key}) from e
        except (ObjectStorageError, ResourceHttpError):
            raise
        except Exception as e:
            raise StorageBackendError(
                message=f"Object store failed: {type(e).__name__}", key=key, cause=e
            ) from e

    @asynccontextmanager
    async def _sidecar_compensation(
        self, identifier: ResourceIdentifier, active: bool
    ) -> AsyncIterator[None]:
        """Delete the freshly written sidecar if the enclosed data write fails."""
        try:
            yield
        except Exception:
            if active:
                sidecar_key = self._mapper.map_url_to_key(identifier, is_metadata=True).storage_key
                try:
                    await self._store.delete(sidecar_key)
                except Exception:
                    logger.exception("Failed to roll back metadata %s", sidecar_key)
                else:
                    logger.debug("Rolled back metadata %s after failed data write", sidecar_key)
            raise

    async def _stream(self, key: str) -> AsyncIterator[bytes]:
        with self._store_errors(key):
            async for chunk in self._store.stream(key, self._chunk_size):
                yield chunk

    async def _locate(self, identifier: ResourceIdentifier) -> ResourceLink:
        """Resolve the primary key actually in use for an identifier."""
        link = self._mapper.map_url_to_key(identifier)
        if identifier.is_container:
            return link
        key = await self._find_primary_key(identifier)
        if key is None or key == link.storage_key:
            return link
        return ResourceLink(
            identifier=identifier,
            storage_key=key,
            content_type=self._mapper.content_type_for_key(key),
        )

    async def _find_primary_key(self, identifier: ResourceIdentifier) -> str | None:
        """Find the stored key of a document.

        The extension-less key wins. Otherwise only the key carrying the
        extension recorded in the document's own sidecar is claimed; other
        keys that merely share the name belong to other documents.
        """
        key = self._mapper.map_url_to_key(identifier).storage_key
        with self._store_errors(key):
            if await self._store.exists(key):
                return key
        if not self._mapper.can_append_extension(identifier):
            return None
        extension = await self._recorded_extension(identifier)
        if extension is None:
            return None
        candidate = f"{key}{extension}"
        with self._store_errors(candidate):
            if await self._store.exists(candidate):
                return candidate
        return None

    async def _recorded_extension(self, identifier: ResourceIdentifier) -> str | None:
        """Extension the sidecar says was appended to the document's key."""
        metadata = await self._read_sidecar(identifier)
        values = metadata.get_all(STORED_EXTENSION)
        if len(values) != 1:
            return None
        extension = str(values[0])
        if not _STORED_EXTENSION.match(extension) or self._mapper.is_metadata_key(extension):
            logger.warning("Ignoring invalid stored extension %r of %s", extension, identifier.path)
            return None
        return extension

    async def _container_exists(self, key: str) -> bool:
        """Existence only; stops at the first listed key under the prefix strategy."""
        with self._store_errors(key):
            if self._store.container_strategy is ContainerStrategy.MARKER:
                return await self._store.exists(key)
            async for _ in self._store.list(key):
                return True
        return False

    async def _get_stat(self, link: ResourceLink) -> StorageObjectStat:
        """Derive kind, size and mtime from the store; never cached.

        A container's mtime is the latest over every key below it, so under
        the prefix strategy this pages through the whole subtree. Callers
        that only need existence use _container_exists.
        """
        key = link.storage_key
        with self._store_errors(key):
            if not link.identifier.is_container:
                head = await self._store.head(key)
                return StorageObjectStat.file(mtime=head.modified_at, size=head.size_bytes)

            if self._store.container_strategy is ContainerStrategy.MARKER:
                head = await self._store.head(key)
                return StorageObjectStat.directory(mtime=head.modified_at)

            latest: datetime | None = None
            async for head in self._store.list(key):
                if latest is None or head.modified_at > latest:
                    latest = head.modified_at
        if latest is None:
            raise NotFoundHttpError(details={"key": key})
        return StorageObjectStat.directory(mtime=latest)

    async def _read_sidecar(self, identifier: ResourceIdentifier) -> RepresentationMetadata:
        key = self._mapper.map_url_to_key(identifier, is_metadata=True).storage_key
        try:
            with self._store_errors(key):
                stored = await self._store.get(key)
        except NotFoundHttpError:
            return RepresentationMetadata(identifier)
        triples = self._codec.decode(stored.body, self._metadata_content_type, base=identifier.path)
        return RepresentationMetadata(identifier, triples)

    async def _write_sidecar(
        self,
        identifier: ResourceIdentifier,
        metadata: RepresentationMetadata,
        primary_key: str | None,
    ) -> bool:
        """Write the filtered sidecar; remove it when nothing is left to store.

        Returns:
            Whether a sidecar object was written.
        """
        key = self._mapper.map_url_to_key(identifier, is_metadata=True).storage_key
        triples = self._storable_triples(metadata, primary_key)
        if primary_key is not None:
            bare_key = self._mapper.map_url_to_key(identifier).storage_key
            if primary_key != bare_key and primary_key.startswith(bare_key):
                extension = Literal(primary_key[len(bare_key) :])
                triples.append((metadata.identifier, STORED_EXTENSION, extension))
        with self._store_errors(key):
            if not triples:
                await self._store.delete(key)
                return False
            data = self._codec.encode(triples, self._metadata_content_type, base=identifier.path)
            await self._store.put(
                key, data, content_type=self._metadata_content_type, options=self._put_options
            )
        return True

    def _storable_triples(
        self, metadata: RepresentationMetadata, primary_key: str | None
    ) -> list[Triple]:
        """Drop everything the store can tell us on its own."""
        subject = metadata.identifier
        implied_type = (
            self._mapper.content_type_for_key(primary_key) if primary_key is not None else None
        )
        kept: list[Triple] = []
        for s, p, o in metadata.triples():
            if s == subject:
                if p == RDF.type and o in KIND_TYPES:
                    continue
                if p in DERIVED_PREDICATES or p == STORED_EXTENSION:
                    continue
                # Containers have no content type; documents only keep an explicit one.
                if p == CONTENT_TYPE and (primary_key is None or str(o) == implied_type):
                    continue
            kept.append((s, p, o))
        return kept

    async def _block_children(
        self,
        container: ResourceIdentifier,
        prefix: str,
        block: list[ObjectHead],
        emitted: set[str],
    ) -> AsyncIterator[RepresentationMetadata]:
        """Child documents among direct keys sharing one stem.

        Sidecars are hidden. A key whose extension was appended for an
        extension-less document is reported under the document's own name.
        """
        names = {head.key[len(prefix) :]: head for head in block}
        owned = await self._owned_key_name(container, names)
        for name, head in names.items():
            if self._mapper.is_metadata_key(name):
                continue
            child_name = _stem(name) if name == owned else name
            if child_name in emitted:
                continue
            emitted.add(child_name)
            yield self._child_metadata(
                container, _ChildEntry(name=child_name, head=head, latest=head.modified_at)
            )

    async def _owned_key_name(
        self, container: ResourceIdentifier, names: dict[str, ObjectHead]
    ) -> str | None:
        """Name of the key recorded by the sidecar of the block's stem, if listed."""
        stem = _stem(next(iter(names)))
        if stem in names:
            return None
        suffix = self._mapper.metadata_suffix
        # Only a dotted suffix keeps the stem's sidecar inside the block.
        if suffix.startswith(".") and f"{stem}{suffix}" not in names:
            return None
        if not any(_STORED_EXTENSION.match(name[len(stem) :]) for name in names):
            return None
        document = self._mapper.url_for_child(container, stem)
        if not self._mapper.can_append_extension(document):
            return None
        try:
            extension = await self._recorded_extension(document)
        except MetadataParseError:
            logger.warning("Unreadable metadata of %s; listing its keys as they are", document.path)
            return None
        if extension is None or f"{stem}{extension}" not in names:
            return None
        return f"{stem}{extension}"

    def _child_metadata(
        self, container: ResourceIdentifier, entry: _ChildEntry
    ) -> RepresentationMetadata:
        child = self._mapper.url_for_child(container, entry.name)
        metadata = RepresentationMetadata(child)
        if child.is_container:
            self._add_container_triples(metadata, StorageObjectStat.directory(entry.latest))
            return metadata

        stat = StorageObjectStat.file(mtime=entry.head.modified_at, size=entry.head.size_bytes)
        self._add_document_triples(metadata, stat)
        content_type = self._mapper.content_type_for_key(entry.head.key)
        try:
            type_uri = _media_type_uri(content_type)
        except ValueError:
            logger.warning("Detected an invalid content type %s for %s", content_type, child.path)
        else:
            metadata.content_type = content_type
            metadata.add(RDF.type, type_uri)
        return metadata

    @staticmethod
    def _add_posix_triples(metadata: RepresentationMetadata, stat: StorageObjectStat) -> None:
        metadata.set(DCTERMS.modified, Literal(stat.mtime, datatype=XSD.dateTime))
        metadata.set(POSIX.mtime, Literal(int(stat.mtime.timestamp())))

    def _add_container_triples(
        self, metadata: RepresentationMetadata, stat: StorageObjectStat
    ) -> None:
        for kind in (LDP.Resource, LDP.Container, LDP.BasicContainer):
            metadata.add(RDF.type, kind)
        metadata.remove_all(POSIX.size)
        self._add_posix_triples(metadata, stat)

    def _add_document_triples(
        self, metadata: RepresentationMetadata, stat: StorageObjectStat
    ) -> None:
        metadata.add(RDF.type, LDP.Resource)
        metadata.set(POSIX.size, Literal(stat.size))
        self._add_posix_triples(metadata, stat)
