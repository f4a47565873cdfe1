"""Maps resource identifiers onto flat object store keys.

A resource URL ``{base_url}/docs/a.txt`` maps to the key ``/docs/a.txt``
(optionally behind a key prefix). Its metadata sidecar lives at the same key
plus the metadata suffix. When a document is written with a content type and
its name carries no extension, the preferred extension for that type is
appended: ``/docs/a`` as text/plain is stored at ``/docs/a.txt``.
"""

from __future__ import annotations

import logging
import mimetypes
import posixpath
import re
from urllib.parse import quote, unquote

from blobpod.errors import BadRequestHttpError, NotFoundHttpError
from blobpod.resources.identifiers import PATH_SEPARATOR, ResourceIdentifier, ResourceLink
from blobpod.resources.vocabulary import DEFAULT_CONTENT_TYPE

logger = logging.getLogger(__name__)

DEFAULT_METADATA_SUFFIX = ".meta"

# RFC 3986 pchar characters left unescaped in generated URLs.
_PATH_SAFE = "!$&'()*+,;=:@"

PREFERRED_EXTENSIONS: dict[str, str] = {
    "text/plain": ".txt",
    "text/html": ".html",
    "text/css": ".css",
    "text/csv": ".csv",
    "text/markdown": ".md",
    "text/turtle": ".ttl",
    "text/n3": ".n3",
    "application/json": ".json",
    "application/ld+json": ".jsonld",
    "application/n-triples": ".nt",
    "application/rdf+xml": ".rdf",
    "application/xml": ".xml",
    "application/pdf": ".pdf",
    "application/javascript": ".js",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/svg+xml": ".svg",
}

_EXTENSION_TYPES = {ext: content_type for content_type, ext in PREFERRED_EXTENSIONS.items()}
_EXTENSION_TYPES[".htm"] = "text/html"
_EXTENSION_TYPES[".jpeg"] = "image/jpeg"

# Built-in table only, independent of the host's mime.types files.
_MIME_TYPES = mimetypes.MimeTypes()

_TRAVERSAL = re.compile(r"(^|/)\.\.(/|$)")


def _normalize_media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def _decode_path(path: str) -> str:
    # Encoded slashes stay encoded so they cannot introduce new segments.
    return PATH_SEPARATOR.join(
        unquote(segment).replace(PATH_SEPARATOR, "%2F") for segment in path.split(PATH_SEPARATOR)
    )


def _encode_segment(segment: str) -> str:
    return quote(segment.replace("%2F", PATH_SEPARATOR), safe=_PATH_SAFE)


def _extension(path: str) -> str:
    return posixpath.splitext(posixpath.basename(path))[1].lower()


class BlobIdentifierMapper:
    """Resolves identifiers inside base_url to storage keys.

    Args:
        base_url: Root URL of the resource space; identifiers outside it
            are reported as not found.
        metadata_suffix: Suffix appended to a key to address its sidecar.
        key_prefix: Optional string prepended to every key, to share a store.
    """

    def __init__(
        self,
        base_url: str,
        metadata_suffix: str = DEFAULT_METADATA_SUFFIX,
        key_prefix: str = "",
    ) -> None:
        if not metadata_suffix or PATH_SEPARATOR in metadata_suffix:
            raise ValueError(f"Invalid metadata suffix: {metadata_suffix!r}")
        self._base_url = base_url.rstrip(PATH_SEPARATOR)
        self._metadata_suffix = metadata_suffix
        self._key_prefix = key_prefix.rstrip(PATH_SEPARATOR)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def metadata_suffix(self) -> str:
        return self._metadata_suffix

    def map_url_to_key(
        self,
        identifier: ResourceIdentifier,
        is_metadata: bool = False,
        content_type: str | None = None,
    ) -> ResourceLink:
        """Map an identifier to its primary or sidecar storage key.

        Args:
            identifier: Resource to resolve.
            is_metadata: Address the metadata sidecar instead of the primary object.
            content_type: Content type of the document about to be written; used
                to pick an extension when the name has none.

        Raises:
            NotFoundHttpError: If the identifier is outside base_url.
            BadRequestHttpError: If the path is malformed, contains ".."
                segments or ends in the metadata suffix.
        """
        path = self._relative_path(identifier)
        self._validate_relative_path(path, identifier)

        if is_metadata:
            path += self._metadata_suffix
        elif content_type and self.can_append_extension(identifier):
            extension = self.extension_for_content_type(content_type)
            if extension:
                path += extension

        key = f"{self._key_prefix}{path}"
        logger.debug("The storage key for %s is %s", identifier.path, key)
        return ResourceLink(
            identifier=identifier,
            storage_key=key,
            content_type=content_type,
            is_metadata=is_metadata,
        )

    def can_append_extension(self, identifier: ResourceIdentifier) -> bool:
        """Whether the key of this document may carry a type-derived extension."""
        return not identifier.is_container and not _extension(identifier.path)

    def is_metadata_key(self, key: str) -> bool:
        return key.endswith(self._metadata_suffix)

    def extension_for_content_type(self, content_type: str) -> str | None:
        """Preferred extension for a content type, or None if it has none."""
        media_type = _normalize_media_type(content_type)
        if media_type == DEFAULT_CONTENT_TYPE:
            return None
        extension = PREFERRED_EXTENSIONS.get(media_type)
        if extension is None:
            extension = _MIME_TYPES.guess_extension(media_type)
        return extension

    def content_type_for_key(self, key: str) -> str:
        """Content type implied by the extension of a storage key."""
        extension = _extension(key)
        if not extension:
            return DEFAULT_CONTENT_TYPE
        content_type = _EXTENSION_TYPES.get(extension)
        if content_type is None:
            content_type, _ = _MIME_TYPES.guess_type(f"file{extension}", strict=False)
        return content_type or DEFAULT_CONTENT_TYPE

    def url_for_child(self, container: ResourceIdentifier, name: str) -> ResourceIdentifier:
        """Identifier of a direct child; name ends in "/" for containers."""
        if name.endswith(PATH_SEPARATOR):
            encoded = _encode_segment(name[:-1]) + PATH_SEPARATOR
        else:
            encoded = _encode_segment(name)
        return ResourceIdentifier(f"{container.path}{encoded}")

    def _relative_path(self, identifier: ResourceIdentifier) -> str:
        if not identifier.path.startswith(self._base_url):
            logger.warning("The URL %s is outside of the scope %s", identifier.path, self._base_url)
            raise NotFoundHttpError(details={"identifier": identifier.path})
        return _decode_path(identifier.path[len(self._base_url) :])

    def _validate_relative_path(self, path: str, identifier: ResourceIdentifier) -> None:
        if not path.startswith(PATH_SEPARATOR):
            logger.warning("URL %s needs a / after the base", identifier.path)
            raise BadRequestHttpError("URL needs a / after the base")

        if _TRAVERSAL.search(path):
            logger.warning("Disallowed /../ segment in URL %s", identifier.path)
            raise BadRequestHttpError("Disallowed /../ segment in URL")

        if not identifier.is_container and self.is_metadata_key(path):
            logger.warning(
                "URL %s ends in the reserved suffix %s", identifier.path, self._metadata_suffix
            )
            raise BadRequestHttpError(f"URL cannot end in {self._metadata_suffix}")
