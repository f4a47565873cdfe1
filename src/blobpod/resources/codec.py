"""Metadata sidecar serialization.

Encodes and decodes metadata triples with rdflib. Turtle is the sidecar
format by default; the other RDF syntaxes rdflib ships are accepted too.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable

from rdflib import Graph

from blobpod.errors import MetadataParseError
from blobpod.resources.metadata import Triple
from blobpod.resources.vocabulary import METADATA_CONTENT_TYPE

logger = logging.getLogger(__name__)

RDF_FORMATS: dict[str, str] = {
    "text/turtle": "turtle",
    "application/n-triples": "nt",
    "text/n3": "n3",
    "application/ld+json": "json-ld",
    "application/rdf+xml": "xml",
}


def _rdflib_format(content_type: str) -> str:
    media_type = content_type.split(";", 1)[0].strip().lower()
    try:
        return RDF_FORMATS[media_type]
    except KeyError:
        raise ValueError(f"Unsupported metadata content type: {content_type}") from None


class MetadataCodec(ABC):
    """Converts metadata triples to and from bytes."""

    @abstractmethod
    def encode(
        self,
        triples: Iterable[Triple],
        content_type: str = METADATA_CONTENT_TYPE,
        base: str | None = None,
    ) -> bytes:
        """Serialize triples.

        Raises:
            ValueError: If content_type is not a supported serialization.
        """
        ...

    @abstractmethod
    def decode(
        self,
        data: bytes,
        content_type: str = METADATA_CONTENT_TYPE,
        base: str | None = None,
    ) -> list[Triple]:
        """Parse triples, resolving relative IRIs against base.

        Raises:
            MetadataParseError: If data is not valid in the given serialization.
        """
        ...


class RdfMetadataCodec(MetadataCodec):
    """rdflib-backed codec."""

    def encode(
        self,
        triples: Iterable[Triple],
        content_type: str = METADATA_CONTENT_TYPE,
        base: str | None = None,
    ) -> bytes:
        fmt = _rdflib_format(content_type)
        graph = Graph()
        for triple in triples:
            graph.add(triple)
        data: bytes = graph.serialize(format=fmt, base=base, encoding="utf-8")
        return data

    def decode(
        self,
        data: bytes,
        content_type: str = METADATA_CONTENT_TYPE,
        base: str | None = None,
    ) -> list[Triple]:
        fmt = _rdflib_format(content_type)
        graph = Graph()
        try:
            graph.parse(data=data, format=fmt, publicID=base)
        except Exception as e:
            # rdflib parsers raise parser-specific exception types.
            logger.warning("Failed to parse %s metadata for %s: %s", fmt, base, e)
            raise MetadataParseError(details={"base": base, "format": fmt}) from e
        return list(graph)
