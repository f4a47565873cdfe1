"""Tests for RepresentationMetadata and the rdflib sidecar codec."""

from __future__ import annotations

import pytest
from rdflib import BNode, Literal, URIRef
from rdflib.namespace import DCTERMS, RDF

from blobpod.errors import MetadataParseError
from blobpod.resources.codec import RdfMetadataCodec
from blobpod.resources.identifiers import ResourceIdentifier
from blobpod.resources.metadata import RepresentationMetadata
from blobpod.resources.vocabulary import CONTENT_TYPE, LDP

DOC = "http://pod.example/docs/a.txt"


class TestRepresentationMetadata:
    """Tests for the triple set wrapper."""

    def test_identifier_accepts_resource_identifier(self) -> None:
        metadata = RepresentationMetadata(ResourceIdentifier(DOC))

        assert metadata.identifier == URIRef(DOC)
        assert len(metadata) == 0

    def test_content_type_shortcut(self) -> None:
        metadata = RepresentationMetadata(DOC, content_type="text/plain")

        assert metadata.content_type == "text/plain"
        assert metadata.get(CONTENT_TYPE) == Literal("text/plain")

        metadata.content_type = None
        assert metadata.content_type is None
        assert len(metadata) == 0

    def test_set_replaces_all_values(self) -> None:
        metadata = RepresentationMetadata(DOC)
        metadata.add(DCTERMS.title, Literal("one")).add(DCTERMS.title, Literal("two"))

        with pytest.raises(ValueError):
            metadata.get(DCTERMS.title)

        metadata.set(DCTERMS.title, Literal("three"))
        assert metadata.get_all(DCTERMS.title) == [Literal("three")]

    def test_has_and_remove(self) -> None:
        metadata = RepresentationMetadata(DOC)
        metadata.add(RDF.type, LDP.Resource)

        assert metadata.has(RDF.type)
        assert metadata.has(RDF.type, LDP.Resource)

        metadata.remove(RDF.type, LDP.Resource)
        assert not metadata.has(RDF.type)

    def test_triples_about_other_subjects_are_kept(self) -> None:
        author = BNode()
        metadata = RepresentationMetadata(DOC)
        metadata.add(DCTERMS.creator, author)
        metadata.add_triples([(author, DCTERMS.title, Literal("Ada"))])

        assert (author, DCTERMS.title, Literal("Ada")) in metadata.triples()
        assert len(list(metadata)) == 2


class TestRdfMetadataCodec:
    """Tests for sidecar encoding and decoding."""

    def test_turtle_roundtrip_preserves_triples(self) -> None:
        codec = RdfMetadataCodec()
        triples = [
            (URIRef(DOC), DCTERMS.title, Literal("Report")),
            (URIRef(DOC), CONTENT_TYPE, Literal("text/markdown")),
        ]

        data = codec.encode(triples, "text/turtle", base=DOC)
        decoded = codec.decode(data, "text/turtle", base=DOC)

        assert set(decoded) == set(triples)

    def test_relative_subjects_resolve_against_base(self) -> None:
        codec = RdfMetadataCodec()
        data = b'<> <http://purl.org/dc/terms/title> "Moved" .'

        decoded = codec.decode(data, "text/turtle", base=DOC)

        assert decoded == [(URIRef(DOC), DCTERMS.title, Literal("Moved"))]

    def test_ntriples_is_supported(self) -> None:
        codec = RdfMetadataCodec()
        triples = [(URIRef(DOC), DCTERMS.title, Literal("Report"))]

        data = codec.encode(triples, "application/n-triples")

        assert b"<http://purl.org/dc/terms/title>" in data
        assert codec.decode(data, "application/n-triples") == triples

    def test_invalid_sidecar_raises_metadata_parse_error(self) -> None:
        codec = RdfMetadataCodec()

        with pytest.raises(MetadataParseError) as exc_info:
            codec.decode(b"this is @not turtle <<<", "text/turtle", base=DOC)

        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "metadata_parse_error"
        assert exc_info.value.details == {"base": DOC, "format": "turtle"}

    def test_unsupported_serialization(self) -> None:
        with pytest.raises(ValueError):
            RdfMetadataCodec().encode([], "application/pdf")
