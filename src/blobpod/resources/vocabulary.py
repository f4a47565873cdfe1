"""RDF vocabulary used in resource metadata."""

from __future__ import annotations

from rdflib import Namespace, URIRef
from rdflib.namespace import DCTERMS, RDF, XSD

LDP = Namespace("http://www.w3.org/ns/ldp#")
POSIX = Namespace("http://www.w3.org/ns/posix/stat#")
IANA_MEDIA_TYPES = "http://www.w3.org/ns/iana/media-types/"

# Reserved predicate carrying a resource's explicit content type.
CONTENT_TYPE = URIRef("urn:blobpod:meta:contentType")

# Reserved predicate recording the extension appended to an extension-less
# document name; it ties the stored key to the identifier. Never returned.
STORED_EXTENSION = URIRef("urn:blobpod:meta:storedExtension")

DEFAULT_CONTENT_TYPE = "application/octet-stream"
METADATA_CONTENT_TYPE = "text/turtle"

# rdf:type objects describing the kind of a resource; always derived live.
KIND_TYPES = frozenset({LDP.Resource, LDP.Container, LDP.BasicContainer})

# Predicates whose values are derived from the store on every read.
DERIVED_PREDICATES = frozenset({DCTERMS.modified, POSIX.mtime, POSIX.size})

__all__ = [
    "CONTENT_TYPE",
    "DCTERMS",
    "DEFAULT_CONTENT_TYPE",
    "DERIVED_PREDICATES",
    "IANA_MEDIA_TYPES",
    "KIND_TYPES",
    "LDP",
    "METADATA_CONTENT_TYPE",
    "POSIX",
    "RDF",
    "STORED_EXTENSION",
    "XSD",
]
