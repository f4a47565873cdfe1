"""Descriptive metadata about a single resource.

RepresentationMetadata is a mutable set of RDF triples backed by an rdflib
Graph. Its subject is the resource identifier; triples about other subjects
(blank nodes, fragments) are carried along unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from rdflib import Graph, Literal, URIRef
from rdflib.term import Node

from blobpod.resources.identifiers import ResourceIdentifier
from blobpod.resources.vocabulary import CONTENT_TYPE

Triple = tuple[Node, Node, Node]


class RepresentationMetadata:
    """Triples describing one resource, with a content-type shortcut.

    Args:
        identifier: Resource the metadata is about.
        triples: Initial triples.
        content_type: Optional content type, stored under CONTENT_TYPE.
    """

    def __init__(
        self,
        identifier: ResourceIdentifier | URIRef | str,
        triples: Iterable[Triple] = (),
        content_type: str | None = None,
    ) -> None:
        if isinstance(identifier, ResourceIdentifier):
            identifier = identifier.path
        self._identifier = URIRef(str(identifier))
        self._graph = Graph()
        for triple in triples:
            self._graph.add(triple)
        if content_type is not None:
            self.content_type = content_type

    @property
    def identifier(self) -> URIRef:
        return self._identifier

    @property
    def content_type(self) -> str | None:
        value = self.get(CONTENT_TYPE)
        return str(value) if value is not None else None

    @content_type.setter
    def content_type(self, value: str | None) -> None:
        self.set(CONTENT_TYPE, Literal(value) if value else None)

    def add(self, predicate: URIRef, obj: Node) -> RepresentationMetadata:
        """Add a triple about the identifier."""
        self._graph.add((self._identifier, predicate, obj))
        return self

    def set(self, predicate: URIRef, obj: Node | None) -> RepresentationMetadata:
        """Replace every value of predicate with obj (or just remove them)."""
        self.remove_all(predicate)
        if obj is not None:
            self.add(predicate, obj)
        return self

    def remove(self, predicate: URIRef, obj: Node) -> RepresentationMetadata:
        self._graph.remove((self._identifier, predicate, obj))
        return self

    def remove_all(self, predicate: URIRef) -> RepresentationMetadata:
        self._graph.remove((self._identifier, predicate, None))
        return self

    def get(self, predicate: URIRef) -> Node | None:
        """Return one value of predicate, or None.

        Raises:
            ValueError: If predicate has more than one value.
        """
        values = self.get_all(predicate)
        if len(values) > 1:
            raise ValueError(f"Multiple values for {predicate} on {self._identifier}")
        return values[0] if values else None

    def get_all(self, predicate: URIRef) -> list[Node]:
        return list(self._graph.objects(self._identifier, predicate))

    def has(self, predicate: URIRef, obj: Node | None = None) -> bool:
        return (self._identifier, predicate, obj) in self._graph

    def add_triples(self, triples: Iterable[Triple]) -> RepresentationMetadata:
        for triple in triples:
            self._graph.add(triple)
        return self

    def triples(self) -> list[Triple]:
        """Return every triple."""
        return list(self._graph)

    def __iter__(self) -> Iterator[Triple]:
        return iter(self.triples())

    def __len__(self) -> int:
        return len(self._graph)

    def __repr__(self) -> str:
        return f"RepresentationMetadata({str(self._identifier)!r}, triples={len(self)})"
