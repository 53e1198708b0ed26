"""
cred_atlas/core/references.py — Resolving free-text references to graph nodes.

A reference detector maps a token (typically a URL found in a post body or an
initiative file) to the address of the node it refers to, or None.
"""

from typing import Iterable, Mapping, Protocol

from cred_atlas.core.address import NodeAddress


class ReferenceDetector(Protocol):
    """Resolve a free-text reference to a node address."""

    def address_from_url(self, url: str) -> NodeAddress | None:
        """Return the referenced node's address, or None for no match."""
        ...


class MappedReferenceDetector:
    """Detector backed by a fixed {url: address} mapping."""

    def __init__(self, mapping: Mapping[str, NodeAddress]) -> None:
        self._mapping = dict(mapping)

    def address_from_url(self, url: str) -> NodeAddress | None:
        return self._mapping.get(url)


class CascadingReferenceDetector:
    """
    Tries each child detector in registration order and returns the first
    match. Children are shared and only read; the list itself is owned here.
    """

    def __init__(self, children: Iterable[ReferenceDetector]) -> None:
        self._children = tuple(children)

    @property
    def children(self) -> tuple[ReferenceDetector, ...]:
        return self._children

    def address_from_url(self, url: str) -> NodeAddress | None:
        for child in self._children:
            address = child.address_from_url(url)
            if address is not None:
                return address
        return None
