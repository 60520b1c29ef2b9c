"""Domain exceptions shared across the store, graph and map services."""

from __future__ import annotations


class MapDiaryError(Exception):
    """Base class for all mapdiary errors."""


class StoreError(MapDiaryError):
    """A document store read or write failed."""


class DocumentNotFoundError(StoreError):
    """An update or read targeted a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document not found: {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


class NotAuthenticatedError(MapDiaryError):
    """An operation needed a current user and there was none."""


class GraphError(MapDiaryError):
    """A graph operation could not be applied."""


class NodeNotFoundError(GraphError):
    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class MapNotFoundError(MapDiaryError):
    def __init__(self, map_id: str):
        super().__init__(f"Map not found: {map_id}")
        self.map_id = map_id


class EmptyMapError(MapDiaryError):
    """The map has no visible content to summarize."""
