"""
Per-user adapter from graph operations to document collections.

Layout under one user:

    users/{uid}/maps                    map documents
    users/{uid}/maps/{mid}/nodes        node documents
    users/{uid}/maps/{mid}/edges        edge documents
    users/{uid}/reports                 generated period reports

No business logic lives here; callers decide what to write.
"""

from __future__ import annotations

from typing import Any

from mapdiary.errors import NotAuthenticatedError
from mapdiary.store.documents import (
    SERVER_TIMESTAMP,
    DocumentStore,
    SnapshotListener,
    Subscription,
    WriteBatch,
    collection_path,
)


class GraphStore:
    """Collection paths and CRUD for one user's maps, nodes, edges and reports."""

    def __init__(self, store: DocumentStore, user_id: str | None):
        if not user_id:
            raise NotAuthenticatedError("A signed-in user is required")
        self.store = store
        self.user_id = user_id

    # Paths

    def maps_path(self) -> str:
        return collection_path("users", self.user_id, "maps")

    def nodes_path(self, map_id: str) -> str:
        return collection_path("users", self.user_id, "maps", map_id, "nodes")

    def edges_path(self, map_id: str) -> str:
        return collection_path("users", self.user_id, "maps", map_id, "edges")

    def reports_path(self) -> str:
        return collection_path("users", self.user_id, "reports")

    def batch(self) -> WriteBatch:
        return self.store.batch()

    # Maps

    def add_map(self, data: dict[str, Any]) -> str:
        return self.store.add(self.maps_path(), data)

    def get_map(self, map_id: str) -> dict[str, Any] | None:
        doc = self.store.get(self.maps_path(), map_id)
        return doc.to_record() if doc else None

    def fetch_maps(self) -> list[dict[str, Any]]:
        return [doc.to_record() for doc in self.store.fetch(self.maps_path())]

    def update_map(self, map_id: str, fields: dict[str, Any]) -> None:
        self.store.update(self.maps_path(), map_id, fields)

    def touch_map(self, map_id: str, batch: WriteBatch | None = None) -> None:
        """Stamp the map's updatedAt, inside ``batch`` when one is given."""
        if batch is not None:
            batch.update(self.maps_path(), map_id, {"updatedAt": SERVER_TIMESTAMP})
        else:
            self.store.update(self.maps_path(), map_id, {"updatedAt": SERVER_TIMESTAMP})

    # Nodes

    def add_node(self, map_id: str, data: dict[str, Any]) -> str:
        return self.store.add(self.nodes_path(map_id), data)

    def update_node(self, map_id: str, node_id: str, fields: dict[str, Any]) -> None:
        self.store.update(self.nodes_path(map_id), node_id, fields)

    def delete_node(self, map_id: str, node_id: str) -> None:
        self.store.delete(self.nodes_path(map_id), node_id)

    def fetch_nodes(self, map_id: str) -> list[dict[str, Any]]:
        return [doc.to_record() for doc in self.store.fetch(self.nodes_path(map_id))]

    def subscribe_nodes(self, map_id: str, listener: SnapshotListener) -> Subscription:
        return self.store.subscribe(self.nodes_path(map_id), listener)

    # Edges

    def set_edge(self, map_id: str, edge_id: str, data: dict[str, Any]) -> None:
        self.store.set(self.edges_path(map_id), edge_id, data)

    def delete_edge(self, map_id: str, edge_id: str) -> None:
        self.store.delete(self.edges_path(map_id), edge_id)

    def fetch_edges(self, map_id: str) -> list[dict[str, Any]]:
        return [doc.to_record() for doc in self.store.fetch(self.edges_path(map_id))]

    def subscribe_edges(self, map_id: str, listener: SnapshotListener) -> Subscription:
        return self.store.subscribe(self.edges_path(map_id), listener)

    # Reports

    def add_report(self, data: dict[str, Any]) -> str:
        return self.store.add(self.reports_path(), data)

    def fetch_reports(self) -> list[dict[str, Any]]:
        return [
            doc.to_record()
            for doc in self.store.fetch(self.reports_path(), order_by="createdAt", descending=True)
        ]

    def delete_report(self, report_id: str) -> None:
        self.store.delete(self.reports_path(), report_id)
