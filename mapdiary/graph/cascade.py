"""
Cascade Deletion Engine.

Deleting a node removes it, every node reachable from it along outgoing
edges, and every edge touching any removed node, in one atomic batch. The
walk uses an explicit stack and a visited set, so cycles and diamonds
terminate and each node is deleted once.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from mapdiary.errors import NodeNotFoundError
from mapdiary.graph.models import Edge
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter, log_event
from mapdiary.store.graph_store import GraphStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class DeletionPlan:
    node_ids: tuple[str, ...]
    edge_ids: tuple[str, ...]


def collect_descendants(node_id: str, edges: Iterable[Edge]) -> list[str]:
    """
    Ids reachable from ``node_id`` via outgoing edges, ``node_id`` first.

    Order is depth-first discovery order.
    """
    outgoing: dict[str, list[str]] = {}
    for edge in edges:
        outgoing.setdefault(edge.source, []).append(edge.target)

    found: list[str] = []
    visited: set[str] = set()
    stack = [node_id]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        found.append(current)
        # Reversed so the first child is explored first.
        for target in reversed(outgoing.get(current, [])):
            if target not in visited:
                stack.append(target)
    return found


def plan_deletion(node_id: str, edges: Sequence[Edge]) -> DeletionPlan:
    """Nodes to delete plus every edge whose source or target is among them."""
    node_ids = collect_descendants(node_id, edges)
    doomed = set(node_ids)
    edge_ids: list[str] = []
    for edge in edges:
        if (edge.source in doomed or edge.target in doomed) and edge.id not in edge_ids:
            edge_ids.append(edge.id)
    return DeletionPlan(node_ids=tuple(node_ids), edge_ids=tuple(edge_ids))


class CascadeDeletionEngine:
    """Applies a DeletionPlan to one user's store. Performs no confirmation."""

    def __init__(self, graph_store: GraphStore):
        self.graph_store = graph_store

    def delete(
        self, map_id: str, node_id: str, edges: Sequence[Edge] | None = None
    ) -> DeletionPlan:
        """
        Delete ``node_id`` and its descendants from ``map_id``.

        Args:
            edges: Current edge set. Fetched from the store when omitted.

        Raises:
            NodeNotFoundError: If ``node_id`` is not in the map; nothing is written
            StoreError: If the batch or the updatedAt bump fails
        """
        nodes_path = self.graph_store.nodes_path(map_id)
        if self.graph_store.store.get(nodes_path, node_id) is None:
            raise NodeNotFoundError(node_id)
        if edges is None:
            edges = [Edge.from_record(r) for r in self.graph_store.fetch_edges(map_id)]

        plan = plan_deletion(node_id, edges)

        batch = self.graph_store.batch()
        edges_path = self.graph_store.edges_path(map_id)
        for doomed_node in plan.node_ids:
            batch.delete(nodes_path, doomed_node)
        for doomed_edge in plan.edge_ids:
            batch.delete(edges_path, doomed_edge)
        batch.commit()

        self.graph_store.touch_map(map_id)

        counter("graph.cascade_delete")
        counter("graph.cascade_delete.nodes", len(plan.node_ids))
        log_event(
            "graph.cascade_delete",
            map_id=map_id,
            node_id=node_id,
            nodes=len(plan.node_ids),
            edges=len(plan.edge_ids),
        )
        return plan
