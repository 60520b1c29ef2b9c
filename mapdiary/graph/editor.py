"""
Graph editing commands for one map.

Every command writes through the GraphStore and stamps the map's updatedAt in
the same batch. Commands never mutate an in-memory graph; the caller sees the
result through the next store snapshot. Layout and cascade decisions read the
graph passed in by the caller, or a fresh fetch when none is given.
"""

from __future__ import annotations

from collections.abc import Sequence

from mapdiary.config import CHILD_NODE_LABEL, NODE_PREVIEW_CHARS
from mapdiary.errors import DocumentNotFoundError, GraphError, NodeNotFoundError
from mapdiary.graph.cascade import CascadeDeletionEngine, DeletionPlan
from mapdiary.graph.layout import LayoutAllocator
from mapdiary.graph.models import Edge, Node, Position, edge_document, edge_id_for, node_document
from mapdiary.llm.gateway import AIGateway
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter
from mapdiary.store.documents import SERVER_TIMESTAMP, new_document_id
from mapdiary.store.graph_store import GraphStore

logger = get_logger(__name__)


def content_preview(content: str) -> str:
    if len(content) > NODE_PREVIEW_CHARS:
        return content[:NODE_PREVIEW_CHARS] + "..."
    return content


def context_path(node_id: str, nodes: Sequence[Node], edges: Sequence[Edge]) -> list[str]:
    """Labels from a root down to ``node_id``, following the first incoming edge."""
    by_id = {node.id: node for node in nodes}
    parent_of: dict[str, str] = {}
    for edge in edges:
        if edge.source in by_id:
            parent_of.setdefault(edge.target, edge.source)

    path: list[str] = []
    seen: set[str] = set()
    current: str | None = node_id
    while current is not None and current in by_id and current not in seen:
        seen.add(current)
        path.append(by_id[current].display_label)
        current = parent_of.get(current)
    path.reverse()
    return path


class GraphEditor:
    def __init__(
        self,
        graph_store: GraphStore,
        map_id: str,
        layout: LayoutAllocator | None = None,
        gateway: AIGateway | None = None,
    ):
        self.graph_store = graph_store
        self.map_id = map_id
        self.layout = layout or LayoutAllocator()
        self.gateway = gateway
        self.cascade = CascadeDeletionEngine(graph_store)

    @property
    def nodes_path(self) -> str:
        return self.graph_store.nodes_path(self.map_id)

    @property
    def edges_path(self) -> str:
        return self.graph_store.edges_path(self.map_id)

    def load_graph(self) -> tuple[list[Node], list[Edge]]:
        nodes = [Node.from_record(r) for r in self.graph_store.fetch_nodes(self.map_id)]
        edges = [Edge.from_record(r) for r in self.graph_store.fetch_edges(self.map_id)]
        return nodes, edges

    def _graph(
        self, nodes: Sequence[Node] | None, edges: Sequence[Edge] | None
    ) -> tuple[Sequence[Node], Sequence[Edge]]:
        if nodes is None or edges is None:
            fetched_nodes, fetched_edges = self.load_graph()
            return (
                fetched_nodes if nodes is None else nodes,
                fetched_edges if edges is None else edges,
            )
        return nodes, edges

    @staticmethod
    def _find(node_id: str, nodes: Sequence[Node]) -> Node:
        for node in nodes:
            if node.id == node_id:
                return node
        raise NodeNotFoundError(node_id)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(self, label: str, position: Position) -> str:
        """Add an unconnected node."""
        node_id = new_document_id()
        batch = self.graph_store.batch()
        batch.set(
            self.nodes_path,
            node_id,
            node_document(label, position, created_at=SERVER_TIMESTAMP),
        )
        self.graph_store.touch_map(self.map_id, batch)
        batch.commit()
        counter("graph.node_added")
        return node_id

    def add_child(
        self,
        parent_id: str,
        label: str = CHILD_NODE_LABEL,
        nodes: Sequence[Node] | None = None,
        edges: Sequence[Edge] | None = None,
    ) -> str:
        """Add one child in the first free slot under ``parent_id``."""
        return self.add_children(parent_id, [label], nodes, edges)[0]

    def add_children(
        self,
        parent_id: str,
        labels: Sequence[str],
        nodes: Sequence[Node] | None = None,
        edges: Sequence[Edge] | None = None,
    ) -> list[str]:
        """Add several children of ``parent_id`` in one batch, without overlap."""
        if not labels:
            return []
        nodes, edges = self._graph(nodes, edges)
        parent = self._find(parent_id, nodes)

        if len(labels) == 1:
            positions = [self.layout.place_child(parent, nodes, edges)]
        else:
            positions = self.layout.place_children(parent, len(labels), nodes, edges)

        batch = self.graph_store.batch()
        child_ids: list[str] = []
        for label, position in zip(labels, positions):
            child_id = new_document_id()
            batch.set(
                self.nodes_path,
                child_id,
                node_document(label, position, created_at=SERVER_TIMESTAMP),
            )
            batch.set(
                self.edges_path,
                edge_id_for(parent_id, child_id),
                edge_document(parent_id, child_id),
            )
            child_ids.append(child_id)
        self.graph_store.touch_map(self.map_id, batch)
        batch.commit()

        counter("graph.node_added", len(child_ids))
        return child_ids

    def update_node_content(
        self,
        node_id: str,
        label: str,
        content: str,
        nodes: Sequence[Node] | None = None,
    ) -> None:
        """Set label and body; ``data`` keeps its tags and gets a fresh preview."""
        if nodes is None:
            doc = self.graph_store.store.get(self.nodes_path, node_id)
            if doc is None:
                raise NodeNotFoundError(node_id)
            node = Node.from_record(doc.to_record())
        else:
            node = self._find(node_id, nodes)

        data = node.data.model_dump(by_alias=True, exclude_defaults=True)
        data.update({"label": label, "preview": content_preview(content)})
        data.pop("content", None)

        batch = self.graph_store.batch()
        batch.update(self.nodes_path, node_id, {"label": label, "content": content, "data": data})
        self.graph_store.touch_map(self.map_id, batch)
        batch.commit()

    def move_node(self, node_id: str, position: Position) -> None:
        batch = self.graph_store.batch()
        batch.update(self.nodes_path, node_id, {"position": position.to_dict()})
        self.graph_store.touch_map(self.map_id, batch)
        batch.commit()

    def delete_node(self, node_id: str, edges: Sequence[Edge] | None = None) -> DeletionPlan:
        """Cascade delete; see CascadeDeletionEngine."""
        return self.cascade.delete(self.map_id, node_id, edges)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def connect(self, source: str, target: str) -> str:
        """Persist an edge source -> target and return its id."""
        if source == target:
            raise GraphError("Cannot connect a node to itself")
        for endpoint in (source, target):
            if self.graph_store.store.get(self.nodes_path, endpoint) is None:
                raise NodeNotFoundError(endpoint)
        edge_id = edge_id_for(source, target)
        batch = self.graph_store.batch()
        batch.set(self.edges_path, edge_id, edge_document(source, target))
        self.graph_store.touch_map(self.map_id, batch)
        batch.commit()
        counter("graph.edge_added")
        return edge_id

    def disconnect(self, edge_id: str) -> None:
        """Remove one edge; the nodes on either end stay."""
        if self.graph_store.store.get(self.edges_path, edge_id) is None:
            raise DocumentNotFoundError(self.edges_path, edge_id)
        batch = self.graph_store.batch()
        batch.delete(self.edges_path, edge_id)
        self.graph_store.touch_map(self.map_id, batch)
        batch.commit()
        counter("graph.edge_removed")

    # ------------------------------------------------------------------
    # AI
    # ------------------------------------------------------------------

    def brainstorm(
        self,
        node_id: str,
        nodes: Sequence[Node] | None = None,
        edges: Sequence[Edge] | None = None,
    ) -> list[str]:
        """
        Ask the AI for child ideas of ``node_id`` and add them as children.

        Returns the new child ids (empty when the AI produced nothing).
        """
        if self.gateway is None:
            raise GraphError("Brainstorming needs an AI gateway")
        nodes, edges = self._graph(nodes, edges)
        node = self._find(node_id, nodes)

        path = context_path(node_id, nodes, edges)
        exclusions = [
            child.display_label for child in self.layout.visible_children(node_id, nodes, edges)
        ]
        ideas = self.gateway.generate_ideas(
            node.display_label,
            context_path=path,
            exclusions=exclusions,
            content=node.content or "",
        )
        if not ideas:
            logger.info("Brainstorm for node %s returned no ideas", node_id)
            return []
        return self.add_children(node_id, ideas, nodes, edges)
