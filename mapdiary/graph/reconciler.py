"""
Node/Edge Reconciler - the live in-memory graph of the open map.

Three inputs feed it:
1. store snapshots of the nodes and edges collections (authoritative)
2. local UI state with no remote representation (selection, drag in progress)
3. write-through commands, which persist via GraphEditor and come back as
   snapshots

merge_nodes/merge_edges are pure: remote fields always win, local-only fields
carry over by id. Nodes and edges arrive as independent snapshots; nothing here
assumes they update together.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from mapdiary.errors import GraphError, NodeNotFoundError, StoreError
from mapdiary.graph import templates
from mapdiary.graph.cascade import DeletionPlan
from mapdiary.graph.editor import GraphEditor
from mapdiary.graph.layout import LayoutAllocator
from mapdiary.graph.models import Edge, Node, Position, edge_id_for
from mapdiary.llm.gateway import AIGateway
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter
from mapdiary.store.documents import Snapshot, Subscription
from mapdiary.store.graph_store import GraphStore

logger = get_logger(__name__)

GraphListener = Callable[[list[Node], list[Edge]], None]


def merge_nodes(previous: Sequence[Node], remote: Sequence[Node]) -> list[Node]:
    """Remote nodes in remote order, with ``selected`` carried over by id."""
    selected = {node.id for node in previous if node.selected}
    return [
        node.model_copy(update={"selected": True}) if node.id in selected else node
        for node in remote
    ]


def merge_edges(previous: Sequence[Edge], remote: Sequence[Edge]) -> list[Edge]:
    """Remote edges in remote order, with ``selected`` carried over by id."""
    selected = {edge.id for edge in previous if edge.selected}
    return [
        edge.model_copy(update={"selected": True}) if edge.id in selected else edge
        for edge in remote
    ]


class GraphReconciler:
    """
    Owns {nodes, edges} for at most one open map.

    Args:
        graph_store: Store adapter for the signed-in user
        layout: Shared layout allocator for child placement
        gateway: AI gateway used by brainstorm
        on_change: Called with (nodes, edges) after every local or remote change
    """

    def __init__(
        self,
        graph_store: GraphStore,
        layout: LayoutAllocator | None = None,
        gateway: AIGateway | None = None,
        on_change: GraphListener | None = None,
    ):
        self.graph_store = graph_store
        self.layout = layout or LayoutAllocator()
        self.gateway = gateway
        self.on_change = on_change

        self.map_id: str | None = None
        self.editor: GraphEditor | None = None
        self._nodes: list[Node] = []
        self._edges: list[Edge] = []
        self._drag_positions: dict[str, Position] = {}
        self._subscriptions: list[Subscription] = []

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes)

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges)

    def _emit(self) -> None:
        if self.on_change is not None:
            self.on_change(self.nodes, self.edges)

    def _require_editor(self) -> GraphEditor:
        if self.editor is None:
            raise GraphError("No map is open")
        return self.editor

    # ------------------------------------------------------------------
    # Map lifecycle
    # ------------------------------------------------------------------

    def open_map(self, map_id: str) -> None:
        """
        Switch to ``map_id``.

        Prior state is discarded before subscribing, so the new map never
        renders with the old map's nodes. The store delivers the initial
        snapshots during this call.
        """
        self.close()
        self.map_id = map_id
        self.editor = GraphEditor(
            self.graph_store, map_id, layout=self.layout, gateway=self.gateway
        )
        self._emit()

        self._subscriptions = [
            self.graph_store.subscribe_nodes(
                map_id, lambda snapshot: self.on_nodes_snapshot(map_id, snapshot)
            ),
            self.graph_store.subscribe_edges(
                map_id, lambda snapshot: self.on_edges_snapshot(map_id, snapshot)
            ),
        ]
        logger.debug("Opened map %s", map_id)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        self.map_id = None
        self.editor = None
        self._nodes = []
        self._edges = []
        self._drag_positions = {}

    def on_nodes_snapshot(self, map_id: str, snapshot: Snapshot) -> None:
        if map_id != self.map_id:
            counter("graph.stale_snapshot_dropped")
            return
        remote = [Node.from_record(record) for record in snapshot.records()]
        self._nodes = merge_nodes(self._nodes, remote)
        self._emit()

    def on_edges_snapshot(self, map_id: str, snapshot: Snapshot) -> None:
        if map_id != self.map_id:
            counter("graph.stale_snapshot_dropped")
            return
        remote = [Edge.from_record(record) for record in snapshot.records()]
        self._edges = merge_edges(self._edges, remote)
        self._emit()

    # ------------------------------------------------------------------
    # Local-only state
    # ------------------------------------------------------------------

    def select(self, node_id: str | None) -> None:
        """Select one node (or none); selection is never persisted."""
        self._nodes = [
            node.model_copy(update={"selected": node.id == node_id}) for node in self._nodes
        ]
        self._emit()

    def drag(self, node_id: str, position: Position) -> None:
        """Move a node locally. Nothing is written until drag_stop."""
        if not any(node.id == node_id for node in self._nodes):
            raise GraphError(f"Cannot drag unknown node {node_id}")
        self._drag_positions[node_id] = position
        self._nodes = [
            node.model_copy(update={"position": position}) if node.id == node_id else node
            for node in self._nodes
        ]
        self._emit()

    def drag_stop(self, node_id: str) -> Position | None:
        """Persist the final drag position. Returns it, or None if no drag was active."""
        editor = self._require_editor()
        position = self._drag_positions.pop(node_id, None)
        if position is None:
            return None
        try:
            editor.move_node(node_id, position)
        except StoreError as e:
            logger.error("Failed to persist position of node %s: %s", node_id, e)
            raise
        return position

    # ------------------------------------------------------------------
    # Optimistic edges
    # ------------------------------------------------------------------

    def connect(self, source: str, target: str) -> str:
        """
        Draw an edge: it appears locally at once, then is persisted.

        Invalid endpoints are rejected before anything changes. A failed write
        is logged and raised; the local edge stays until the next edges
        snapshot replaces the list.
        """
        editor = self._require_editor()
        if source == target:
            raise GraphError("Cannot connect a node to itself")
        known = {node.id for node in self._nodes}
        for endpoint in (source, target):
            if endpoint not in known:
                raise NodeNotFoundError(endpoint)
        edge_id = edge_id_for(source, target)
        if not any(edge.id == edge_id for edge in self._edges):
            self._edges = [*self._edges, Edge(id=edge_id, source=source, target=target)]
            self._emit()
        try:
            return editor.connect(source, target)
        except StoreError as e:
            logger.error("Failed to persist edge %s: %s", edge_id, e)
            raise

    # ------------------------------------------------------------------
    # Write-through commands
    # ------------------------------------------------------------------

    def add_node(self, label: str, position: Position) -> str:
        return self._require_editor().add_node(label, position)

    def add_child(self, parent_id: str, label: str | None = None) -> str:
        editor = self._require_editor()
        if label is None:
            return editor.add_child(parent_id, nodes=self._nodes, edges=self._edges)
        return editor.add_child(parent_id, label, self._nodes, self._edges)

    def add_children(self, parent_id: str, labels: Sequence[str]) -> list[str]:
        return self._require_editor().add_children(parent_id, labels, self._nodes, self._edges)

    def update_node_content(self, node_id: str, label: str, content: str) -> None:
        self._require_editor().update_node_content(node_id, label, content, self._nodes)

    def delete_node(self, node_id: str) -> DeletionPlan:
        return self._require_editor().delete_node(node_id, self._edges)

    def brainstorm(self, node_id: str) -> list[str]:
        return self._require_editor().brainstorm(node_id, self._nodes, self._edges)

    def choose_branch(self, node_id: str) -> list[str]:
        self._require_editor()
        return templates.choose_branch(self.graph_store, self.map_id, node_id, self._nodes)

    def reset_choices(self, parent_id: str) -> list[str]:
        self._require_editor()
        return templates.reset_choices(self.graph_store, self.map_id, parent_id, self._nodes)
