"""
Daily map template and exclusive choice branches.

A daily map starts with a root, a few prompt topics and one mood group whose
options are choice nodes (``data.isChoice`` with ``data.parentId`` set to the
group node). Choosing an option shows it and hides its sibling options;
resetting shows them all again.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from mapdiary.errors import GraphError, NodeNotFoundError
from mapdiary.graph.layout import LayoutAllocator
from mapdiary.graph.models import Node, Position, edge_document, edge_id_for, node_document
from mapdiary.observability.telemetry import counter
from mapdiary.store.documents import SERVER_TIMESTAMP, WriteBatch, new_document_id
from mapdiary.store.graph_store import GraphStore

DAILY_ROOT_LABEL = "오늘 하루"
DAILY_TOPICS = ("오늘 있었던 일", "감사한 일", "내일의 다짐")
MOOD_GROUP_LABEL = "오늘의 기분"
MOOD_CHOICES = ("😊 좋았어요", "😐 그저 그랬어요", "😢 힘들었어요")


@dataclass
class GraphSeed:
    """Node and edge documents to write for a new map, keyed by id."""

    nodes: dict[str, dict[str, Any]] = field(default_factory=dict)
    edges: dict[str, dict[str, Any]] = field(default_factory=dict)

    def add_child(self, parent: Node, label: str, position: Position, **tags: Any) -> Node:
        node_id = new_document_id()
        self.nodes[node_id] = node_document(label, position, created_at=SERVER_TIMESTAMP, **tags)
        self.edges[edge_id_for(parent.id, node_id)] = edge_document(parent.id, node_id)
        return Node(id=node_id, label=label, position=position)

    def write(self, batch: WriteBatch, graph_store: GraphStore, map_id: str) -> None:
        for node_id, doc in self.nodes.items():
            batch.set(graph_store.nodes_path(map_id), node_id, doc)
        for edge_id, doc in self.edges.items():
            batch.set(graph_store.edges_path(map_id), edge_id, doc)


def build_daily_template(
    layout: LayoutAllocator | None = None,
    root_position: Position | None = None,
) -> GraphSeed:
    """Root, topic children and the mood choice group, laid out without overlap."""
    layout = layout or LayoutAllocator()
    seed = GraphSeed()

    root_id = new_document_id()
    root_position = root_position or Position(x=0.0, y=0.0)
    seed.nodes[root_id] = node_document(
        DAILY_ROOT_LABEL, root_position, created_at=SERVER_TIMESTAMP
    )
    root = Node(id=root_id, label=DAILY_ROOT_LABEL, position=root_position)

    labels = [*DAILY_TOPICS, MOOD_GROUP_LABEL]
    placed: list[Node] = []
    for label, position in zip(labels, layout.place_children(root, len(labels), [], [])):
        placed.append(seed.add_child(root, label, position))

    group = placed[-1]
    for label, position in zip(
        MOOD_CHOICES, layout.place_children(group, len(MOOD_CHOICES), [], [])
    ):
        seed.add_child(group, label, position, is_choice=True, parent_id=group.id)

    return seed


def _load_nodes(graph_store: GraphStore, map_id: str) -> list[Node]:
    return [Node.from_record(r) for r in graph_store.fetch_nodes(map_id)]


def choice_siblings(node: Node, nodes: Sequence[Node]) -> list[Node]:
    """Every choice node sharing ``node``'s group, ``node`` included."""
    return [n for n in nodes if n.is_choice and n.choice_parent_id == node.choice_parent_id]


def choose_branch(
    graph_store: GraphStore,
    map_id: str,
    node_id: str,
    nodes: Sequence[Node] | None = None,
) -> list[str]:
    """
    Show the chosen option and hide its sibling options in one batch.

    Returns the ids that were hidden.

    Raises:
        NodeNotFoundError: If ``node_id`` is not in the map
        GraphError: If the node is not a choice option
    """
    if nodes is None:
        nodes = _load_nodes(graph_store, map_id)
    chosen = next((n for n in nodes if n.id == node_id), None)
    if chosen is None:
        raise NodeNotFoundError(node_id)
    if not chosen.is_choice:
        raise GraphError(f"Node {node_id} is not a choice option")

    hidden: list[str] = []
    batch = graph_store.batch()
    for sibling in choice_siblings(chosen, nodes):
        hide = sibling.id != node_id
        batch.update(graph_store.nodes_path(map_id), sibling.id, {"hidden": hide})
        if hide:
            hidden.append(sibling.id)
    graph_store.touch_map(map_id, batch)
    batch.commit()

    counter("graph.choice_selected")
    return hidden


def reset_choices(
    graph_store: GraphStore,
    map_id: str,
    parent_id: str,
    nodes: Sequence[Node] | None = None,
) -> list[str]:
    """Make every option of the group ``parent_id`` visible again."""
    if nodes is None:
        nodes = _load_nodes(graph_store, map_id)
    options = [n for n in nodes if n.is_choice and n.choice_parent_id == parent_id]
    if not options:
        return []

    batch = graph_store.batch()
    for option in options:
        batch.update(graph_store.nodes_path(map_id), option.id, {"hidden": False})
    graph_store.touch_map(map_id, batch)
    batch.commit()
    return [option.id for option in options]

