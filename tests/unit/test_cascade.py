"""Tests for cascading node deletion."""

from __future__ import annotations

import pytest

from mapdiary.errors import NodeNotFoundError
from mapdiary.graph.cascade import CascadeDeletionEngine, collect_descendants, plan_deletion
from mapdiary.graph.models import Edge, Position, edge_document, edge_id_for, node_document
from mapdiary.observability.telemetry import get_counter
from mapdiary.store.documents import SERVER_TIMESTAMP


def edge(source, target):
    return Edge(id=edge_id_for(source, target), source=source, target=target)


def test_collects_all_descendants_depth_first():
    edges = [edge("A", "B"), edge("B", "C"), edge("A", "D")]

    assert collect_descendants("A", edges) == ["A", "B", "C", "D"]


def test_leaf_collects_only_itself():
    edges = [edge("A", "B")]
    assert collect_descendants("B", edges) == ["B"]


def test_cycle_terminates_and_visits_each_node_once():
    edges = [edge("A", "B"), edge("B", "C"), edge("C", "A")]

    assert collect_descendants("B", edges) == ["B", "C", "A"]


def test_diamond_deletes_shared_child_once():
    edges = [edge("A", "B"), edge("A", "C"), edge("B", "D"), edge("C", "D")]

    plan = plan_deletion("A", edges)

    assert sorted(plan.node_ids) == ["A", "B", "C", "D"]
    assert len(plan.node_ids) == 4


def test_plan_includes_incoming_and_outgoing_edges():
    edges = [edge("R", "A"), edge("A", "B"), edge("B", "C"), edge("A", "D"), edge("R", "X")]

    plan = plan_deletion("A", edges)

    assert set(plan.node_ids) == {"A", "B", "C", "D"}
    assert set(plan.edge_ids) == {"eR-A", "eA-B", "eB-C", "eA-D"}


def test_engine_deletes_subtree_and_touches_map(graph_store):
    map_id = graph_store.add_map({"title": "m", "updatedAt": SERVER_TIMESTAMP})
    nodes_path = graph_store.nodes_path(map_id)
    edges_path = graph_store.edges_path(map_id)
    for node_id in ("R", "A", "B", "C", "D"):
        graph_store.store.set(nodes_path, node_id, node_document(node_id, Position()))
    for source, target in (("R", "A"), ("A", "B"), ("B", "C"), ("A", "D")):
        edge = edge_document(source, target)
        graph_store.store.set(edges_path, edge_id_for(source, target), edge)
    before = graph_store.get_map(map_id)["updatedAt"]

    plan = CascadeDeletionEngine(graph_store).delete(map_id, "A")

    assert set(plan.node_ids) == {"A", "B", "C", "D"}
    assert [n["id"] for n in graph_store.fetch_nodes(map_id)] == ["R"]
    assert graph_store.fetch_edges(map_id) == []
    assert graph_store.get_map(map_id)["updatedAt"] > before
    assert get_counter("graph.cascade_delete.nodes") == 4


def test_engine_uses_given_edges(graph_store):
    map_id = graph_store.add_map({"title": "m"})
    nodes_path = graph_store.nodes_path(map_id)
    for node_id in ("A", "B"):
        graph_store.store.set(nodes_path, node_id, node_document(node_id, Position()))

    plan = CascadeDeletionEngine(graph_store).delete(map_id, "A", edges=[edge("A", "B")])

    assert plan.node_ids == ("A", "B")
    assert graph_store.fetch_nodes(map_id) == []


def test_engine_rejects_unknown_node_without_writing(graph_store):
    map_id = graph_store.add_map({"title": "m", "updatedAt": SERVER_TIMESTAMP})
    nodes_path = graph_store.nodes_path(map_id)
    graph_store.store.set(nodes_path, "A", node_document("A", Position()))
    before = graph_store.get_map(map_id)["updatedAt"]

    with pytest.raises(NodeNotFoundError):
        CascadeDeletionEngine(graph_store).delete(map_id, "nope", edges=[edge("nope", "A")])

    assert [n["id"] for n in graph_store.fetch_nodes(map_id)] == ["A"]
    assert graph_store.get_map(map_id)["updatedAt"] == before
    assert get_counter("graph.cascade_delete") == 0
