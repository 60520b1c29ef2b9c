"""Tests for child placement."""

from __future__ import annotations

from mapdiary.graph.layout import LayoutAllocator, slot_offsets, visible_children
from mapdiary.graph.models import Edge, Node, Position
from mapdiary.observability.telemetry import get_counter


def node(node_id, x=0.0, y=0.0, hidden=False):
    return Node(id=node_id, label=node_id, position=Position(x=x, y=y), hidden=hidden)


def edge(source, target):
    return Edge(id=f"e{source}-{target}", source=source, target=target)


def test_slot_offsets_alternate_around_zero():
    assert list(slot_offsets(5)) == [0, 1, -1, 2, -2]


def test_first_child_goes_straight_below():
    parent = node("p", x=100, y=50)
    layout = LayoutAllocator(slot_width=200, vertical_gap=150)

    assert layout.place_child(parent, [parent], []) == Position(x=100, y=200)


def test_child_skips_occupied_slots():
    parent = node("p")
    siblings = [node("a", x=0, y=150), node("b", x=200, y=150)]
    edges = [edge("p", "a"), edge("p", "b")]
    layout = LayoutAllocator(slot_width=200, vertical_gap=150)

    assert layout.place_child(parent, [parent, *siblings], edges) == Position(x=-200, y=150)


def test_sibling_within_half_slot_blocks_candidate():
    parent = node("p")
    siblings = [node("a", x=90, y=150)]
    layout = LayoutAllocator(slot_width=200, vertical_gap=150)

    position = layout.place_child(parent, [parent, *siblings], [edge("p", "a")])

    assert position.x == 200


def test_hidden_siblings_do_not_occupy_slots():
    parent = node("p")
    hidden = node("h", x=0, y=150, hidden=True)
    layout = LayoutAllocator(slot_width=200, vertical_gap=150)

    position = layout.place_child(parent, [parent, hidden], [edge("p", "h")])

    assert position.x == 0


def test_nodes_of_other_parents_are_ignored():
    parent = node("p")
    stranger = node("s", x=0, y=150)
    layout = LayoutAllocator(slot_width=200, vertical_gap=150)

    assert layout.place_child(parent, [parent, stranger], []).x == 0


def test_batch_of_five_never_overlaps():
    parent = node("p", x=0, y=0)
    existing = node("a", x=0, y=150)
    layout = LayoutAllocator(slot_width=200, vertical_gap=150)

    positions = layout.place_children(parent, 5, [parent, existing], [edge("p", "a")])

    xs = [p.x for p in positions]
    assert xs == [200, -200, 400, -400, 600]
    taken = [0.0, *xs]
    for i, x in enumerate(taken):
        for other in taken[i + 1 :]:
            assert abs(x - other) >= 100


def test_search_exhaustion_falls_back_to_overflow_position():
    parent = node("p")
    siblings = [node("a", x=0, y=150)]
    layout = LayoutAllocator(slot_width=200, vertical_gap=150, max_slot_search=1)

    position = layout.place_child(parent, [parent, *siblings], [edge("p", "a")])

    assert position.x == 200
    assert get_counter("layout.slot_search_exhausted") == 1


def test_visible_children_follow_edge_order_without_duplicates():
    nodes = [node("p"), node("b"), node("a"), node("h", hidden=True)]
    edges = [edge("p", "b"), edge("p", "a"), edge("p", "h"), edge("p", "b"), edge("a", "b")]

    assert [n.id for n in visible_children("p", nodes, edges)] == ["b", "a"]
