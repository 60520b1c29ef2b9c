"""Tests for the daily template and exclusive choice groups."""

from __future__ import annotations

import pytest

from mapdiary.errors import GraphError, NodeNotFoundError
from mapdiary.graph.models import Edge, Node
from mapdiary.graph.summarizer import render_markdown
from mapdiary.graph.templates import (
    DAILY_ROOT_LABEL,
    DAILY_TOPICS,
    MOOD_CHOICES,
    MOOD_GROUP_LABEL,
    build_daily_template,
    choice_siblings,
    choose_branch,
    reset_choices,
)
from mapdiary.store.documents import SERVER_TIMESTAMP


@pytest.fixture
def daily_map(graph_store):
    map_id = graph_store.add_map({"title": "daily", "updatedAt": SERVER_TIMESTAMP})
    batch = graph_store.batch()
    build_daily_template().write(batch, graph_store, map_id)
    batch.commit()
    return map_id


def load_nodes(graph_store, map_id):
    return [Node.from_record(r) for r in graph_store.fetch_nodes(map_id)]


def by_label(nodes, label):
    return next(n for n in nodes if n.label == label)


def test_template_shape():
    seed = build_daily_template()

    labels = [doc["label"] for doc in seed.nodes.values()]
    assert labels == [DAILY_ROOT_LABEL, *DAILY_TOPICS, MOOD_GROUP_LABEL, *MOOD_CHOICES]
    assert len(seed.edges) == len(labels) - 1


def test_template_siblings_never_overlap():
    seed = build_daily_template()
    rows: dict[float, list[float]] = {}
    for doc in seed.nodes.values():
        rows.setdefault(doc["position"]["y"], []).append(doc["position"]["x"])

    for xs in rows.values():
        assert len(xs) == len(set(xs))


def test_mood_options_are_tagged_as_choices(graph_store, daily_map):
    nodes = load_nodes(graph_store, daily_map)
    group = by_label(nodes, MOOD_GROUP_LABEL)

    options = [n for n in nodes if n.is_choice]

    assert [n.label for n in options] == list(MOOD_CHOICES)
    assert all(n.choice_parent_id == group.id for n in options)
    assert choice_siblings(options[0], nodes) == options


def test_choose_branch_hides_other_options(graph_store, daily_map):
    nodes = load_nodes(graph_store, daily_map)
    chosen = by_label(nodes, MOOD_CHOICES[0])
    before = graph_store.get_map(daily_map)["updatedAt"]

    hidden = choose_branch(graph_store, daily_map, chosen.id)

    after = load_nodes(graph_store, daily_map)
    assert set(hidden) == {by_label(nodes, label).id for label in MOOD_CHOICES[1:]}
    assert by_label(after, MOOD_CHOICES[0]).visible
    assert not any(by_label(after, label).visible for label in MOOD_CHOICES[1:])
    assert graph_store.get_map(daily_map)["updatedAt"] > before


def test_choose_other_branch_switches_visibility(graph_store, daily_map):
    nodes = load_nodes(graph_store, daily_map)
    choose_branch(graph_store, daily_map, by_label(nodes, MOOD_CHOICES[0]).id)

    choose_branch(graph_store, daily_map, by_label(nodes, MOOD_CHOICES[2]).id)

    after = load_nodes(graph_store, daily_map)
    visible = [label for label in MOOD_CHOICES if by_label(after, label).visible]
    assert visible == [MOOD_CHOICES[2]]


def test_hidden_options_drop_out_of_markdown(graph_store, daily_map):
    nodes = load_nodes(graph_store, daily_map)
    choose_branch(graph_store, daily_map, by_label(nodes, MOOD_CHOICES[1]).id)

    after = load_nodes(graph_store, daily_map)
    edges = [Edge.from_record(r) for r in graph_store.fetch_edges(daily_map)]
    markdown = render_markdown(after, edges)

    assert MOOD_CHOICES[1] in markdown
    assert MOOD_CHOICES[0] not in markdown
    assert MOOD_CHOICES[2] not in markdown


def test_reset_choices_shows_every_option(graph_store, daily_map):
    nodes = load_nodes(graph_store, daily_map)
    group = by_label(nodes, MOOD_GROUP_LABEL)
    choose_branch(graph_store, daily_map, by_label(nodes, MOOD_CHOICES[0]).id)

    shown = reset_choices(graph_store, daily_map, group.id)

    assert len(shown) == len(MOOD_CHOICES)
    assert all(n.visible for n in load_nodes(graph_store, daily_map))


def test_reset_group_without_options_is_a_no_op(graph_store, daily_map):
    assert reset_choices(graph_store, daily_map, "no-such-group") == []


def test_choose_non_choice_node_raises(graph_store, daily_map):
    nodes = load_nodes(graph_store, daily_map)

    with pytest.raises(GraphError):
        choose_branch(graph_store, daily_map, by_label(nodes, DAILY_ROOT_LABEL).id)


def test_choose_unknown_node_raises(graph_store, daily_map):
    with pytest.raises(NodeNotFoundError):
        choose_branch(graph_store, daily_map, "missing")
