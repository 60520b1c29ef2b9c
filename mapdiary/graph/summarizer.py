"""
Map Summarizer - render a map's visible graph as a nested markdown outline.

Output shape, two spaces per depth level:

    - **Root**
      > body line
      - **Child**
        > child body line

Roots are visible nodes without an incoming visible edge (all visible nodes
when every node has one). Roots and children are ordered by label. A node is
emitted at most once; visible nodes the walk never reached are appended as
their own depth-0 trees in fetch order.
"""

from __future__ import annotations

from collections.abc import Sequence

from mapdiary.graph.models import Edge, Node
from mapdiary.store.graph_store import GraphStore


def _content_of(node: Node) -> str | None:
    return node.content or node.data.content


def _content_lines(content: str, depth: int) -> list[str]:
    indent = "  " * (depth + 1)
    normalized = content.replace("\r\n", "\n").replace("\r", "\n")
    return [f"{indent}> {line or ' '}" for line in normalized.split("\n")]


def render_markdown(nodes: Sequence[Node], edges: Sequence[Edge]) -> str:
    """Render visible nodes and the edges between them. Empty graph -> ""."""
    visible = [node for node in nodes if node.visible]
    if not visible:
        return ""

    by_id = {node.id: node for node in visible}
    children: dict[str, list[str]] = {}
    has_incoming: set[str] = set()
    for edge in edges:
        # Edges with a hidden or missing endpoint are skipped.
        if edge.source not in by_id or edge.target not in by_id:
            continue
        children.setdefault(edge.source, []).append(edge.target)
        has_incoming.add(edge.target)

    def label_of(node_id: str) -> str:
        return by_id[node_id].display_label

    for child_ids in children.values():
        child_ids.sort(key=label_of)

    roots = [node.id for node in visible if node.id not in has_incoming] or [
        node.id for node in visible
    ]
    roots.sort(key=label_of)

    lines: list[str] = []
    visited: set[str] = set()

    def walk(start: str) -> None:
        stack = [(start, 0)]
        while stack:
            node_id, depth = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)

            lines.append(f"{'  ' * depth}- **{label_of(node_id)}**")
            content = _content_of(by_id[node_id])
            if content and content.strip():
                lines.extend(_content_lines(content, depth))

            for child_id in reversed(children.get(node_id, [])):
                if child_id not in visited:
                    stack.append((child_id, depth + 1))

    for root_id in roots:
        walk(root_id)

    for node in visible:
        if node.id not in visited:
            walk(node.id)

    return "\n".join(lines)


def build_markdown_summary(graph_store: GraphStore, map_id: str) -> str:
    """Fetch a map's nodes and edges and render them."""
    nodes = [Node.from_record(r) for r in graph_store.fetch_nodes(map_id)]
    edges = [Edge.from_record(r) for r in graph_store.fetch_edges(map_id)]
    return render_markdown(nodes, edges)
