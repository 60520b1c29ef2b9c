"""
Layout Allocator - collision-free positions for new child nodes.

Candidates are searched at horizontal offsets 0, +1, -1, +2, -2, ... slot
widths from the parent. A candidate is occupied when a visible sibling (or a
node already placed in the same batch) sits within half a slot of it. New
children always go one vertical gap below the parent.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from mapdiary.config import LAYOUT_MAX_SLOT_SEARCH, LAYOUT_SLOT_WIDTH, LAYOUT_VERTICAL_GAP
from mapdiary.graph.models import Edge, Node, Position
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter

logger = get_logger(__name__)


def slot_offsets(limit: int) -> Iterator[int]:
    """Yield 0, 1, -1, 2, -2, ... (``limit`` values in total)."""
    for i in range(limit):
        if i == 0:
            yield 0
        elif i % 2:
            yield (i + 1) // 2
        else:
            yield -(i // 2)


def visible_children(parent_id: str, nodes: Iterable[Node], edges: Iterable[Edge]) -> list[Node]:
    """Visible targets of the parent's outgoing edges, in edge order."""
    by_id = {node.id: node for node in nodes}
    children: list[Node] = []
    seen: set[str] = set()
    for edge in edges:
        if edge.source != parent_id or edge.target in seen:
            continue
        child = by_id.get(edge.target)
        if child is not None and child.visible:
            seen.add(child.id)
            children.append(child)
    return children


class LayoutAllocator:
    """
    Slot search shared by single and batch placement.

    Args:
        slot_width: Horizontal distance between sibling slots
        vertical_gap: Vertical distance from parent to child row
        max_slot_search: Number of candidate offsets tried before falling back
    """

    def __init__(
        self,
        slot_width: float = LAYOUT_SLOT_WIDTH,
        vertical_gap: float = LAYOUT_VERTICAL_GAP,
        max_slot_search: int = LAYOUT_MAX_SLOT_SEARCH,
    ):
        self.slot_width = slot_width
        self.vertical_gap = vertical_gap
        self.max_slot_search = max_slot_search

    def visible_children(
        self, parent_id: str, nodes: Sequence[Node], edges: Sequence[Edge]
    ) -> list[Node]:
        return visible_children(parent_id, nodes, edges)

    def place_child(self, parent: Node, nodes: Sequence[Node], edges: Sequence[Edge]) -> Position:
        """Position for one new child of ``parent``."""
        return self.place_children(parent, 1, nodes, edges)[0]

    def place_children(
        self,
        parent: Node,
        count: int,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
    ) -> list[Position]:
        """
        Positions for ``count`` new children added together.

        Each placement treats the ones before it in the batch as occupied, so
        the batch never collides with itself or with existing visible siblings.
        """
        siblings = self.visible_children(parent.id, nodes, edges)
        occupied = [sibling.position.x for sibling in siblings]
        y = parent.position.y + self.vertical_gap

        positions: list[Position] = []
        for _ in range(count):
            x = self._find_free_x(parent.position.x, occupied)
            occupied.append(x)
            positions.append(Position(x=x, y=y))
        return positions

    def _find_free_x(self, parent_x: float, occupied: list[float]) -> float:
        half = self.slot_width / 2
        for offset in slot_offsets(self.max_slot_search):
            candidate = parent_x + offset * self.slot_width
            if all(abs(x - candidate) >= half for x in occupied):
                return candidate

        # Pathological fan-out; may collide.
        counter("layout.slot_search_exhausted")
        logger.warning(
            "No free slot within %d offsets of x=%.1f, using overflow position",
            self.max_slot_search,
            parent_x,
        )
        return parent_x + len(occupied) * self.slot_width
