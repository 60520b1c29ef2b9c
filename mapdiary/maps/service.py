"""
Map collection service: create, list, edit, delete, search and summarize maps.

Summaries are cached on the map document. A cached summary is reused until
the map is edited again (``updatedAt > summarizedAt``) or a refresh is forced.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from mapdiary.errors import DocumentNotFoundError, EmptyMapError, MapNotFoundError
from mapdiary.graph.layout import LayoutAllocator
from mapdiary.graph.models import Node
from mapdiary.graph.summarizer import build_markdown_summary
from mapdiary.graph.templates import build_daily_template
from mapdiary.llm.gateway import FALLBACK_EMOTION, FALLBACK_SUMMARY, AIGateway
from mapdiary.llm.schemas import DiarySummary, FinancialItem
from mapdiary.maps.models import FinancialSummary, MapDoc, MapType, join_pages
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter, log_event
from mapdiary.store.documents import SERVER_TIMESTAMP, new_document_id
from mapdiary.store.graph_store import GraphStore
from mapdiary.utils.dates import default_map_title

logger = get_logger(__name__)


@dataclass
class MapSummary:
    """Outcome of a summarize request."""

    summary: str
    emotion: str
    financials: list[FinancialItem] = field(default_factory=list)
    map_ids: list[str] = field(default_factory=list)
    cached: bool = False
    persisted: bool = False

    @property
    def is_fallback(self) -> bool:
        return self.summary == FALLBACK_SUMMARY and self.emotion == FALLBACK_EMOTION


def unique_title(base: str, existing: set[str]) -> str:
    """``base``, or ``base #2``, ``base #3`` ... whichever is free first."""
    candidate = base
    n = 1
    while candidate in existing:
        n += 1
        candidate = f"{base} #{n}"
    return candidate


class MapsService:
    """
    Per-user map operations.

    Args:
        graph_store: Store adapter for the signed-in user
        gateway: AI gateway for summaries (required only for summarize_*)
        layout: Layout allocator used when seeding daily maps
    """

    def __init__(
        self,
        graph_store: GraphStore,
        gateway: AIGateway | None = None,
        layout: LayoutAllocator | None = None,
    ):
        self.graph_store = graph_store
        self.gateway = gateway
        self.layout = layout or LayoutAllocator()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def list_maps(self) -> list[MapDoc]:
        """All maps, most recently updated first."""
        docs = self.graph_store.store.fetch(
            self.graph_store.maps_path(), order_by="updatedAt", descending=True
        )
        return [MapDoc.from_record(doc.to_record()) for doc in docs]

    def get_map(self, map_id: str) -> MapDoc:
        record = self.graph_store.get_map(map_id)
        if record is None:
            raise MapNotFoundError(map_id)
        return MapDoc.from_record(record)

    def create_map(self, title: str | None = None, map_type: MapType = MapType.BLANK) -> MapDoc:
        """
        Create a map. Without a title, the local date is used and made unique.

        Daily maps are seeded with the daily template in the same batch.
        """
        map_type = MapType(map_type)
        if not title:
            existing = {m.title for m in self.list_maps()}
            title = unique_title(default_map_title(self.graph_store.store.clock()), existing)

        map_id = new_document_id()
        data = {
            "title": title,
            "type": map_type.value,
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }
        if map_type == MapType.NOTE:
            data["content"] = ""

        batch = self.graph_store.batch()
        batch.set(self.graph_store.maps_path(), map_id, data)
        if map_type == MapType.DAILY:
            build_daily_template(self.layout).write(batch, self.graph_store, map_id)
        batch.commit()

        counter(f"maps.created.{map_type.value}")
        log_event("maps.created", map_id=map_id, type=map_type.value)
        return self.get_map(map_id)

    def _update(self, map_id: str, fields: dict) -> None:
        try:
            self.graph_store.update_map(map_id, fields)
        except DocumentNotFoundError:
            raise MapNotFoundError(map_id) from None

    def update_title(self, map_id: str, title: str) -> None:
        self._update(map_id, {"title": title, "updatedAt": SERVER_TIMESTAMP})

    def update_content(self, map_id: str, content: str) -> None:
        """Replace a note map's flat content."""
        self._update(map_id, {"content": content, "updatedAt": SERVER_TIMESTAMP})

    def update_pages(self, map_id: str, left: str, right: str) -> None:
        self.update_content(map_id, join_pages(left, right))

    def update_metadata(self, map_id: str, result: DiarySummary) -> None:
        """Store an AI summary. Leaves updatedAt alone so the map reads as fresh."""
        self._update(
            map_id,
            {
                "summary": result.summary,
                "emotion": result.emotion,
                "financials": [item.model_dump() for item in result.financials],
                "summarizedAt": SERVER_TIMESTAMP,
            },
        )

    def delete_map(self, map_id: str) -> int:
        """
        Delete a map with all of its nodes and edges in one batch.

        Returns the number of documents deleted.
        """
        self.get_map(map_id)

        store = self.graph_store.store
        nodes_path = self.graph_store.nodes_path(map_id)
        edges_path = self.graph_store.edges_path(map_id)

        batch = self.graph_store.batch()
        for doc in store.fetch(nodes_path):
            batch.delete(nodes_path, doc.id)
        for doc in store.fetch(edges_path):
            batch.delete(edges_path, doc.id)
        batch.delete(self.graph_store.maps_path(), map_id)
        deleted = len(batch)
        batch.commit()

        counter("maps.deleted")
        log_event("maps.deleted", map_id=map_id, documents=deleted)
        return deleted

    def financial_summary(self, map_id: str) -> FinancialSummary:
        return FinancialSummary.from_items(self.get_map(map_id).financials)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_by_date(self, date_key: str) -> list[MapDoc]:
        """Daily maps whose date key is ``date_key`` (YYYY-MM-DD)."""
        return [m for m in self.list_maps() if m.is_daily and m.date_key() == date_key]

    def find_latest_by_date(self, date_key: str) -> MapDoc | None:
        matches = self.find_by_date(date_key)
        if not matches:
            return None
        return max(matches, key=lambda m: m.last_touched())

    def search(self, term: str) -> list[MapDoc]:
        """
        Case-insensitive search over titles, summaries and note content,
        then node labels and bodies of the remaining non-note maps.
        """
        query = term.strip().lower()
        if not query:
            return []

        maps = self.list_maps()
        matched: dict[str, MapDoc] = {}
        for m in maps:
            haystacks = (m.title, m.summary, m.content)
            if any(query in (text or "").lower() for text in haystacks):
                matched[m.id] = m

        for m in maps:
            if m.id in matched or m.is_note:
                continue
            for record in self.graph_store.fetch_nodes(m.id):
                node = Node.from_record(record)
                label = (node.label or node.data.label or "").lower()
                content = (node.content or node.data.content or "").lower()
                if query in label or query in content:
                    matched[m.id] = m
                    break

        return sorted(matched.values(), key=lambda m: m.last_touched(), reverse=True)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def _require_gateway(self) -> AIGateway:
        if self.gateway is None:
            raise RuntimeError("MapsService was created without an AI gateway")
        return self.gateway

    def markdown_for(self, map_doc: MapDoc) -> str:
        """Note maps summarize their content; graph maps their rendered outline."""
        if map_doc.is_note:
            return map_doc.content or ""
        return build_markdown_summary(self.graph_store, map_doc.id)

    def summarize_map(self, map_id: str, force: bool = False) -> MapSummary:
        """
        Summarize one map, reusing the stored summary when it is still fresh.

        Raises:
            MapNotFoundError: If the map does not exist
            EmptyMapError: If there is nothing to summarize
        """
        map_doc = self.get_map(map_id)
        if map_doc.summary and not force and not map_doc.needs_summary():
            counter("maps.summary.cache_hit")
            return MapSummary(
                summary=map_doc.summary,
                emotion=map_doc.emotion or "📝",
                financials=list(map_doc.financials),
                map_ids=[map_id],
                cached=True,
            )

        markdown = self.markdown_for(map_doc)
        if not markdown.strip():
            raise EmptyMapError(f"Map {map_id} has no content to summarize")

        result = self._require_gateway().summarize_diary(markdown)
        outcome = MapSummary(
            summary=result.summary,
            emotion=result.emotion,
            financials=list(result.financials),
            map_ids=[map_id],
        )
        if outcome.is_fallback:
            logger.warning("Summary for map %s fell back to placeholder; not storing it", map_id)
            return outcome

        self.update_metadata(map_id, result)
        outcome.persisted = True
        counter("maps.summary.generated")
        return outcome

    def summarize_by_date(self, date_key: str) -> MapSummary:
        """
        Summarize every daily map of one date.

        A single map goes through summarize_map. Several maps are combined
        oldest first and summarized once; that combined result is not stored.

        Raises:
            MapNotFoundError: If no daily map exists for the date
            EmptyMapError: If all matching maps are empty
        """
        matches = self.find_by_date(date_key)
        if not matches:
            raise MapNotFoundError(date_key)
        if len(matches) == 1:
            return self.summarize_map(matches[0].id)

        blocks: list[str] = []
        used: list[str] = []
        for m in sorted(matches, key=lambda m: m.last_touched()):
            body = self.markdown_for(m)
            if not body.strip():
                continue
            blocks.append(f"# {m.display_title}\n\n{body}")
            used.append(m.id)

        if not blocks:
            raise EmptyMapError(f"No content in daily maps for {date_key}")

        result = self._require_gateway().summarize_diary("\n\n".join(blocks))
        counter("maps.summary.by_date")
        return MapSummary(
            summary=result.summary,
            emotion=result.emotion,
            financials=list(result.financials),
            map_ids=used,
        )
