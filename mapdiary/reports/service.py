"""
Periodic report generation.

Reports are generated at most once per period id. Generation is a background
chore: AI failures are logged and the period is reported as not generated, to
be retried on the next check.
"""

from __future__ import annotations

from datetime import datetime

from mapdiary.errors import DocumentNotFoundError
from mapdiary.llm.errors import AIGatewayError
from mapdiary.llm.gateway import AIGateway
from mapdiary.maps.models import MapDoc
from mapdiary.maps.service import MapsService
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter, log_event, time_block
from mapdiary.reports.models import ReportDoc
from mapdiary.reports.periods import ReportPeriod, due_periods
from mapdiary.store.documents import SERVER_TIMESTAMP
from mapdiary.store.graph_store import GraphStore

logger = get_logger(__name__)

ENTRY_SEPARATOR = "\n\n---\n\n"


class ReportsService:
    def __init__(
        self,
        graph_store: GraphStore,
        gateway: AIGateway,
        maps: MapsService | None = None,
    ):
        self.graph_store = graph_store
        self.gateway = gateway
        self.maps = maps or MapsService(graph_store, gateway)

    def list_reports(self) -> list[ReportDoc]:
        """All reports, newest first."""
        return [ReportDoc.from_record(r) for r in self.graph_store.fetch_reports()]

    def delete_report(self, report_id: str) -> None:
        path = self.graph_store.reports_path()
        if self.graph_store.store.get(path, report_id) is None:
            raise DocumentNotFoundError(path, report_id)
        self.graph_store.delete_report(report_id)

    def maps_in_period(self, period: ReportPeriod) -> list[MapDoc]:
        """Maps whose createdAt (or updatedAt when missing) falls inside the period."""
        found = []
        for m in self.maps.list_maps():
            stamp = m.created() or m.updated()
            if stamp is not None and period.contains(stamp):
                found.append(m)
        return found

    def build_period_markdown(self, maps: list[MapDoc]) -> str:
        blocks = []
        for m in maps:
            body = self.maps.markdown_for(m)
            if body:
                blocks.append(f"# {m.display_title}\n\n{body}")
        return ENTRY_SEPARATOR.join(blocks)

    def generate_for_period(self, period: ReportPeriod) -> ReportDoc | None:
        """
        Generate and store the report for ``period``.

        Returns None when the period has no content or the AI call failed.
        """
        maps = self.maps_in_period(period)
        if not maps:
            logger.debug("No maps in %s, skipping report", period.period_id)
            return None

        markdown = self.build_period_markdown(maps)
        if not markdown:
            return None

        try:
            with time_block("reports.generate.latency"):
                content = self.gateway.generate_report(period.type.value, period.display, markdown)
        except AIGatewayError as e:
            counter("reports.generate.failed")
            logger.error(
                "Failed to generate %s report %s: %s", period.type.value, period.period_id, e
            )
            return None

        report_id = self.graph_store.add_report(
            {
                **content.model_dump(),
                "type": period.type.value,
                "periodId": period.period_id,
                "periodDisplay": period.display,
                "createdAt": SERVER_TIMESTAMP,
            }
        )
        counter("reports.generated")
        log_event(
            "reports.generated",
            report_id=report_id,
            period_id=period.period_id,
            maps=len(maps),
        )
        doc = self.graph_store.store.get(self.graph_store.reports_path(), report_id)
        return ReportDoc.from_record(doc.to_record())

    def check_and_generate(self, now: datetime | None = None) -> list[ReportDoc]:
        """
        Generate whichever of last week, last month and this week is missing.

        Periods that already have a report are skipped, so repeated calls
        are harmless.
        """
        now = now or self.graph_store.store.clock()
        existing = {r.period_id for r in self.list_reports()}

        generated: list[ReportDoc] = []
        for period in due_periods(now):
            if period.period_id in existing:
                continue
            report = self.generate_for_period(period)
            if report is not None:
                generated.append(report)
                existing.add(period.period_id)
        return generated
