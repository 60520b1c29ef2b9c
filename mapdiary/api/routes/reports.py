"""
Report API endpoints: list stored reports, trigger the periodic check, delete.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from mapdiary.api.dependencies import get_reports_service
from mapdiary.observability.logging import get_logger
from mapdiary.reports.models import ReportDoc
from mapdiary.reports.service import ReportsService

router = APIRouter(prefix="/api/reports", tags=["reports"])
logger = get_logger(__name__)


class ReportResponse(BaseModel):
    id: str
    type: str
    period_id: str
    period_display: str
    chronological: str
    thematic: str
    summary: str
    emotion: str
    in_progress: bool
    created_at: Any

    @classmethod
    def from_doc(cls, doc: ReportDoc) -> ReportResponse:
        return cls(
            id=doc.id,
            type=doc.type if isinstance(doc.type, str) else doc.type.value,
            period_id=doc.period_id,
            period_display=doc.period_display,
            chronological=doc.chronological,
            thematic=doc.thematic,
            summary=doc.summary,
            emotion=doc.emotion,
            in_progress=doc.in_progress,
            created_at=doc.created_at,
        )


class ReportListResponse(BaseModel):
    reports: list[ReportResponse]
    total: int


@router.get("", response_model=ReportListResponse)
async def list_reports(
    service: ReportsService = Depends(get_reports_service),
) -> ReportListResponse:
    """All reports, newest first."""
    reports = service.list_reports()
    return ReportListResponse(
        reports=[ReportResponse.from_doc(r) for r in reports],
        total=len(reports),
    )


@router.post("/check", response_model=ReportListResponse)
async def check_reports(
    service: ReportsService = Depends(get_reports_service),
) -> ReportListResponse:
    """
    Generate any missing report for last week, last month and the current week.

    Returns only the reports created by this call.
    """
    generated = service.check_and_generate()
    logger.info("Report check generated %d report(s)", len(generated))
    return ReportListResponse(
        reports=[ReportResponse.from_doc(r) for r in generated],
        total=len(generated),
    )


@router.delete("/{report_id}", status_code=204)
async def delete_report(
    report_id: str,
    service: ReportsService = Depends(get_reports_service),
) -> Response:
    service.delete_report(report_id)
    return Response(status_code=204)
