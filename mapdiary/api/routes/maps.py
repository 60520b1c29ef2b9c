"""
Map API endpoints.

CRUD over the signed-in user's maps, lookup by date and search, AI summaries
and the financial breakdown of a stored summary.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from mapdiary.api.dependencies import get_maps_service
from mapdiary.config import API_LIST_LIMIT_DEFAULT, API_LIST_LIMIT_MAX
from mapdiary.errors import MapNotFoundError
from mapdiary.llm.schemas import FinancialItem
from mapdiary.maps.models import MapDoc, MapType
from mapdiary.maps.service import MapsService, MapSummary
from mapdiary.observability.logging import get_logger

router = APIRouter(prefix="/api/maps", tags=["maps"])
logger = get_logger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================


class MapResponse(BaseModel):
    """API response for a single map."""

    id: str
    title: str
    type: str
    content: str | None
    pages: list[str] | None
    summary: str | None
    emotion: str | None
    financials: list[FinancialItem]
    needs_summary: bool
    created_at: Any
    updated_at: Any
    summarized_at: Any

    @classmethod
    def from_doc(cls, doc: MapDoc) -> MapResponse:
        pages = doc.note_pages()
        return cls(
            id=doc.id,
            title=doc.display_title,
            type=doc.type if isinstance(doc.type, str) else doc.type.value,
            content=doc.content,
            pages=list(pages) if pages is not None else None,
            summary=doc.summary,
            emotion=doc.emotion,
            financials=doc.financials,
            needs_summary=doc.needs_summary(),
            created_at=doc.created_at,
            updated_at=doc.updated_at,
            summarized_at=doc.summarized_at,
        )


class MapListResponse(BaseModel):
    maps: list[MapResponse]
    total: int


class CreateMapRequest(BaseModel):
    """Request to create a map. Without a title the local date is used."""

    title: str | None = Field(default=None, max_length=200)
    type: MapType = MapType.BLANK


class UpdateMapRequest(BaseModel):
    """Either flat ``content`` or the two note ``pages``; pages win when both are sent."""

    title: str | None = Field(default=None, max_length=200)
    content: str | None = None
    pages: list[str] | None = Field(default=None, min_length=2, max_length=2)


class SummaryResponse(BaseModel):
    summary: str
    emotion: str
    financials: list[FinancialItem]
    map_ids: list[str]
    cached: bool
    persisted: bool
    fallback: bool

    @classmethod
    def from_summary(cls, result: MapSummary) -> SummaryResponse:
        return cls(
            summary=result.summary,
            emotion=result.emotion,
            financials=result.financials,
            map_ids=result.map_ids,
            cached=result.cached,
            persisted=result.persisted,
            fallback=result.is_fallback,
        )


class ExpenseShareResponse(BaseModel):
    label: str
    amount: float
    percentage: float


class FinancialSummaryResponse(BaseModel):
    total_income: float
    total_expense: float
    net: float
    expense_shares: list[ExpenseShareResponse]


class MarkdownResponse(BaseModel):
    map_id: str
    markdown: str


# ============================================================================
# Endpoints
# ============================================================================


@router.get("", response_model=MapListResponse)
async def list_maps(
    q: str | None = Query(None, description="Search titles, summaries and node text"),
    limit: int = Query(API_LIST_LIMIT_DEFAULT, ge=1, le=API_LIST_LIMIT_MAX),
    service: MapsService = Depends(get_maps_service),
) -> MapListResponse:
    """List maps, most recently updated first, optionally filtered by a search term."""
    maps = service.search(q) if q else service.list_maps()
    return MapListResponse(
        maps=[MapResponse.from_doc(m) for m in maps[:limit]],
        total=len(maps),
    )


@router.post("", response_model=MapResponse, status_code=201)
async def create_map(
    request: CreateMapRequest,
    service: MapsService = Depends(get_maps_service),
) -> MapResponse:
    doc = service.create_map(request.title, request.type)
    logger.info("Created %s map %s", doc.type, doc.id)
    return MapResponse.from_doc(doc)


@router.get("/by-date/{date_key}", response_model=MapResponse)
async def get_latest_map_for_date(
    date_key: str,
    service: MapsService = Depends(get_maps_service),
) -> MapResponse:
    """The most recently touched daily map for a YYYY-MM-DD date."""
    doc = service.find_latest_by_date(date_key)
    if doc is None:
        raise MapNotFoundError(date_key)
    return MapResponse.from_doc(doc)


@router.post("/by-date/{date_key}/summary", response_model=SummaryResponse)
async def summarize_date(
    date_key: str,
    service: MapsService = Depends(get_maps_service),
) -> SummaryResponse:
    return SummaryResponse.from_summary(service.summarize_by_date(date_key))


@router.get("/{map_id}", response_model=MapResponse)
async def get_map(
    map_id: str,
    service: MapsService = Depends(get_maps_service),
) -> MapResponse:
    return MapResponse.from_doc(service.get_map(map_id))


@router.patch("/{map_id}", response_model=MapResponse)
async def update_map(
    map_id: str,
    request: UpdateMapRequest,
    service: MapsService = Depends(get_maps_service),
) -> MapResponse:
    """Rename a map and/or replace a note map's content."""
    if request.title is not None:
        service.update_title(map_id, request.title)
    if request.pages is not None:
        service.update_pages(map_id, *request.pages)
    elif request.content is not None:
        service.update_content(map_id, request.content)
    return MapResponse.from_doc(service.get_map(map_id))


@router.delete("/{map_id}", status_code=204)
async def delete_map(
    map_id: str,
    service: MapsService = Depends(get_maps_service),
) -> Response:
    """Delete a map together with its nodes and edges."""
    deleted = service.delete_map(map_id)
    logger.info("Deleted map %s (%d documents)", map_id, deleted)
    return Response(status_code=204)


@router.post("/{map_id}/summary", response_model=SummaryResponse)
async def summarize_map(
    map_id: str,
    force: bool = Query(False, description="Regenerate even if the stored summary is fresh"),
    service: MapsService = Depends(get_maps_service),
) -> SummaryResponse:
    return SummaryResponse.from_summary(service.summarize_map(map_id, force=force))


@router.get("/{map_id}/markdown", response_model=MarkdownResponse)
async def get_map_markdown(
    map_id: str,
    service: MapsService = Depends(get_maps_service),
) -> MarkdownResponse:
    """Outline of the map's visible nodes (note content for note maps)."""
    doc = service.get_map(map_id)
    return MarkdownResponse(map_id=map_id, markdown=service.markdown_for(doc))


@router.get("/{map_id}/financials", response_model=FinancialSummaryResponse)
async def get_financials(
    map_id: str,
    service: MapsService = Depends(get_maps_service),
) -> FinancialSummaryResponse:
    result = service.financial_summary(map_id)
    return FinancialSummaryResponse(
        total_income=result.total_income,
        total_expense=result.total_expense,
        net=result.net,
        expense_shares=[
            ExpenseShareResponse(label=s.label, amount=s.amount, percentage=s.percentage)
            for s in result.expense_shares
        ],
    )
