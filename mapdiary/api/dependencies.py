"""
FastAPI dependencies: current user, shared store and gateway, per-request services.

Identity is taken from the ``X-User-Id`` header. Verifying it is the job of
whatever sits in front of this API; when AUTH_REQUIRED is off, requests
without the header act as the default development user.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status

from mapdiary.infrastructure import settings
from mapdiary.llm.gateway import AIGateway
from mapdiary.maps.service import MapsService
from mapdiary.reports.service import ReportsService
from mapdiary.store.documents import DocumentStore
from mapdiary.store.graph_store import GraphStore


@lru_cache(maxsize=1)
def get_document_store() -> DocumentStore:
    return DocumentStore()


@lru_cache(maxsize=1)
def get_gateway() -> AIGateway:
    return AIGateway()


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    user_id = (x_user_id or "").strip()
    if user_id:
        return user_id
    if settings.AUTH_REQUIRED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    return settings.DEFAULT_USER_ID


def get_graph_store(
    user_id: str = Depends(get_user_id),
    store: DocumentStore = Depends(get_document_store),
) -> GraphStore:
    return GraphStore(store, user_id)


def get_maps_service(
    graph_store: GraphStore = Depends(get_graph_store),
    gateway: AIGateway = Depends(get_gateway),
) -> MapsService:
    return MapsService(graph_store, gateway)


def get_reports_service(
    graph_store: GraphStore = Depends(get_graph_store),
    gateway: AIGateway = Depends(get_gateway),
    maps: MapsService = Depends(get_maps_service),
) -> ReportsService:
    return ReportsService(graph_store, gateway, maps)
