"""Liveness and storage health for the diary service."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from mapdiary.config import APP_VERSION
from mapdiary.infrastructure import settings
from mapdiary.infrastructure.database import get_db_connection, get_pool_stats
from mapdiary.observability.telemetry import get_counter

router = APIRouter(tags=["health"])

POOL_DEGRADED_PERCENT = 80


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Version, clock and whether Gemini credentials are configured."""
    vertex = bool(settings.GOOGLE_CLOUD_PROJECT)
    api_key = bool(settings.GOOGLE_API_KEY)
    return {
        "status": "healthy",
        "service": "mapdiary",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "ready": vertex or api_key,
            "backend": "vertexai" if vertex else ("genai" if api_key else None),
            "model": settings.GEMINI_MODEL,
        },
    }


@router.get("/health/db")
async def database_health() -> dict[str, Any]:
    stats = get_pool_stats()
    with get_db_connection() as conn:
        documents = conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    degraded = stats["usage_percent"] > POOL_DEGRADED_PERCENT
    return {
        "status": "degraded" if degraded else "healthy",
        "pool": stats,
        "documents": documents,
        "lock_retries": get_counter("database.lock_retry"),
    }
