"""FastAPI server for MapDiary"""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mapdiary.api.routes.health import router as health_router
from mapdiary.api.routes.ideas import router as ideas_router
from mapdiary.api.routes.maps import router as maps_router
from mapdiary.api.routes.nodes import router as nodes_router
from mapdiary.api.routes.reports import router as reports_router
from mapdiary.config import APP_VERSION
from mapdiary.errors import (
    DocumentNotFoundError,
    EmptyMapError,
    GraphError,
    MapDiaryError,
    MapNotFoundError,
    NodeNotFoundError,
    NotAuthenticatedError,
)
from mapdiary.infrastructure import settings
from mapdiary.infrastructure.database import init_database
from mapdiary.llm.errors import AIGatewayError
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter
from mapdiary.utils.error_sanitizer import sanitize_error_message

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # Schema creation is idempotent, safe on every startup
    try:
        logger.info("Initializing database schema...")
        init_database()
        logger.info("Database initialization complete")
    except sqlite3.OperationalError as e:
        logger.critical("Database schema error: %s", e)
        logger.critical("Database may be corrupted or locked by another process")
        raise RuntimeError(f"Database initialization failed: {e}") from e
    yield


app = FastAPI(title="MapDiary API", version=APP_VERSION, lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Reject malformed requests without echoing validation internals.

    Only the names of the offending fields are returned.
    """
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


def _status_for(exc: MapDiaryError) -> int:
    if isinstance(exc, MapNotFoundError | NodeNotFoundError | DocumentNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, NotAuthenticatedError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, EmptyMapError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, GraphError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, AIGatewayError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(MapDiaryError)
async def domain_exception_handler(request: Request, exc: MapDiaryError) -> JSONResponse:
    """Map domain errors to HTTP statuses with sanitized details."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    else:
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    counter(f"api.errors.{status_code}")

    return JSONResponse(
        status_code=status_code,
        content={"detail": sanitize_error_message(str(exc), status_code)},
    )


ALLOWED_ORIGINS = [
    origin.strip()
    for origin in (settings.get_env("MAPDIARY_ALLOWED_ORIGINS") or "").split(",")
    if origin.strip()
]

# Allow local frontends in development only
if settings.is_development():
    ALLOWED_ORIGINS.extend(
        [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-User-Id", "X-Request-ID"],
)

# Include routers
app.include_router(health_router)
app.include_router(maps_router)
app.include_router(nodes_router)
app.include_router(reports_router)
app.include_router(ideas_router)


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "mapdiary.api.app:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    main()
