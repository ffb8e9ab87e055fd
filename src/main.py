"""ResqueNet FastAPI application entry point.

Creates the FastAPI app, includes routers, and manages the lifecycle of
the backend services (request store, session registry).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import settings
from src.api.router import api_router
from src.models.enums import EmergencyCategory

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            settings.log_level,
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of the ResqueNet services.

    On startup:
      1. Build the request store (Firestore or in-process) once
      2. Create the session registry, whose controllers share the store's
         retry policy
      3. Store both on ``app.state`` for the routers

    On shutdown:
      - Close the request store client.
    """
    _configure_logging()
    logger.info(
        "app.startup",
        env=settings.env,
        store_backend=settings.store_backend,
        gcp_project=settings.gcp_project_id,
    )

    app.state.start_time = time.time()

    # -- 1. Request store ---------------------------------------------------
    from src.services.request_store import create_request_store

    store = create_request_store(
        settings.store_backend,
        project_id=settings.gcp_project_id,
        database=settings.firestore_database,
        collection=settings.requests_collection,
    )
    app.state.request_store = store
    logger.info("app.request_store_initialised", collection=settings.requests_collection)

    # -- 2. Sessions --------------------------------------------------------
    from src.services.screen_controller import ScreenController
    from src.services.sessions import SessionRegistry

    def _new_controller(session_id: str) -> ScreenController:
        return ScreenController(
            session_id,
            write_attempts=settings.store_write_attempts,
            retry_min_seconds=settings.store_retry_min_seconds,
            retry_max_seconds=settings.store_retry_max_seconds,
        )

    app.state.sessions = SessionRegistry(
        _new_controller,
        ttl_seconds=settings.session_ttl_seconds,
        max_sessions=settings.max_sessions,
    )
    logger.info("app.sessions_initialised", ttl_seconds=settings.session_ttl_seconds)

    logger.info("app.startup_complete")

    yield

    # -- Shutdown -----------------------------------------------------------
    logger.info("app.shutdown_start")
    await store.close()
    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ResqueNet API",
    description=(
        "ResqueNet -- Community Crisis Lifeline. Submits SOS requests with a "
        "locked GPS position and streams active requests to volunteers."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# -- CORS middleware --------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
    allow_headers=["Content-Type", "Accept"],
)

# -- Prometheus metrics -----------------------------------------------------
try:
    from prometheus_fastapi_instrumentator import Instrumentator

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/metrics", "/api/v1/health"],
    ).instrument(app).expose(
        app,
        endpoint="/metrics",
        include_in_schema=not settings.is_production,
    )
    logger.info("app.prometheus_metrics_enabled")
except ImportError:
    logger.warning("app.prometheus_not_available")

# -- Include routers -------------------------------------------------------
app.include_router(api_router)


@app.get("/api", response_class=ORJSONResponse)
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "ResqueNet API",
        "description": "Community Crisis Lifeline",
        "version": app.version,
        "docs": "/docs",
        "health": "/api/v1/health",
        "categories": [category.value for category in EmergencyCategory],
        "endpoints": {
            "sessions": "/api/v1/sessions",
            "requests": "/api/v1/requests",
            "feed": "/api/v1/requests/feed",
            "distance": "/api/v1/distance",
            "health": "/api/v1/health",
        },
    }
