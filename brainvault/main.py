# =============================================================================
# Application Entry Point - FastAPI App Factory
# =============================================================================
#
# STARTUP (lifespan):
#   1. Create the vector extension + tables (db_auto_create)
#   2. Build the ServiceContainer once → app.state.services
#   Nothing is torn down on shutdown beyond the engine's pool.
#
# ERROR CONTRACT:
#   BrainVaultError → its status_code + {"message": ...}
#   RateLimitError  → 429 + Retry-After header
#   anything else   → 500 {"message": "Internal server error"}, traceback
#                     logged server-side only
#
# Run with:  uvicorn brainvault.main:app --reload
# =============================================================================

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from brainvault.api import auth, content, search, share
from brainvault.config import Settings, settings
from brainvault.container import ServiceContainer, build_services
from brainvault.errors import BrainVaultError, RateLimitError
from brainvault.models.responses import HealthResponse

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request: method, path, status, latency."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s → %d (%.1f ms, owner=%s)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            getattr(request.state, "owner_id", "-"),
        )
        return response


# ---------------------------------------------------------------------------
# Exception Handlers
# ---------------------------------------------------------------------------


async def _brainvault_error_handler(request: Request, exc: BrainVaultError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message},
        headers=headers,
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# ---------------------------------------------------------------------------
# App Factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    services: ServiceContainer | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_settings: Settings to use (defaults to the module-level instance).
        services: Pre-built container. When given, startup neither builds
            services nor touches the database (used by tests).
    """
    app_settings = app_settings or settings
    configure_logging(app_settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is None:
            if app_settings.db_auto_create:
                from brainvault.db.engine import init_models

                await init_models()
            app.state.services = build_services(app_settings)
        logger.info("%s %s started", app_settings.app_name, app_settings.app_version)
        yield

    app = FastAPI(
        title=app_settings.app_name,
        version=app_settings.app_version,
        description="Personal knowledge store with semantic search and answers.",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(BrainVaultError, _brainvault_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    for module in (auth, content, search, share):
        app.include_router(module.router, prefix=app_settings.api_prefix)

    @app.get("/", tags=["Health"])
    async def root() -> str:
        return "BrainVault API is running"

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(version=app_settings.app_version, service=app_settings.app_name)

    return app


app = create_app()
