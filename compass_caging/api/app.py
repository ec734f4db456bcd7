"""
Compass Caging API - FastAPI application factory.

Serves the caging, reconciliation, import and admin routes under ``/api``
backed by one SQLite store.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..base import ConflictError, PayloadTooLargeError, RecordNotFoundError
from ..config import Settings
from ..logging_config import get_logger, setup_logging
from ..store import CagingStore
from .routes import (
    admin,
    auth,
    batches,
    clients,
    donations,
    imports,
    journal,
    people,
    reconciliation,
    reports,
    resolution,
    settings as settings_routes,
)

logger = get_logger(__name__)


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Map store and request errors onto ``{"error": ...}`` responses."""

    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc) or "Not found")

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(PayloadTooLargeError)
    async def too_large_handler(request: Request, exc: PayloadTooLargeError) -> JSONResponse:
        return _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, str(exc))

    @app.exception_handler(ValueError)
    async def validation_handler(request: Request, exc: ValueError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        return _error(status.HTTP_400_BAD_REQUEST, f"{location}: {message}" if location else message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Internal Server Error")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Explicit settings; tests pass one pointing at a temporary database

    Returns:
        Configured FastAPI instance
    """
    settings = settings or Settings()
    setup_logging(settings)
    store = CagingStore(settings.DATABASE_PATH)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting %s", settings.APP_NAME)
        logger.info("Database: %s", settings.DATABASE_PATH)
        if settings.AUTO_MIGRATE:
            result = store.init_db()
            logger.info("Migrations: %s", result["status"])
        yield
        logger.info("Shutting down %s", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Donation caging, reconciliation and donor relationship API",
        version=__version__,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    for module in (
        auth,
        clients,
        batches,
        donations,
        people,
        resolution,
        reconciliation,
        imports,
        settings_routes,
        journal,
        reports,
        admin,
    ):
        app.include_router(module.router, prefix="/api")

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint."""
        database_ok = True
        try:
            store.migration_status()
        except Exception as exc:
            logger.error("Database health check failed: %s", exc)
            database_ok = False
        return {
            "status": "healthy" if database_ok else "degraded",
            "service": "compass-caging",
            "database": "connected" if database_ok else "disconnected",
        }

    return app
