"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tecassist.api.dependencies import build_container
from tecassist.api.routes.catalog import router as catalog_router
from tecassist.api.routes.chat import router as chat_router
from tecassist.api.routes.documents import router as documents_router
from tecassist.api.routes.health import router as health_router
from tecassist.api.routes.metrics import router as metrics_router
from tecassist.config import Settings, get_settings
from tecassist.db.engine import Database
from tecassist.errors import (
    BudgetExceededError,
    ConflictError,
    CoreError,
    NotFoundError,
    ProviderFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: list[tuple[type[CoreError], int]] = [
    (NotFoundError, 404),
    (ConflictError, 409),
    (ValidationError, 422),
    (BudgetExceededError, 413),
    (ProviderFailure, 503),
]


def status_for(error: CoreError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


async def core_error_handler(request: Request, exc: CoreError) -> JSONResponse:
    """Map core errors to JSON bodies with a stable code."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app; the Database handle lives exactly as long as the lifespan."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        db = Database.from_settings(settings)
        await db.open()
        if settings.database_auto_create:
            await db.create_all()
        app.state.container = build_container(settings, db)
        try:
            yield
        finally:
            await db.close()

    app = FastAPI(title="Tec I.A Catalog Assistant API", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(CoreError, core_error_handler)  # type: ignore[arg-type]

    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(documents_router)
    app.include_router(catalog_router)
    app.include_router(chat_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Tec I.A Catalog Assistant API", "version": "0.1.0"}

    return app


app = create_app()
