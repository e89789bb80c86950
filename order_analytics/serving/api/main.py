"""
FastAPI Application Factory

Read-only API over the aggregate views built by the pipeline, for
dashboards and ad-hoc analysis.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import structlog

from order_analytics.config import get_settings
from order_analytics.database.store import SQLTableStore, TableStore
from order_analytics.errors import StoreError, TableNotFoundError
from .middleware import RequestLoggingMiddleware
from .routes import analytics_router, health_router

logger = structlog.get_logger(__name__)


def create_app(store: Optional[TableStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store: Tabular Store to serve from (defaults to the configured database)

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Order Analytics API",
        description="Monthly KPIs, top states, city revenue and recent orders",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.store = store if store is not None else SQLTableStore.from_url(settings.database.url)

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(TableNotFoundError)
    async def table_not_found_handler(request: Request, exc: TableNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": f"'{exc.table_name}' has not been built yet"},
        )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store error while serving request", path=request.url.path, error=exc.message)
        return JSONResponse(status_code=503, content={"detail": exc.message})

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])

    return app
