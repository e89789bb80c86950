"""
Health Check Endpoints

Reports store connectivity and which views have been built.
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from order_analytics.config import get_settings
from order_analytics.database.store import TableStore
from order_analytics.schemas import VIEW_NAMES
from .analytics import get_store

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
def health_check(store: TableStore = Depends(get_store)) -> HealthResponse:
    """
    Health check endpoint.

    Healthy when the store answers and every view exists; degraded when
    some views have not been built yet.
    """
    settings = get_settings()
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    check_health = getattr(store, "check_health", None)
    if check_health is not None:
        checks["database"] = check_health()
        if checks["database"].get("status") != "healthy":
            overall_status = "unhealthy"

    if overall_status == "healthy":
        missing = [name for name in VIEW_NAMES if not store.has_table(name)]
        checks["views"] = {"missing": missing}
        if missing:
            overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.utcnow(),
        checks=checks,
    )
