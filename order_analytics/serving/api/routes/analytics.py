"""
Analytics API Endpoints

REST API over the aggregate views for dashboards.
"""

from datetime import date
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
import polars as pl
import structlog

from order_analytics.database.store import TableStore
from order_analytics.schemas import (
    CITY_REVENUE_VIEW,
    MONTHLY_KPIS_VIEW,
    RECENT_ORDERS_VIEW,
    TOP_STATE_BY_MONTH_VIEW,
)

router = APIRouter()
logger = structlog.get_logger(__name__)

OrderKey = Union[int, str]


def get_store(request: Request) -> TableStore:
    """Store the application was created with"""
    return request.app.state.store


class MonthlyKPI(BaseModel):
    """Monthly KPI row"""
    month_start: date
    order_count: int
    revenue: Optional[float]
    avg_order_value: Optional[float]
    avg_days_to_deliver: Optional[float]
    late_rate: float


class TopState(BaseModel):
    """Top state for one month"""
    month_start: date
    customer_state: Optional[str]
    revenue_state: Optional[float]


class CityRevenue(BaseModel):
    """Revenue for one (state, city)"""
    customer_state: Optional[str]
    customer_city: Optional[str]
    revenue: Optional[float]
    order_count: int


class FactOrder(BaseModel):
    """Order-grain fact row"""
    order_id: OrderKey
    customer_id: Optional[OrderKey]
    customer_unique_id: Optional[OrderKey]
    customer_city: Optional[str]
    customer_state: Optional[str]
    order_status: Optional[str]
    purchase_date: Optional[date]
    delivered_date: Optional[date]
    estimated_date: Optional[date]
    days_to_deliver: Optional[int]
    delay_days: Optional[int]
    items_value: Optional[float]
    freight_value: Optional[float]
    gross_order_value: Optional[float]
    item_count: Optional[int]


@router.get("/monthly-kpis", response_model=List[MonthlyKPI])
def get_monthly_kpis(
    start_month: Optional[date] = None,
    end_month: Optional[date] = None,
    store: TableStore = Depends(get_store),
) -> List[dict]:
    """
    Monthly order count, revenue, average order value, delivery days and late rate.
    """
    df = store.query(MONTHLY_KPIS_VIEW.name)
    if start_month:
        df = df.filter(pl.col("month_start") >= start_month)
    if end_month:
        df = df.filter(pl.col("month_start") <= end_month)
    return df.to_dicts()


@router.get("/top-states", response_model=List[TopState])
def get_top_states(store: TableStore = Depends(get_store)) -> List[dict]:
    """Highest-revenue state per month."""
    return store.query(TOP_STATE_BY_MONTH_VIEW.name).to_dicts()


@router.get("/city-revenue", response_model=List[CityRevenue])
def get_city_revenue(
    state: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    store: TableStore = Depends(get_store),
) -> List[dict]:
    """
    Revenue and order count by city, highest revenue first when limited.
    """
    df = store.query(CITY_REVENUE_VIEW.name)
    if state:
        df = df.filter(pl.col("customer_state") == state)
    if limit:
        df = df.sort("revenue", descending=True, nulls_last=True).head(limit)
    return df.to_dicts()


@router.get("/recent-orders", response_model=List[FactOrder])
def get_recent_orders(
    limit: int = Query(default=100, ge=1, le=10000),
    store: TableStore = Depends(get_store),
) -> List[dict]:
    """Orders purchased inside the trailing window of the last pipeline run."""
    df = store.query(RECENT_ORDERS_VIEW.name).head(limit)
    logger.debug("Serving recent orders", rows=df.height)
    return df.to_dicts()
