"""
Aggregate Views

Four summary views computed from the order-grain fact table:
- monthly KPIs
- top state by revenue per month
- city-level revenue
- recent orders slice
"""

from datetime import date, timedelta
from typing import Dict, Optional

import polars as pl
import structlog

from order_analytics.config import get_settings
from order_analytics.quality.validators import validate_entity
from order_analytics.schemas import (
    CITY_REVENUE_VIEW,
    FACT_ORDER,
    MONTHLY_KPIS_VIEW,
    RECENT_ORDERS_VIEW,
    TOP_STATE_BY_MONTH_VIEW,
)
from .facts import null_safe_sum

logger = structlog.get_logger(__name__)


def month_start(column: str = "purchase_date") -> pl.Expr:
    """First calendar day of the month of a date column"""
    return pl.col(column).dt.truncate("1mo").alias("month_start")


class Aggregator:
    """
    Computes the summary views from FactOrder rows.

    Every view is a pure function of the fact table. The reference date for
    the recent-orders window is fixed when the aggregator is created, so one
    pipeline run evaluates every row against the same date.

    Example:
        aggregator = Aggregator(reference_date=date(2018, 10, 17))
        views = aggregator.compute_all(facts)
    """

    def __init__(
        self,
        reference_date: Optional[date] = None,
        recent_window_days: Optional[int] = None,
    ):
        pipeline_settings = get_settings().pipeline
        self.reference_date = reference_date or pipeline_settings.reference_date or date.today()
        self.recent_window_days = (
            recent_window_days if recent_window_days is not None else pipeline_settings.recent_window_days
        )

    @property
    def recent_cutoff(self) -> date:
        """Inclusive lower bound of the recent-orders window"""
        return self.reference_date - timedelta(days=self.recent_window_days)

    def monthly_kpis(self, facts: pl.DataFrame) -> pl.DataFrame:
        """
        Order count, revenue, AOV, delivery speed and late rate per purchase month.

        Orders without a purchase date cannot be placed in a month and are
        excluded. A null delay counts as not late.
        """
        return (
            facts.filter(pl.col("purchase_date").is_not_null())
            .group_by(month_start())
            .agg(
                pl.len().cast(pl.Int64).alias("order_count"),
                null_safe_sum("gross_order_value").alias("revenue"),
                pl.col("gross_order_value").mean().alias("avg_order_value"),
                pl.col("days_to_deliver").mean().alias("avg_days_to_deliver"),
                (pl.col("delay_days") > 0).fill_null(False).cast(pl.Float64).mean().alias("late_rate"),
            )
            .sort("month_start")
        )

    def top_state_by_month(self, facts: pl.DataFrame) -> pl.DataFrame:
        """
        State with the highest revenue in each purchase month.

        Ties on revenue go to the alphabetically first state code; a null
        state is a valid group and ranks after every named state. Orders
        without a purchase date have no month and get no row here, which
        keeps month_start usable as the key.
        """
        state_revenue = (
            facts.filter(pl.col("purchase_date").is_not_null())
            .group_by(month_start(), "customer_state")
            .agg(null_safe_sum("gross_order_value").alias("revenue_state"))
        )
        return (
            state_revenue.sort(
                ["month_start", "revenue_state", "customer_state"],
                descending=[False, True, False],
                nulls_last=True,
            )
            .group_by("month_start", maintain_order=True)
            .first()
            .select("month_start", "customer_state", "revenue_state")
        )

    def city_revenue(self, facts: pl.DataFrame) -> pl.DataFrame:
        """Revenue and order count per (state, city); null keys form their own groups"""
        return (
            facts.group_by("customer_state", "customer_city")
            .agg(
                null_safe_sum("gross_order_value").alias("revenue"),
                pl.len().cast(pl.Int64).alias("order_count"),
            )
            .sort(["customer_state", "customer_city"], nulls_last=True)
        )

    def recent_orders(self, facts: pl.DataFrame) -> pl.DataFrame:
        """Fact rows purchased on or after the window's lower bound"""
        return facts.filter(pl.col("purchase_date") >= self.recent_cutoff).sort(
            ["purchase_date", "order_id"], descending=[True, False]
        )

    def compute_all(self, facts: pl.DataFrame) -> Dict[str, pl.DataFrame]:
        """Compute every view, keyed by view table name"""
        validate_entity(facts, FACT_ORDER)

        views = {
            MONTHLY_KPIS_VIEW.name: self.monthly_kpis(facts),
            TOP_STATE_BY_MONTH_VIEW.name: self.top_state_by_month(facts),
            CITY_REVENUE_VIEW.name: self.city_revenue(facts),
            RECENT_ORDERS_VIEW.name: self.recent_orders(facts),
        }

        logger.info(
            "Aggregate views computed",
            reference_date=self.reference_date.isoformat(),
            **{name: view.height for name, view in views.items()},
        )
        return views
