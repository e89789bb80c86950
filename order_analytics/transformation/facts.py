"""
Fact Table Builder

Builds the order-grain fact table: item rollups and the customer dimension
are left-joined onto normalized orders and the delivery/value KPIs derived.

KPIs:
- days_to_deliver = delivered_date - purchase_date (days)
- delay_days = delivered_date - estimated_date (days, positive means late)
- gross_order_value = items_value + freight_value

Any null input yields a null KPI.
"""

from typing import Literal, Optional, Tuple

import polars as pl
import structlog

from order_analytics.config import get_settings
from order_analytics.errors import ComputationError, IntegrityError, SchemaError
from order_analytics.quality.validators import validate_entity
from order_analytics.schemas import (
    CANONICAL_CUSTOMER,
    FACT_ORDER_COLUMNS,
    NORMALIZED_ORDER,
    SANITIZED_ITEM,
)

logger = structlog.get_logger(__name__)

EmptyOrderPolicy = Literal["null", "zero"]

DIMENSION_COLUMNS = ["customer_id", "customer_unique_id", "customer_city", "customer_state"]
KPI_DATE_COLUMNS = ["purchase_date", "delivered_date", "estimated_date"]

_ROW = "_row_nr"
_HAS_ITEMS = "_has_items"


def null_safe_sum(column: str) -> pl.Expr:
    """SUM with SQL semantics: null when every value in the group is null"""
    return pl.when(pl.col(column).count() > 0).then(pl.col(column).sum())


def day_difference(end: str, start: str) -> pl.Expr:
    """Whole days between two date columns, null if either is null"""
    return (pl.col(end) - pl.col(start)).dt.total_days()


def _align_keys(
    left: pl.DataFrame, right: pl.DataFrame, key: str, entity: str
) -> Tuple[pl.DataFrame, pl.DataFrame]:
    """Cast an untyped (all-null) join key to the other side's dtype; reject real mismatches"""
    left_dtype, right_dtype = left.schema[key], right.schema[key]
    if left_dtype == right_dtype:
        return left, right
    if right_dtype == pl.Null:
        return left, right.with_columns(pl.col(key).cast(left_dtype))
    if left_dtype == pl.Null:
        return left.with_columns(pl.col(key).cast(right_dtype)), right
    raise SchemaError(
        f"{entity}: join key '{key}' has type {right_dtype}, orders have {left_dtype}",
        {"column": key, "left_dtype": str(left_dtype), "right_dtype": str(right_dtype)},
    )


class FactBuilder:
    """
    Builds FactOrder rows from the three sanitized inputs.

    Output cardinality always equals the number of normalized orders: every
    order is kept regardless of customer or item matches, and the customer
    dimension must be unique on customer_id.

    Orders with no items get null rollup values under the "null" policy
    (the default) and zeros under the "zero" policy.

    Example:
        builder = FactBuilder()
        facts = builder.build(orders, customers, items)
    """

    def __init__(self, empty_order_policy: Optional[EmptyOrderPolicy] = None):
        self.empty_order_policy = empty_order_policy or get_settings().pipeline.empty_order_policy
        if self.empty_order_policy not in ("null", "zero"):
            raise ValueError(f"Unknown empty order policy: {self.empty_order_policy}")

    def rollup_items(self, items: pl.DataFrame) -> pl.DataFrame:
        """Roll sanitized items up to one row per order_id"""
        return items.group_by("order_id").agg(
            null_safe_sum("price").alias("items_value"),
            null_safe_sum("freight_value").alias("freight_value"),
            pl.len().cast(pl.Int64).alias("item_count"),
        )

    def _apply_empty_order_policy(self, df: pl.DataFrame) -> pl.DataFrame:
        if self.empty_order_policy == "null":
            return df
        no_items = pl.col(_HAS_ITEMS).is_null()
        return df.with_columns(
            pl.when(no_items).then(pl.lit(0.0)).otherwise(pl.col("items_value")).alias("items_value"),
            pl.when(no_items).then(pl.lit(0.0)).otherwise(pl.col("freight_value")).alias("freight_value"),
            pl.when(no_items).then(pl.lit(0, dtype=pl.Int64)).otherwise(pl.col("item_count")).alias("item_count"),
        )

    def _derive_kpis(self, df: pl.DataFrame) -> pl.DataFrame:
        try:
            return df.with_columns(
                day_difference("delivered_date", "purchase_date").alias("days_to_deliver"),
                day_difference("delivered_date", "estimated_date").alias("delay_days"),
                (pl.col("items_value") + pl.col("freight_value")).alias("gross_order_value"),
            )
        except pl.exceptions.PolarsError as e:
            raise ComputationError(f"FactOrder: KPI derivation failed: {e}") from e

    def build(
        self,
        orders: pl.DataFrame,
        customers: pl.DataFrame,
        items: pl.DataFrame,
    ) -> pl.DataFrame:
        """
        Build the fact table.

        Args:
            orders: NormalizedOrder rows
            customers: CanonicalCustomer rows
            items: SanitizedItem rows

        Returns:
            FactOrder rows in the order of the input orders

        Raises:
            SchemaError: Missing columns or incompatible join keys
            IntegrityError: Duplicate order_id, customer_id or item key
            ComputationError: KPI derivation failed
        """
        validate_entity(orders, NORMALIZED_ORDER)
        validate_entity(customers, CANONICAL_CUSTOMER)
        validate_entity(items, SANITIZED_ITEM)

        try:
            orders = orders.with_columns([pl.col(c).cast(pl.Date) for c in KPI_DATE_COLUMNS])
        except pl.exceptions.PolarsError as e:
            raise SchemaError(f"NormalizedOrder: date columns are not dates: {e}") from e

        orders, dimension = _align_keys(
            orders, customers.select(DIMENSION_COLUMNS), "customer_id", "CanonicalCustomer"
        )
        orders, rollup = _align_keys(
            orders,
            self.rollup_items(items).with_columns(pl.lit(True).alias(_HAS_ITEMS)),
            "order_id",
            "ItemRollup",
        )

        fact = (
            orders.with_row_index(_ROW)
            .join(dimension, on="customer_id", how="left")
            .join(rollup, on="order_id", how="left")
            .sort(_ROW)
        )

        if fact.height != orders.height:
            raise IntegrityError(
                "FactOrder: join changed order cardinality",
                {"orders": orders.height, "facts": fact.height},
            )

        fact = self._apply_empty_order_policy(fact)
        fact = self._derive_kpis(fact).select(FACT_ORDER_COLUMNS)

        logger.info(
            "Fact table built",
            rows=fact.height,
            without_items=fact["item_count"].null_count(),
            empty_order_policy=self.empty_order_policy,
        )
        return fact


def build_fact_orders(
    orders: pl.DataFrame,
    customers: pl.DataFrame,
    items: pl.DataFrame,
    empty_order_policy: Optional[EmptyOrderPolicy] = None,
) -> pl.DataFrame:
    """Convenience function to build the fact table."""
    return FactBuilder(empty_order_policy).build(orders, customers, items)
