"""
Order Normalization

Projects raw orders onto the normalized order shape and truncates the five
lifecycle timestamps to calendar dates.
"""

from typing import Optional

import polars as pl
import structlog

from order_analytics.config import get_settings
from order_analytics.errors import SchemaError
from order_analytics.quality.validators import validate_entity
from order_analytics.schemas import NORMALIZED_ORDER_COLUMNS, ORDER_DATE_COLUMNS, RAW_ORDER

logger = structlog.get_logger(__name__)

DATE_ONLY_FORMAT = "%Y-%m-%d"


class OrderNormalizer:
    """
    Date-normalizes raw orders.

    Every input row yields exactly one output row. A null timestamp stays a
    null date. String timestamps are parsed with the configured format (or
    as bare dates); anything unparseable is a SchemaError.

    Example:
        normalizer = OrderNormalizer()
        orders = normalizer.normalize(raw_orders)
    """

    def __init__(self, timestamp_format: Optional[str] = None):
        self.timestamp_format = timestamp_format or get_settings().pipeline.timestamp_format

    def _to_date(self, df: pl.DataFrame, column: str) -> pl.Expr:
        """Build the date-truncation expression for one source column"""
        dtype = df.schema[column]
        col = pl.col(column)

        if dtype == pl.Datetime:
            return col.dt.date()
        if dtype == pl.Date:
            return col
        if dtype == pl.Null:
            return col.cast(pl.Date)
        if dtype == pl.String:
            return pl.coalesce(
                col.str.strptime(pl.Datetime, self.timestamp_format, strict=False).dt.date(),
                col.str.strptime(pl.Date, DATE_ONLY_FORMAT, strict=False),
            )

        raise SchemaError(
            f"RawOrder: column '{column}' has unsupported type {dtype}",
            {"column": column, "dtype": str(dtype)},
        )

    def _check_parsed(self, df: pl.DataFrame, normalized: pl.DataFrame) -> None:
        """Fail if a non-null source timestamp produced a null date"""
        for source, target in ORDER_DATE_COLUMNS.items():
            lost = df[source].is_not_null() & normalized[target].is_null()
            if lost.any():
                bad_values = df.filter(lost)[source].head(3).to_list()
                raise SchemaError(
                    f"RawOrder: column '{source}' has {int(lost.sum())} unparseable timestamps",
                    {"column": source, "sample_values": bad_values, "format": self.timestamp_format},
                )

    def normalize(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Normalize raw orders.

        Args:
            df: RawOrder rows

        Returns:
            NormalizedOrder rows in input order

        Raises:
            SchemaError: Missing column, null order_id or unparseable timestamp
            IntegrityError: Duplicate order_id
        """
        validate_entity(df, RAW_ORDER)

        normalized = df.select(
            pl.col("order_id"),
            pl.col("customer_id"),
            pl.col("order_status"),
            *[self._to_date(df, source).alias(target) for source, target in ORDER_DATE_COLUMNS.items()],
        )
        self._check_parsed(df, normalized)

        logger.info(
            "Orders normalized",
            rows=normalized.height,
            undelivered=normalized["delivered_date"].null_count(),
        )
        return normalized.select(NORMALIZED_ORDER_COLUMNS)


def normalize_orders(df: pl.DataFrame, timestamp_format: Optional[str] = None) -> pl.DataFrame:
    """Convenience function to normalize raw orders."""
    return OrderNormalizer(timestamp_format).normalize(df)
