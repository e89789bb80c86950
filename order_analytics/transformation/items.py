"""
Item Sanitization

Clamps line-item money fields to a non-negative floor.
"""

import polars as pl
import structlog

from order_analytics.errors import SchemaError
from order_analytics.quality.validators import validate_entity
from order_analytics.schemas import RAW_ITEM, SANITIZED_ITEM_COLUMNS

logger = structlog.get_logger(__name__)

MONEY_COLUMNS = ["price", "freight_value"]


class ItemSanitizer:
    """
    Sanitizes raw order items.

    Negative price/freight values (refund-adjustment artifacts upstream)
    become zero; there is no upper bound and no row is dropped. NaN values
    become null, so a sanitized amount is always null or >= 0. A duplicated
    (order_id, order_item_id) pair is an IntegrityError, since rolling it up
    would overstate item_count.

    Example:
        sanitizer = ItemSanitizer()
        items = sanitizer.sanitize(raw_items)
    """

    def sanitize(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Sanitize raw items.

        Args:
            df: RawItem rows

        Returns:
            SanitizedItem rows in input order

        Raises:
            SchemaError: Missing column or null key
            IntegrityError: Duplicate composite key
        """
        validate_entity(df, RAW_ITEM)

        for column in MONEY_COLUMNS:
            dtype = df.schema[column]
            if not (dtype.is_numeric() or dtype == pl.Null):
                raise SchemaError(
                    f"RawItem: column '{column}' must be numeric, got {dtype}",
                    {"column": column, "dtype": str(dtype)},
                )

        projected = df.select(SANITIZED_ITEM_COLUMNS).with_columns(
            [pl.col(c).cast(pl.Float64) for c in MONEY_COLUMNS]
        )
        nan_values = sum(int(projected[c].is_nan().sum()) for c in MONEY_COLUMNS)
        # NaN is an unknown amount: null, so rollups skip it like a SQL NULL
        projected = projected.with_columns([pl.col(c).fill_nan(None) for c in MONEY_COLUMNS])
        values_clamped = sum(int((projected[c] < 0).sum()) for c in MONEY_COLUMNS)

        sanitized = projected.with_columns(
            [pl.col(c).clip(lower_bound=0.0) for c in MONEY_COLUMNS]
        )

        logger.info(
            "Items sanitized",
            rows=sanitized.height,
            values_clamped=values_clamped,
            nan_values_nulled=nan_values,
        )
        return sanitized


def sanitize_items(df: pl.DataFrame) -> pl.DataFrame:
    """Convenience function to sanitize raw items."""
    return ItemSanitizer().sanitize(df)
