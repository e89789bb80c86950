"""
Customer Deduplication

Collapses raw customer rows that share a customer_unique_id into one
canonical row: the one with the smallest customer_id in the group.
"""

import polars as pl
import structlog

from order_analytics.quality.validators import validate_entity
from order_analytics.schemas import RAW_CUSTOMER

logger = structlog.get_logger(__name__)


class CustomerDeduper:
    """
    Builds the customer dimension from raw customer rows.

    Rows with a null customer_unique_id are kept as singleton groups keyed by
    their own customer_id. All non-key columns are carried over from the
    selected row.

    Example:
        deduper = CustomerDeduper()
        canonical = deduper.dedupe(raw_customers)
    """

    def dedupe(self, df: pl.DataFrame) -> pl.DataFrame:
        """
        Deduplicate raw customers.

        Args:
            df: RawCustomer rows

        Returns:
            CanonicalCustomer rows, one per customer_unique_id, ordered by customer_id

        Raises:
            SchemaError: If a required column is missing or customer_id is null
            IntegrityError: If two raw rows share a customer_id
        """
        validate_entity(df, RAW_CUSTOMER)

        # Sorting on the native dtype gives numeric order for numeric ids
        # and lexicographic order for string ids
        ordered = df.sort("customer_id")

        keyed = ordered.filter(pl.col("customer_unique_id").is_not_null())
        orphans = ordered.filter(pl.col("customer_unique_id").is_null())

        canonical = keyed.unique(subset=["customer_unique_id"], keep="first", maintain_order=True)
        if orphans.height:
            logger.warning("Customers without unique id kept as singletons", rows=orphans.height)
            canonical = pl.concat([canonical, orphans]).sort("customer_id")

        logger.info(
            "Customers deduplicated",
            input_rows=df.height,
            output_rows=canonical.height,
            duplicates_removed=df.height - canonical.height,
        )
        return canonical


def dedupe_customers(df: pl.DataFrame) -> pl.DataFrame:
    """Convenience function to deduplicate raw customers."""
    return CustomerDeduper().dedupe(df)
