"""
Entity Schemas

Column contracts for every entity the pipeline reads or produces, plus the
table names and key/index hints handed to the Tabular Store.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class EntitySchema:
    """Required columns, non-nullable columns and unique key of an entity"""
    name: str
    required: Tuple[str, ...]
    non_null: Tuple[str, ...] = ()
    key: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TableSpec:
    """Output table name with its primary key and secondary index hints"""
    name: str
    primary_key: Tuple[str, ...] = ()
    indexes: Tuple[Tuple[str, ...], ...] = field(default_factory=tuple)


# =============================================================================
# RAW INPUTS
# =============================================================================

RAW_CUSTOMERS_TABLE = "order_customer_dataset"
RAW_ORDERS_TABLE = "order_dataset"
RAW_ITEMS_TABLE = "order_items_dataset"

RAW_CUSTOMER = EntitySchema(
    name="RawCustomer",
    required=("customer_id", "customer_unique_id", "customer_city", "customer_state"),
    non_null=("customer_id",),
    key=("customer_id",),
)

# Source timestamp column -> normalized date column
ORDER_DATE_COLUMNS: Dict[str, str] = {
    "order_purchase_timestamp": "purchase_date",
    "order_approved_at": "approved_date",
    "order_delivered_carrier_date": "delivered_carrier_date",
    "order_delivered_customer_date": "delivered_date",
    "order_estimated_delivery_date": "estimated_date",
}

RAW_ORDER = EntitySchema(
    name="RawOrder",
    required=("order_id", "customer_id", "order_status", *ORDER_DATE_COLUMNS),
    non_null=("order_id",),
    key=("order_id",),
)

RAW_ITEM = EntitySchema(
    name="RawItem",
    required=("order_id", "order_item_id", "price", "freight_value"),
    non_null=("order_id", "order_item_id"),
    key=("order_id", "order_item_id"),
)

# =============================================================================
# DERIVED ENTITIES
# =============================================================================

CANONICAL_CUSTOMER = EntitySchema(
    name="CanonicalCustomer",
    required=("customer_id", "customer_unique_id", "customer_city", "customer_state"),
    non_null=("customer_id",),
    key=("customer_id",),
)

NORMALIZED_ORDER = EntitySchema(
    name="NormalizedOrder",
    required=("order_id", "customer_id", "order_status", *ORDER_DATE_COLUMNS.values()),
    non_null=("order_id",),
    key=("order_id",),
)

SANITIZED_ITEM = EntitySchema(
    name="SanitizedItem",
    required=RAW_ITEM.required,
    non_null=RAW_ITEM.non_null,
    key=RAW_ITEM.key,
)

NORMALIZED_ORDER_COLUMNS: List[str] = list(NORMALIZED_ORDER.required)
SANITIZED_ITEM_COLUMNS: List[str] = list(SANITIZED_ITEM.required)

FACT_ORDER_COLUMNS: List[str] = [
    "order_id",
    "customer_id",
    "customer_unique_id",
    "customer_city",
    "customer_state",
    "order_status",
    "purchase_date",
    "delivered_date",
    "estimated_date",
    "days_to_deliver",
    "delay_days",
    "items_value",
    "freight_value",
    "gross_order_value",
    "item_count",
]

FACT_ORDER = EntitySchema(
    name="FactOrder",
    required=tuple(FACT_ORDER_COLUMNS),
    non_null=("order_id",),
    key=("order_id",),
)


# =============================================================================
# OUTPUT TABLES
# =============================================================================

CUSTOMER_CLEANED = TableSpec(
    name="customer_cleaned",
    primary_key=("customer_id",),
    indexes=(("customer_unique_id",), ("customer_state",), ("customer_city",)),
)

ORDER_CLEANED = TableSpec(
    name="order_cleaned",
    primary_key=("order_id",),
    indexes=(("customer_id",), ("purchase_date",)),
)

ORDER_ITEM_CLEANED = TableSpec(
    name="order_item_cleaned",
    primary_key=("order_id", "order_item_id"),
    indexes=(("order_id",),),
)

FACT_ORDERS = TableSpec(
    name="fact_orders_min",
    primary_key=("order_id",),
    indexes=(("purchase_date",), ("customer_state",)),
)

MONTHLY_KPIS_VIEW = TableSpec(name="v_monthly_kpis", primary_key=("month_start",))

TOP_STATE_BY_MONTH_VIEW = TableSpec(name="v_top_state_by_month", primary_key=("month_start",))

# Null state/city is a valid group, so no primary key here
CITY_REVENUE_VIEW = TableSpec(
    name="v_city_revenue",
    indexes=(("customer_state", "customer_city"),),
)

RECENT_ORDERS_VIEW = TableSpec(
    name="v_recent_orders",
    primary_key=("order_id",),
    indexes=(("purchase_date",),),
)

VIEW_NAMES: Tuple[str, ...] = (
    MONTHLY_KPIS_VIEW.name,
    TOP_STATE_BY_MONTH_VIEW.name,
    CITY_REVENUE_VIEW.name,
    RECENT_ORDERS_VIEW.name,
)
