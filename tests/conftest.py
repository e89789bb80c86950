"""
Test Suite Configuration
"""
from datetime import date

import pytest
import polars as pl

from order_analytics.config import Settings
from order_analytics.database.connection import build_engine
from order_analytics.database.store import MemoryTableStore, SQLTableStore
from order_analytics.schemas import RAW_CUSTOMERS_TABLE, RAW_ITEMS_TABLE, RAW_ORDERS_TABLE

REFERENCE_DATE = date(2018, 3, 1)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def reference_date() -> date:
    """Fixed current date for the recent-orders window"""
    return REFERENCE_DATE


@pytest.fixture
def raw_customers_df() -> pl.DataFrame:
    """Raw customers: c1 and c2 are the same person"""
    return pl.DataFrame({
        "customer_id": ["c1", "c2", "c3", "c4"],
        "customer_unique_id": ["u1", "u1", "u2", "u3"],
        "customer_zip_code_prefix": ["01001", "13010", "20010", "80010"],
        "customer_city": ["sao paulo", "campinas", "rio de janeiro", "curitiba"],
        "customer_state": ["SP", "SP", "RJ", "PR"],
    })


@pytest.fixture
def raw_orders_df() -> pl.DataFrame:
    """
    Raw orders with string timestamps.

    o3 is not delivered yet, o5 has an unknown customer and no items.
    """
    return pl.DataFrame({
        "order_id": ["o1", "o2", "o3", "o4", "o5"],
        "customer_id": ["c1", "c3", "c4", "c1", "c9"],
        "order_status": ["delivered", "delivered", "shipped", "delivered", "canceled"],
        "order_purchase_timestamp": [
            "2018-01-05 10:00:00",
            "2018-01-20 09:30:00",
            "2018-02-03 18:45:00",
            "2018-02-10 08:00:00",
            "2018-02-12 23:59:59",
        ],
        "order_approved_at": [
            "2018-01-05 11:00:00",
            "2018-01-20 10:00:00",
            "2018-02-04 09:00:00",
            "2018-02-10 08:30:00",
            None,
        ],
        "order_delivered_carrier_date": [
            "2018-01-06 08:00:00",
            "2018-01-22 14:00:00",
            "2018-02-06 10:00:00",
            "2018-02-11 07:00:00",
            None,
        ],
        "order_delivered_customer_date": [
            "2018-01-10 15:00:00",
            "2018-02-05 12:00:00",
            None,
            "2018-02-15 16:20:00",
            None,
        ],
        "order_estimated_delivery_date": [
            "2018-01-20 00:00:00",
            "2018-02-01 00:00:00",
            "2018-02-25 00:00:00",
            "2018-02-20 00:00:00",
            "2018-03-01 00:00:00",
        ],
    })


@pytest.fixture
def raw_items_df() -> pl.DataFrame:
    """Raw items with one negative price and one negative freight"""
    return pl.DataFrame({
        "order_id": ["o1", "o1", "o2", "o3", "o4", "o4"],
        "order_item_id": [1, 2, 1, 1, 1, 2],
        "product_id": ["p1", "p2", "p1", "p3", "p4", "p4"],
        "seller_id": ["s1", "s1", "s2", "s3", "s1", "s1"],
        "price": [100.0, -5.0, 50.0, 30.0, 20.0, 20.0],
        "freight_value": [10.0, 2.0, 5.0, -1.0, 4.0, 4.0],
    })


@pytest.fixture
def raw_tables(raw_customers_df, raw_orders_df, raw_items_df) -> dict:
    """Raw tables keyed by the names the pipeline reads"""
    return {
        RAW_CUSTOMERS_TABLE: raw_customers_df,
        RAW_ORDERS_TABLE: raw_orders_df,
        RAW_ITEMS_TABLE: raw_items_df,
    }


@pytest.fixture
def memory_store(raw_tables) -> MemoryTableStore:
    """In-memory store seeded with the raw tables"""
    return MemoryTableStore(raw_tables)


@pytest.fixture
def sql_store(raw_tables):
    """In-memory SQLite store seeded with the raw tables"""
    engine = build_engine("sqlite:///:memory:", echo=False)
    store = SQLTableStore(engine)
    for name, df in raw_tables.items():
        store.write(name, df)

    yield store

    engine.dispose()


@pytest.fixture
def fact_orders_df() -> pl.DataFrame:
    """Hand-built fact rows for aggregate tests"""
    return pl.DataFrame(
        {
            "order_id": ["o1", "o2", "o3", "o4", "o5"],
            "customer_id": ["c1", "c3", "c4", "c1", "c9"],
            "customer_unique_id": ["u1", "u2", "u3", "u1", None],
            "customer_city": ["sao paulo", "rio de janeiro", "curitiba", "sao paulo", None],
            "customer_state": ["SP", "RJ", "PR", "SP", None],
            "order_status": ["delivered", "delivered", "shipped", "delivered", "canceled"],
            "purchase_date": [
                date(2018, 1, 5), date(2018, 1, 20), date(2018, 2, 3), date(2018, 2, 10), date(2018, 2, 12),
            ],
            "delivered_date": [date(2018, 1, 10), date(2018, 2, 5), None, date(2018, 2, 15), None],
            "estimated_date": [
                date(2018, 1, 20), date(2018, 2, 1), date(2018, 2, 25), date(2018, 2, 20), date(2018, 3, 1),
            ],
            "days_to_deliver": [5, 16, None, 5, None],
            "delay_days": [-10, 4, None, -5, None],
            "items_value": [100.0, 50.0, 30.0, 40.0, None],
            "freight_value": [12.0, 5.0, 0.0, 8.0, None],
            "gross_order_value": [112.0, 55.0, 30.0, 48.0, None],
            "item_count": [2, 1, 1, 2, None],
        },
        schema_overrides={
            "days_to_deliver": pl.Int64,
            "delay_days": pl.Int64,
            "item_count": pl.Int64,
        },
    )
