"""
Unit Tests - Tabular Store
"""
from datetime import date

import pytest
import polars as pl
from sqlalchemy import inspect
from sqlalchemy.dialects import mysql
from sqlalchemy.schema import CreateTable

from order_analytics.database.connection import build_engine
from order_analytics.database.store import KEY_STRING_LENGTH, MemoryTableStore, SQLTableStore
from order_analytics.errors import StoreError, TableNotFoundError


@pytest.fixture
def sample_df() -> pl.DataFrame:
    return pl.DataFrame({
        "order_id": ["o1", "o2", "o3"],
        "purchase_date": [date(2018, 1, 5), None, date(2018, 2, 3)],
        "item_count": [2, None, 1],
        "gross_order_value": [112.0, None, 30.0],
        "customer_state": ["SP", None, "PR"],
    }, schema_overrides={"item_count": pl.Int64})


@pytest.fixture
def empty_sql_store():
    engine = build_engine("sqlite:///:memory:", echo=False)
    yield SQLTableStore(engine)
    engine.dispose()


class TestMemoryTableStore:
    """Tests for MemoryTableStore"""

    def test_write_then_read(self, sample_df):
        """Test a written table reads back unchanged"""
        store = MemoryTableStore()
        store.write("fact_orders_min", sample_df, primary_key=["order_id"])

        assert store.read("fact_orders_min").equals(sample_df)
        assert store.table_names == ["fact_orders_min"]

    def test_write_replaces(self, sample_df):
        """Test a second write fully replaces the table"""
        store = MemoryTableStore()
        store.write("t", sample_df)
        store.write("t", sample_df.head(1).select("order_id"))

        assert store.read("t").columns == ["order_id"]
        assert store.read("t").height == 1

    def test_missing_table(self):
        """Test reading an unknown table"""
        with pytest.raises(TableNotFoundError) as exc_info:
            MemoryTableStore().read("nope")

        assert exc_info.value.table_name == "nope"

    def test_primary_key_must_exist(self, sample_df):
        """Test a key hint naming an absent column is rejected"""
        with pytest.raises(StoreError):
            MemoryTableStore().write("t", sample_df, primary_key=["month_start"])

    def test_query_only_serves_views(self, sample_df):
        """Test query refuses non-view tables"""
        store = MemoryTableStore({"fact_orders_min": sample_df})

        with pytest.raises(TableNotFoundError):
            store.query("fact_orders_min")

    def test_query_unbuilt_view(self):
        """Test query of a view the pipeline has not written yet"""
        with pytest.raises(TableNotFoundError):
            MemoryTableStore().query("v_monthly_kpis")


class TestSQLTableStore:
    """Tests for SQLTableStore over SQLite"""

    def test_write_then_read(self, empty_sql_store, sample_df):
        """Test round trip keeps values, nulls and types"""
        empty_sql_store.write("fact_orders_min", sample_df, primary_key=["order_id"])

        result = empty_sql_store.read("fact_orders_min")

        assert result.columns == sample_df.columns
        assert result.schema["purchase_date"] == pl.Date
        assert result.schema["item_count"] == pl.Int64
        assert result.schema["gross_order_value"] == pl.Float64
        assert result.sort("order_id").rows() == sample_df.rows()

    def test_write_replaces(self, empty_sql_store, sample_df):
        """Test a second write drops the previous rows and columns"""
        empty_sql_store.write("t", sample_df)
        empty_sql_store.write("t", sample_df.head(1).select("order_id", "customer_state"))

        result = empty_sql_store.read("t")

        assert result.columns == ["order_id", "customer_state"]
        assert result.height == 1

    def test_empty_table(self, empty_sql_store, sample_df):
        """Test an empty frame creates an empty table"""
        empty_sql_store.write("t", sample_df.clear())

        result = empty_sql_store.read("t")

        assert result.height == 0
        assert result.columns == sample_df.columns

    def test_key_and_index_hints(self, empty_sql_store, sample_df):
        """Test primary key and secondary indexes are declared"""
        empty_sql_store.write(
            "fact_orders_min",
            sample_df,
            primary_key=["order_id"],
            indexes=[["purchase_date"], ["customer_state"]],
        )

        inspector = inspect(empty_sql_store.engine)
        assert inspector.get_pk_constraint("fact_orders_min")["constrained_columns"] == ["order_id"]
        index_names = {i["name"] for i in inspector.get_indexes("fact_orders_min")}
        assert index_names == {
            "idx_fact_orders_min_purchase_date",
            "idx_fact_orders_min_customer_state",
        }

    def test_duplicate_primary_key_raises_store_error(self, empty_sql_store, sample_df):
        """Test the engine enforces the key hint"""
        duplicated = pl.concat([sample_df, sample_df.head(1)])

        with pytest.raises(StoreError):
            empty_sql_store.write("t", duplicated, primary_key=["order_id"])

    def test_missing_table(self, empty_sql_store):
        """Test reading an unknown table"""
        assert not empty_sql_store.has_table("nope")
        with pytest.raises(TableNotFoundError):
            empty_sql_store.read("nope")

    def test_health(self, empty_sql_store):
        """Test health check on a live engine"""
        assert empty_sql_store.check_health()["status"] == "healthy"

    def test_file_database_directory_created(self, tmp_path, sample_df):
        """Test a file URL gets its directory created"""
        db_path = tmp_path / "nested" / "analytics.db"
        store = SQLTableStore.from_url(f"sqlite:///{db_path}")

        store.write("t", sample_df)
        store.engine.dispose()

        assert db_path.exists()

    def test_key_columns_have_bounded_length(self, empty_sql_store, sample_df):
        """Test key and index text columns are VARCHAR with a length"""
        empty_sql_store.write(
            "fact_orders_min",
            sample_df,
            primary_key=["order_id"],
            indexes=[["customer_state"]],
        )

        column_types = {
            c["name"]: c["type"] for c in inspect(empty_sql_store.engine).get_columns("fact_orders_min")
        }
        assert column_types["order_id"].length == KEY_STRING_LENGTH
        assert column_types["customer_state"].length == KEY_STRING_LENGTH

    def test_mysql_ddl_compiles(self, empty_sql_store, sample_df):
        """Test the generated table is valid DDL for MySQL"""
        table = empty_sql_store._build_table(
            "customer_cleaned",
            sample_df,
            primary_key=["order_id"],
            indexes=[["customer_state"]],
        )

        ddl = str(CreateTable(table).compile(dialect=mysql.dialect()))

        assert f"order_id VARCHAR({KEY_STRING_LENGTH}) NOT NULL" in ddl
        assert f"customer_state VARCHAR({KEY_STRING_LENGTH})" in ddl
