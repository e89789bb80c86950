"""
Unit Tests - Customer Deduplication
"""
import pytest
import polars as pl
from polars.testing import assert_frame_equal

from order_analytics.errors import IntegrityError, SchemaError
from order_analytics.transformation.customers import CustomerDeduper, dedupe_customers


class TestCustomerDeduper:
    """Tests for CustomerDeduper"""

    def test_keeps_smallest_customer_id_per_person(self, raw_customers_df):
        """Test that c1 wins over c2 for u1"""
        result = CustomerDeduper().dedupe(raw_customers_df)

        assert result["customer_id"].to_list() == ["c1", "c3", "c4"]
        assert result["customer_unique_id"].to_list() == ["u1", "u2", "u3"]

    def test_carries_attributes_of_selected_row(self, raw_customers_df):
        """Test that city/state come from the winning row"""
        result = dedupe_customers(raw_customers_df)

        row = result.filter(pl.col("customer_unique_id") == "u1").row(0, named=True)
        assert row["customer_city"] == "sao paulo"
        assert row["customer_zip_code_prefix"] == "01001"

    def test_selection_ignores_input_order(self, raw_customers_df):
        """Test that shuffling the input does not change the winner"""
        reversed_df = raw_customers_df.reverse()

        result = dedupe_customers(reversed_df)

        assert result.filter(pl.col("customer_unique_id") == "u1")["customer_id"].item() == "c1"

    def test_one_row_per_unique_id(self):
        """Test dedupe of two ids for one person"""
        df = pl.DataFrame({
            "customer_id": ["id2", "id1"],
            "customer_unique_id": ["U", "U"],
            "customer_city": ["B", "A"],
            "customer_state": ["RJ", "SP"],
        })

        result = dedupe_customers(df)

        assert result.height == 1
        assert result.row(0, named=True) == {
            "customer_id": "id1",
            "customer_unique_id": "U",
            "customer_city": "A",
            "customer_state": "SP",
        }

    def test_null_unique_id_rows_are_singletons(self):
        """Test that customers without a unique id are not merged"""
        df = pl.DataFrame({
            "customer_id": ["a", "b", "c"],
            "customer_unique_id": [None, None, "u"],
            "customer_city": ["x", "y", "z"],
            "customer_state": ["SP", "SP", "SP"],
        })

        result = dedupe_customers(df)

        assert result["customer_id"].to_list() == ["a", "b", "c"]

    def test_empty_input(self):
        """Test that an empty table yields an empty table"""
        df = pl.DataFrame(schema={
            "customer_id": pl.String,
            "customer_unique_id": pl.String,
            "customer_city": pl.String,
            "customer_state": pl.String,
        })

        assert dedupe_customers(df).height == 0

    def test_missing_column_raises_schema_error(self, raw_customers_df):
        """Test that a missing required column aborts the stage"""
        with pytest.raises(SchemaError) as exc_info:
            dedupe_customers(raw_customers_df.drop("customer_state"))

        assert exc_info.value.details["missing_columns"] == ["customer_state"]

    def test_null_customer_id_raises_schema_error(self, raw_customers_df):
        """Test that a null identity column aborts the stage"""
        df = raw_customers_df.with_columns(
            pl.when(pl.col("customer_id") == "c3").then(None).otherwise(pl.col("customer_id")).alias("customer_id")
        )

        with pytest.raises(SchemaError):
            dedupe_customers(df)

    def test_duplicate_customer_id_raises_integrity_error(self):
        """Test one customer_id mapped to two people aborts the stage"""
        df = pl.DataFrame({
            "customer_id": ["c1", "c1"],
            "customer_unique_id": ["u1", "u2"],
            "customer_city": ["x", "y"],
            "customer_state": ["SP", "RJ"],
        })

        with pytest.raises(IntegrityError) as exc_info:
            dedupe_customers(df)

        assert exc_info.value.details["sample_keys"] == [("c1",)]

    def test_idempotent(self, raw_customers_df):
        """Test deduplicating canonical customers changes nothing"""
        once = dedupe_customers(raw_customers_df)

        assert_frame_equal(dedupe_customers(once), once)

    def test_numeric_ids_compare_numerically(self):
        """Test 2 beats 10 for integer customer ids"""
        df = pl.DataFrame({
            "customer_id": [10, 2],
            "customer_unique_id": ["U", "U"],
            "customer_city": ["B", "A"],
            "customer_state": ["RJ", "SP"],
        })

        result = dedupe_customers(df)

        assert result["customer_id"].to_list() == [2]
        assert result["customer_city"].item() == "A"

    def test_numeric_ids_pick_smallest(self):
        """Test ids 1 and 2 of one person keep id 1"""
        df = pl.DataFrame({
            "customer_id": [2, 1],
            "customer_unique_id": ["U", "U"],
            "customer_city": ["B", "A"],
            "customer_state": ["RJ", "SP"],
        })

        assert dedupe_customers(df).row(0, named=True) == {
            "customer_id": 1,
            "customer_unique_id": "U",
            "customer_city": "A",
            "customer_state": "SP",
        }
