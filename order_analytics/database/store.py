"""
Tabular Store

The pipeline reads its raw inputs from, and writes every derived table into,
a Tabular Store. Writes replace the whole table (drop-and-recreate); primary
key and index declarations are hints for the backing engine.

Implementations:
- MemoryTableStore: dict of polars DataFrames (tests, notebooks)
- SQLTableStore: any SQLAlchemy-supported database
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import polars as pl
import structlog
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Engine,
    Float,
    Index,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    inspect,
    select,
)
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from order_analytics.errors import StoreError, TableNotFoundError
from order_analytics.schemas import VIEW_NAMES
from .connection import build_engine, check_database_health

logger = structlog.get_logger(__name__)

Columns = Sequence[str]


class TableStore(ABC):
    """Read/replace access to named tables plus read access to the views"""

    @abstractmethod
    def read(self, table_name: str) -> pl.DataFrame:
        """Read a whole table"""

    @abstractmethod
    def write(
        self,
        table_name: str,
        df: pl.DataFrame,
        primary_key: Columns = (),
        indexes: Sequence[Columns] = (),
    ) -> None:
        """Atomically replace a table's contents"""

    @abstractmethod
    def has_table(self, table_name: str) -> bool:
        """Whether the table exists"""

    def query(self, view_name: str) -> pl.DataFrame:
        """Read one of the aggregate views built by the last pipeline run"""
        if view_name not in VIEW_NAMES:
            raise TableNotFoundError(view_name)
        return self.read(view_name)


class MemoryTableStore(TableStore):
    """
    In-process store keeping one DataFrame per table.

    Example:
        store = MemoryTableStore({"order_dataset": raw_orders})
        store.read("order_dataset")
    """

    def __init__(self, tables: Optional[Dict[str, pl.DataFrame]] = None):
        self._tables: Dict[str, pl.DataFrame] = dict(tables or {})
        self.hints: Dict[str, Tuple[Tuple[str, ...], Tuple[Tuple[str, ...], ...]]] = {}

    def read(self, table_name: str) -> pl.DataFrame:
        try:
            return self._tables[table_name].clone()
        except KeyError:
            raise TableNotFoundError(table_name) from None

    def write(
        self,
        table_name: str,
        df: pl.DataFrame,
        primary_key: Columns = (),
        indexes: Sequence[Columns] = (),
    ) -> None:
        missing = [c for c in primary_key if c not in df.columns]
        if missing:
            raise StoreError(
                f"Primary key columns {missing} not in table '{table_name}'",
                {"table": table_name, "missing_columns": missing},
            )
        self._tables[table_name] = df.clone()
        self.hints[table_name] = (tuple(primary_key), tuple(tuple(i) for i in indexes))
        logger.debug("Table replaced", table=table_name, rows=df.height)

    def has_table(self, table_name: str) -> bool:
        return table_name in self._tables

    @property
    def table_names(self) -> List[str]:
        return sorted(self._tables)


# Key and index columns need a bounded VARCHAR on engines such as MySQL;
# other text columns map to TEXT
KEY_STRING_LENGTH = 255


# polars dtype -> SQLAlchemy column type
def _sql_type(dtype: pl.DataType, keyed: bool = False) -> Any:
    if dtype == pl.Boolean:
        return Boolean()
    if dtype.is_integer():
        return BigInteger()
    if dtype.is_float() or dtype == pl.Decimal:
        return Float()
    if dtype == pl.Date:
        return Date()
    if dtype == pl.Datetime:
        return DateTime()
    return String(KEY_STRING_LENGTH) if keyed else Text()


# python type reported by a reflected column -> polars dtype
_POLARS_TYPES = {
    bool: pl.Boolean,
    int: pl.Int64,
    float: pl.Float64,
    Decimal: pl.Float64,
    str: pl.String,
    date: pl.Date,
    datetime: pl.Datetime,
}


def _polars_type(column: Column) -> Optional[pl.DataType]:
    try:
        return _POLARS_TYPES.get(column.type.python_type)
    except NotImplementedError:
        return None


class SQLTableStore(TableStore):
    """
    Store backed by a SQL database through SQLAlchemy.

    Each write drops and recreates the table inside a single transaction,
    declaring the primary key and secondary indexes from the hints.

    Example:
        store = SQLTableStore.from_url("sqlite:///./data/olist.db")
        store.write("fact_orders_min", facts, primary_key=["order_id"])
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "SQLTableStore":
        return cls(build_engine(url))

    def _build_table(
        self,
        table_name: str,
        df: pl.DataFrame,
        primary_key: Columns,
        indexes: Sequence[Columns],
    ) -> Table:
        metadata = MetaData()
        keyed = set(primary_key).union(*indexes)
        columns = [
            Column(name, _sql_type(dtype, name in keyed), nullable=name not in primary_key)
            for name, dtype in df.schema.items()
        ]
        constraints: List[Any] = []
        if primary_key:
            constraints.append(PrimaryKeyConstraint(*primary_key, name=f"pk_{table_name}"))
        for index_columns in indexes:
            constraints.append(Index(f"idx_{table_name}_{'_'.join(index_columns)}", *index_columns))
        return Table(table_name, metadata, *columns, *constraints)

    def read(self, table_name: str) -> pl.DataFrame:
        try:
            with self.engine.connect() as conn:
                table = Table(table_name, MetaData(), autoload_with=conn)
                rows = conn.execute(select(table)).all()
        except NoSuchTableError:
            raise TableNotFoundError(table_name) from None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read table '{table_name}': {e}", {"table": table_name}) from e

        schema = {column.name: _polars_type(column) for column in table.columns}
        df = pl.DataFrame(
            [tuple(row) for row in rows],
            schema=list(schema),
            orient="row",
            infer_schema_length=None,
        )
        typed = {name: dtype for name, dtype in schema.items() if dtype is not None}
        df = df.with_columns([pl.col(name).cast(dtype) for name, dtype in typed.items()])

        logger.debug("Table read", table=table_name, rows=df.height)
        return df

    def write(
        self,
        table_name: str,
        df: pl.DataFrame,
        primary_key: Columns = (),
        indexes: Sequence[Columns] = (),
    ) -> None:
        missing = [c for c in primary_key if c not in df.columns]
        if missing:
            raise StoreError(
                f"Primary key columns {missing} not in table '{table_name}'",
                {"table": table_name, "missing_columns": missing},
            )

        table = self._build_table(table_name, df, primary_key, indexes)
        rows = df.to_dicts()

        try:
            with self.engine.begin() as conn:
                table.drop(conn, checkfirst=True)
                table.create(conn)
                if rows:
                    conn.execute(table.insert(), rows)
        except SQLAlchemyError as e:
            logger.error("Table write failed, rolled back", table=table_name, error=str(e))
            raise StoreError(f"Failed to write table '{table_name}': {e}", {"table": table_name}) from e

        logger.info("Table replaced", table=table_name, rows=len(rows))

    def has_table(self, table_name: str) -> bool:
        return inspect(self.engine).has_table(table_name)

    def check_health(self) -> dict:
        return check_database_health(self.engine)
