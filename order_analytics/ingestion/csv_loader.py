"""
Raw CSV Loader

Loads the raw Olist CSV exports into the Tabular Store under the table names
the pipeline reads from. Raw tables get no key hints: duplicates there are
for the pipeline stages to detect.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union
import hashlib

import polars as pl
import structlog
from pydantic import BaseModel

from order_analytics.database.store import TableStore
from order_analytics.schemas import RAW_CUSTOMERS_TABLE, RAW_ITEMS_TABLE, RAW_ORDERS_TABLE

logger = structlog.get_logger(__name__)

# Olist export file name -> raw table name
OLIST_FILES: Dict[str, str] = {
    "olist_customers_dataset.csv": RAW_CUSTOMERS_TABLE,
    "olist_orders_dataset.csv": RAW_ORDERS_TABLE,
    "olist_order_items_dataset.csv": RAW_ITEMS_TABLE,
}

NULL_VALUES = ["", "NULL", "null", "None", "NA", "N/A"]

# Identifiers are hex strings; keep zip prefixes as text so leading zeros survive
STRING_COLUMNS = {
    "customer_id": pl.String,
    "customer_unique_id": pl.String,
    "customer_zip_code_prefix": pl.String,
    "order_id": pl.String,
}


class LoadResult(BaseModel):
    """Result of loading one CSV file"""
    file_path: str
    target_table: str
    rows_loaded: int = 0
    load_duration_seconds: float = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    file_hash: Optional[str] = None


def compute_file_hash(file_path: Path) -> str:
    """Compute MD5 hash of file for audit"""
    hash_md5 = hashlib.md5()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(4096), b""):
            hash_md5.update(chunk)
    return hash_md5.hexdigest()


def read_csv(file_path: Union[str, Path]) -> pl.DataFrame:
    """Read a raw CSV export with Polars"""
    header = pl.read_csv(file_path, n_rows=0).columns
    return pl.read_csv(
        file_path,
        null_values=NULL_VALUES,
        try_parse_dates=True,
        schema_overrides={c: t for c, t in STRING_COLUMNS.items() if c in header},
    )


def load_csv_table(store: TableStore, file_path: Union[str, Path], target_table: str) -> LoadResult:
    """
    Replace one raw table with the contents of a CSV file.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    file_path = Path(file_path)
    started_at = datetime.utcnow()

    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    df = read_csv(file_path)
    store.write(target_table, df)

    completed_at = datetime.utcnow()
    result = LoadResult(
        file_path=str(file_path),
        target_table=target_table,
        rows_loaded=df.height,
        load_duration_seconds=(completed_at - started_at).total_seconds(),
        started_at=started_at,
        completed_at=completed_at,
        file_hash=compute_file_hash(file_path),
    )
    logger.info("Raw table loaded", file=str(file_path), table=target_table, rows=df.height)
    return result


def load_olist_directory(store: TableStore, directory: Union[str, Path]) -> List[LoadResult]:
    """Load the three Olist exports found in directory"""
    directory = Path(directory)
    return [
        load_csv_table(store, directory / file_name, table_name)
        for file_name, table_name in OLIST_FILES.items()
    ]
