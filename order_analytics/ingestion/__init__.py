"""
Data Ingestion Module
"""
from .csv_loader import LoadResult, load_csv_table, load_olist_directory

__all__ = [
    "LoadResult",
    "load_csv_table",
    "load_olist_directory",
]
