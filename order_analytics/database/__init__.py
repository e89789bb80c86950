"""
Database Module
"""
from .connection import build_engine, check_database_health
from .store import TableStore, MemoryTableStore, SQLTableStore

__all__ = [
    "build_engine",
    "check_database_health",
    "TableStore",
    "MemoryTableStore",
    "SQLTableStore",
]
