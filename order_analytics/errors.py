"""Pipeline errors for Order Analytics."""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize pipeline error.

        Args:
            message: Error message
            details: Structured context (table, column, offending keys)
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SchemaError(PipelineError):
    """Raised when an input row is missing a required field or has the wrong shape."""


class IntegrityError(PipelineError):
    """Raised when a uniqueness or key invariant is violated."""


class ComputationError(PipelineError):
    """Raised when a derived value cannot be computed from its inputs."""


class StoreError(PipelineError):
    """Base exception for Tabular Store failures."""


class TableNotFoundError(StoreError):
    """Raised when a table or view does not exist in the store."""

    def __init__(self, table_name: str) -> None:
        super().__init__(f"Table '{table_name}' not found", {"table": table_name})
        self.table_name = table_name
