"""
Data Validation Module

Rule-based shape and key checks run by every pipeline stage before it
transforms its input.

Features:
- Required column checks
- Not-null checks on identity columns
- Single and composite key uniqueness checks
- Conversion of the first failing check into a pipeline error
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import polars as pl
import structlog

from order_analytics.errors import IntegrityError, PipelineError, SchemaError
from order_analytics.schemas import EntitySchema

logger = structlog.get_logger(__name__)


class CheckCategory(str, Enum):
    """Which invariant a check guards"""
    SCHEMA = "schema"  # Row shape: missing column, null identity
    INTEGRITY = "integrity"  # Key uniqueness


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    category: CheckCategory
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


_ERROR_TYPES = {
    CheckCategory.SCHEMA: SchemaError,
    CheckCategory.INTEGRITY: IntegrityError,
}


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    entity: str
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def first_failure(self) -> Optional[ValidationCheck]:
        """First failing check in registration order"""
        return next((c for c in self.checks if not c.passed), None)

    def raise_for_errors(self) -> None:
        """Raise the pipeline error matching the first failing check"""
        failure = self.first_failure
        if failure is None:
            return
        error_type = _ERROR_TYPES.get(failure.category, PipelineError)
        raise error_type(
            f"{self.entity}: {failure.message}",
            {"check": failure.name, **(failure.details or {})},
        )


class DataValidator:
    """
    Check suite for a single entity.

    Example:
        validator = DataValidator("RawItem")
        validator.add_required_columns_check(["order_id", "price"])
        validator.add_unique_check(["order_id", "order_item_id"])
        validator.validate(df).raise_for_errors()
    """

    def __init__(self, entity: str = "DataFrame"):
        self.entity = entity
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def add_required_columns_check(self, columns: Sequence[str]) -> "DataValidator":
        """Add check that every listed column is present"""
        columns = list(columns)

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = [c for c in columns if c not in df.columns]
            passed = not missing
            return ValidationCheck(
                name="required_columns",
                passed=passed,
                category=CheckCategory.SCHEMA,
                message=f"Missing required columns: {missing}" if not passed else "All required columns present",
                details={"missing_columns": missing},
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_not_null_check(self, column: str) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return ValidationCheck(
                    name=f"not_null_{column}",
                    passed=False,
                    category=CheckCategory.SCHEMA,
                    message=f"Column '{column}' not found",
                )

            null_count = df[column].null_count()
            passed = null_count == 0

            return ValidationCheck(
                name=f"not_null_{column}",
                passed=passed,
                category=CheckCategory.SCHEMA,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"column": column, "null_count": null_count},
                failed_rows=null_count,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_unique_check(self, columns: Sequence[str]) -> "DataValidator":
        """Add check for uniqueness of a (possibly composite) key"""
        columns = list(columns)
        name = f"unique_{'_'.join(columns)}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = [c for c in columns if c not in df.columns]
            if missing:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    category=CheckCategory.SCHEMA,
                    message=f"Key columns not found: {missing}",
                )

            duplicated = df.select(columns).is_duplicated()
            duplicate_count = int(duplicated.sum())
            passed = duplicate_count == 0
            details: Dict[str, Any] = {"key": columns, "duplicate_count": duplicate_count}
            if not passed:
                details["sample_keys"] = df.select(columns).filter(duplicated).unique(maintain_order=True).head(5).rows()

            return ValidationCheck(
                name=name,
                passed=passed,
                category=CheckCategory.INTEGRITY,
                message=f"Key {columns} has {duplicate_count} duplicated rows" if not passed else f"Key {columns} is unique",
                details=details,
                failed_rows=duplicate_count,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.utcnow()
        results = []

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    entity=self.entity,
                    message=result.message,
                    category=result.category.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = len(results) - passed_checks
        status = ValidationStatus.FAILED if failed_checks else ValidationStatus.PASSED

        logger.debug(
            f"Validation complete: {status.value}",
            entity=self.entity,
            rows=len(df),
            passed=passed_checks,
            failed=failed_checks,
        )

        return ValidationResult(
            entity=self.entity,
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            checks=results,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )


def create_entity_validator(schema: EntitySchema, check_key: bool = True) -> DataValidator:
    """Create pre-configured validator from an entity schema"""
    validator = DataValidator(schema.name).add_required_columns_check(schema.required)
    for column in schema.non_null:
        validator.add_not_null_check(column)
    if check_key and schema.key:
        validator.add_unique_check(schema.key)
    return validator


def validate_entity(df: pl.DataFrame, schema: EntitySchema, check_key: bool = True) -> None:
    """Validate df against schema, raising on the first violation"""
    create_entity_validator(schema, check_key=check_key).validate(df).raise_for_errors()
