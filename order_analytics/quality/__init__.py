"""
Data Quality Module
"""
from .validators import DataValidator, ValidationResult, create_entity_validator, validate_entity

__all__ = [
    "DataValidator",
    "ValidationResult",
    "create_entity_validator",
    "validate_entity",
]
