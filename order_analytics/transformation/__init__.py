"""
Data Transformation Module
"""
from .customers import CustomerDeduper, dedupe_customers
from .orders import OrderNormalizer, normalize_orders
from .items import ItemSanitizer, sanitize_items
from .facts import FactBuilder, build_fact_orders
from .aggregates import Aggregator
from .transformers import ETLTransformer, PipelineResult, StageResult

__all__ = [
    "CustomerDeduper",
    "dedupe_customers",
    "OrderNormalizer",
    "normalize_orders",
    "ItemSanitizer",
    "sanitize_items",
    "FactBuilder",
    "build_fact_orders",
    "Aggregator",
    "ETLTransformer",
    "PipelineResult",
    "StageResult",
]
