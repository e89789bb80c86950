"""
ETL Transformer

Pipeline orchestrator: runs the five transformation stages in dependency
order against a Tabular Store and materializes every output table and view.

Stages:
1. customers  - deduplicate raw customers        -> customer_cleaned
2. orders     - date-normalize raw orders        -> order_cleaned
3. items      - clamp item money fields          -> order_item_cleaned
4. facts      - roll up, join and derive KPIs    -> fact_orders_min
5. aggregates - monthly/state/city/recent views  -> v_* tables
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

import polars as pl
import structlog

from order_analytics.config import get_settings
from order_analytics.database.store import TableStore
from order_analytics.schemas import (
    CITY_REVENUE_VIEW,
    CUSTOMER_CLEANED,
    FACT_ORDERS,
    MONTHLY_KPIS_VIEW,
    ORDER_CLEANED,
    ORDER_ITEM_CLEANED,
    RAW_CUSTOMERS_TABLE,
    RAW_ITEMS_TABLE,
    RAW_ORDERS_TABLE,
    RECENT_ORDERS_VIEW,
    TOP_STATE_BY_MONTH_VIEW,
    TableSpec,
)
from .aggregates import Aggregator
from .customers import CustomerDeduper
from .facts import EmptyOrderPolicy, FactBuilder
from .items import ItemSanitizer
from .orders import OrderNormalizer

logger = structlog.get_logger(__name__)

VIEW_SPECS: Dict[str, TableSpec] = {
    spec.name: spec
    for spec in (MONTHLY_KPIS_VIEW, TOP_STATE_BY_MONTH_VIEW, CITY_REVENUE_VIEW, RECENT_ORDERS_VIEW)
}


class TransformationType(str, Enum):
    """Pipeline stages in execution order"""
    CUSTOMERS = "customers"
    ORDERS = "orders"
    ITEMS = "items"
    FACTS = "facts"
    AGGREGATES = "aggregates"


@dataclass
class StageResult:
    """Result of one pipeline stage"""
    transformation_type: TransformationType
    input_rows: int
    output_rows: int
    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    tables: List[str] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Result of a full pipeline run"""
    reference_date: date
    started_at: datetime
    completed_at: datetime
    stages: Dict[TransformationType, StageResult] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def fact_rows(self) -> int:
        return self.stages[TransformationType.FACTS].output_rows


class ETLTransformer:
    """
    Main ETL pipeline orchestrator.

    Each stage fully materializes its output in the store before the next
    one starts. The first error aborts the run and propagates unchanged;
    tables written by earlier stages of the failed run are left as they are.

    Example:
        transformer = ETLTransformer(store, reference_date=date(2018, 10, 17))
        result = transformer.run()
    """

    def __init__(
        self,
        store: TableStore,
        reference_date: Optional[date] = None,
        empty_order_policy: Optional[EmptyOrderPolicy] = None,
        recent_window_days: Optional[int] = None,
    ):
        pipeline_settings = get_settings().pipeline
        self.store = store
        # Captured once so every view of this run shares one "today"
        self.reference_date = reference_date or pipeline_settings.reference_date or date.today()
        self.deduper = CustomerDeduper()
        self.normalizer = OrderNormalizer()
        self.sanitizer = ItemSanitizer()
        self.fact_builder = FactBuilder(empty_order_policy)
        self.aggregator = Aggregator(self.reference_date, recent_window_days)

    def _write_output(self, df: pl.DataFrame, spec: TableSpec) -> str:
        """Replace an output table with its key and index hints"""
        self.store.write(spec.name, df, primary_key=spec.primary_key, indexes=spec.indexes)
        logger.info("Written output table", table=spec.name, rows=df.height)
        return spec.name

    def _run_stage(
        self,
        stage: TransformationType,
        input_rows: int,
        transform: Callable[[], pl.DataFrame],
        spec: TableSpec,
    ) -> StageResult:
        started_at = datetime.utcnow()
        logger.info("Starting stage", stage=stage.value, input_rows=input_rows)

        try:
            df = transform()
            table = self._write_output(df, spec)
        except Exception as e:
            logger.error("Stage failed", stage=stage.value, error=str(e), error_type=type(e).__name__)
            raise

        completed_at = datetime.utcnow()
        return StageResult(
            transformation_type=stage,
            input_rows=input_rows,
            output_rows=df.height,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            tables=[table],
        )

    def transform_customers(self) -> StageResult:
        """Stage 1: deduplicate raw customers into customer_cleaned."""
        raw = self.store.read(RAW_CUSTOMERS_TABLE)
        return self._run_stage(
            TransformationType.CUSTOMERS, raw.height, lambda: self.deduper.dedupe(raw), CUSTOMER_CLEANED
        )

    def transform_orders(self) -> StageResult:
        """Stage 2: normalize raw orders into order_cleaned."""
        raw = self.store.read(RAW_ORDERS_TABLE)
        return self._run_stage(
            TransformationType.ORDERS, raw.height, lambda: self.normalizer.normalize(raw), ORDER_CLEANED
        )

    def transform_items(self) -> StageResult:
        """Stage 3: sanitize raw items into order_item_cleaned."""
        raw = self.store.read(RAW_ITEMS_TABLE)
        return self._run_stage(
            TransformationType.ITEMS, raw.height, lambda: self.sanitizer.sanitize(raw), ORDER_ITEM_CLEANED
        )

    def build_facts(self) -> StageResult:
        """Stage 4: build fact_orders_min from the three cleaned tables."""
        orders = self.store.read(ORDER_CLEANED.name)
        customers = self.store.read(CUSTOMER_CLEANED.name)
        items = self.store.read(ORDER_ITEM_CLEANED.name)
        return self._run_stage(
            TransformationType.FACTS,
            orders.height,
            lambda: self.fact_builder.build(orders, customers, items),
            FACT_ORDERS,
        )

    def build_views(self) -> StageResult:
        """Stage 5: recompute and replace every aggregate view."""
        started_at = datetime.utcnow()
        facts = self.store.read(FACT_ORDERS.name)
        logger.info("Starting stage", stage=TransformationType.AGGREGATES.value, input_rows=facts.height)

        try:
            views = self.aggregator.compute_all(facts)
            tables = [self._write_output(df, VIEW_SPECS[name]) for name, df in views.items()]
        except Exception as e:
            logger.error(
                "Stage failed",
                stage=TransformationType.AGGREGATES.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        completed_at = datetime.utcnow()
        return StageResult(
            transformation_type=TransformationType.AGGREGATES,
            input_rows=facts.height,
            output_rows=sum(df.height for df in views.values()),
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            tables=tables,
        )

    def run(self) -> PipelineResult:
        """
        Run the full pipeline once.

        Returns:
            PipelineResult with one StageResult per stage

        Raises:
            PipelineError: The first schema, integrity or computation
                violation detected by any stage
        """
        started_at = datetime.utcnow()
        logger.info("Starting full ETL pipeline", reference_date=self.reference_date.isoformat())

        stages = {}
        # Stages 1-3 are independent; 4 needs all three; 5 needs only 4
        stages[TransformationType.CUSTOMERS] = self.transform_customers()
        stages[TransformationType.ORDERS] = self.transform_orders()
        stages[TransformationType.ITEMS] = self.transform_items()
        stages[TransformationType.FACTS] = self.build_facts()
        stages[TransformationType.AGGREGATES] = self.build_views()

        result = PipelineResult(
            reference_date=self.reference_date,
            started_at=started_at,
            completed_at=datetime.utcnow(),
            stages=stages,
        )

        logger.info(
            "Full ETL complete",
            fact_rows=result.fact_rows,
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result
