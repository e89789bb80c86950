"""
Database Connection Management

SQLAlchemy 2.0 engine construction and health checks for the SQL-backed
Tabular Store.
The pipeline is a sequential batch job, so a synchronous engine is used.
"""

import time
from pathlib import Path
from typing import Optional

import structlog
from sqlalchemy import Engine, create_engine, make_url, text
from sqlalchemy.pool import StaticPool

from order_analytics.config import get_settings

logger = structlog.get_logger(__name__)


def build_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create an engine for the given URL (defaults to the configured one).

    In-memory SQLite gets a StaticPool so every connection sees the same
    database. File-backed SQLite gets its parent directory created.
    """
    settings = get_settings()
    url = url or settings.database.url
    engine_config = {
        "echo": settings.database.echo if echo is None else echo,
        "future": True,
        "pool_pre_ping": True,
    }

    parsed = make_url(url)
    database = parsed.database
    if url.startswith("sqlite"):
        if not database or database == ":memory:":
            engine_config.update({
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            })
        else:
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Creating database engine", url=parsed.render_as_string(hide_password=True))
    return create_engine(url, **engine_config)


def check_database_health(engine: Engine) -> dict:
    """
    Check database health status.

    Returns:
        dict: Health status with latency information
    """
    try:
        start = time.perf_counter()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }
