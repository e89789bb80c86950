"""
Logging Configuration for Order Analytics

structlog events rendered through one stdlib handler, so pipeline stages,
SQLAlchemy and (when serving) uvicorn share a single output format.
"""

import logging
import sys
from typing import List, Optional

import structlog
from structlog.stdlib import ProcessorFormatter

from order_analytics.config.settings import get_settings

HTTP_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _pipeline_processors() -> List[structlog.typing.Processor]:
    """Processors applied to structlog and foreign stdlib records alike"""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]


def _renderer(log_format: str) -> structlog.typing.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(log_level: Optional[str] = None, serve_http: bool = False) -> None:
    """
    Configure structured logging.

    Args:
        log_level: Override of the configured level (DEBUG, INFO, WARNING, ERROR)
        serve_http: Also route uvicorn's loggers through the handler
    """
    settings = get_settings()
    level_name = (log_level or settings.monitoring.log_level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    processors = _pipeline_processors()
    structlog.configure(
        processors=processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ProcessorFormatter(
            processor=_renderer(settings.monitoring.log_format),
            foreign_pre_chain=processors,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    if serve_http:
        for name in HTTP_SERVER_LOGGERS:
            server_logger = logging.getLogger(name)
            server_logger.handlers = [handler]
            server_logger.propagate = False

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=level_name,
        format=settings.monitoring.log_format,
        serve_http=serve_http,
    )
