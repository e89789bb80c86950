"""
FastAPI Production Application

Main entry point for the Order Analytics API.
"""

import structlog

from order_analytics.config import get_settings
from order_analytics.config.logging import configure_logging
from order_analytics.serving.api.main import create_app

settings = get_settings()

configure_logging(serve_http=True)
logger = structlog.get_logger(__name__)

app = create_app()
logger.info("Order Analytics API ready", environment=settings.app_env, database=settings.database.url)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
