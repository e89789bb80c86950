"""
Order Analytics
Centralized Configuration Management

Pydantic settings with environment variable support, validation, and type
safety for the transformation pipeline, the Tabular Store and logging.
"""

from datetime import date
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Tabular Store database configuration"""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    url: str = Field(default="sqlite:///./data/order_analytics.db", description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Echo SQL statements")


class PipelineSettings(BaseSettings):
    """Transformation pipeline configuration"""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    reference_date: Optional[date] = Field(
        default=None,
        description="Current date used for the recent-orders window (defaults to today)",
    )
    recent_window_days: int = Field(default=90, ge=0, description="Trailing window for recent orders")
    empty_order_policy: Literal["null", "zero"] = Field(
        default="null",
        description="Rollup values for orders without items: null or zero",
    )
    timestamp_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Format of string timestamps in raw orders",
    )


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="order-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
