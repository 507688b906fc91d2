"""
Application configuration settings.
"""

import logging

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Syntegra API"
    APP_VERSION: str = "1.0.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Overdue progress sweep (scripts/expire_overdue_progress.py)
    # Maximum number of overdue records auto-completed per cron run (0 = no limit)
    PROGRESS_SWEEP_BATCH_SIZE: int = Field(
        default=500,
        ge=0,
        description="Max overdue in-progress records auto-completed per sweep run",
    )

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate (0.0-1.0, 0.1 = 10% of transactions)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_log_level(self) -> Self:
        """Reject log levels the logging module does not know about."""
        level = logging.getLevelName(self.LOG_LEVEL.upper())
        if not isinstance(level, int):
            raise ValueError(
                f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, "
                f"got {self.LOG_LEVEL!r}"
            )
        return self


settings = Settings()
