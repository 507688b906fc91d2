"""
Centralized logging configuration with structured logging support.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.config import settings

# Context variable for request ID correlation across async tasks.
# Set by RequestLoggingMiddleware and read by JSONFormatter, so every log entry
# emitted while handling a request (including service-level progress logs)
# carries the same request_id.
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Structured fields copied from ``extra={...}`` onto the JSON log entry.
# Request fields come from the middleware; progress fields from the service.
STRUCTURED_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_host",
    "participant_id",
    "session_id",
    "test_id",
    "progress_status",
)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for production logging.

    Produces structured log entries with consistent fields for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        # Use record.created for accurate timing (epoch timestamp when record was created)
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_context.get()
        if request_id:
            log_entry["request_id"] = request_id

        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        # Add source location for error-level logs
        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging() -> None:
    """
    Configure application-wide logging with structured output.

    Configures:
    - Log levels based on settings.LOG_LEVEL
    - JSON formatting for production (structured for log aggregators)
    - Human-readable format for development
    - Request ID correlation via context variables
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    is_production = settings.ENV == "production"

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if is_production else "default",
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "app": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            # Request lines are already logged by RequestLoggingMiddleware
            "uvicorn.access": {
                "level": logging.WARNING if settings.DEBUG else logging.INFO,
                "handlers": ["console"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": logging.WARNING,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)
