"""
Logging setup for the API process and the assessment client.

Production emits one JSON object per line; development uses a plain
human-readable format. Log entries never include response payloads, only
the identifiers and numbers listed in ``_STRUCTURED_FIELDS``.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.config import settings

# Set per request by RequestLoggingMiddleware
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# LogRecord extras copied into JSON log entries
_STRUCTURED_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "session_id",
    "score",
    "percentile",
    "error_id",
)


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": settings.APP_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_context.get()
        if request_id:
            log_entry["request_id"] = request_id

        for field in _STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging() -> None:
    """
    Configure logging from settings.

    ``LOG_LEVEL`` applies to the ``app`` logger tree; unknown names fall back
    to INFO. ``ENV=production`` selects the JSON formatter.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = "json" if settings.ENV == "production" else "default"

    def quiet(level: int) -> Dict[str, Any]:
        return {"level": level, "handlers": ["console"], "propagate": False}

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {"()": JSONFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": formatter,
                "stream": sys.stdout,
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
        "loggers": {
            "app": quiet(log_level),
            "uvicorn.access": quiet(logging.WARNING if settings.DEBUG else logging.INFO),
            "sqlalchemy.engine": quiet(logging.WARNING),
            # httpx logs every client request at INFO
            "httpx": quiet(logging.WARNING),
        },
    }

    logging.config.dictConfig(logging_config)
