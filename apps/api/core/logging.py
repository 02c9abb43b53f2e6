"""
Structured logging configuration.

JSON lines in production (or LOG_FORMAT=json), readable text otherwise.
Both formats render the `extra_fields` dict that call sites attach via
`extra={"extra_fields": {...}}`; analytics services build that dict with
`context_fields` so every record names the user and window it concerns.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict
from core.config import settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "extra_fields", None) or {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, extra fields merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "environment": settings.ENVIRONMENT,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        log_data.update(_extra_fields(record))
        # UUIDs and dates in extra fields
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Plain text with extra fields appended as key=value pairs."""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _extra_fields(record)
        if not fields:
            return line
        rendered = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{line} [{rendered}]"


def context_fields(context, **fields: Any) -> Dict[str, Any]:
    """
    `extra` mapping for a log call made on behalf of an AnalyticsContext.

    Example:
        logger.debug("Loaded snapshot", extra=context_fields(context, sessions=3))
    """
    base = {
        "user_id": str(context.user_id),
        "start": context.date_range.start.isoformat(),
        "end": context.date_range.end.isoformat(),
    }
    base.update(fields)
    return {"extra_fields": base}


def setup_logging():
    """Configure the root logger for the API process."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # SQL echo is controlled by DEBUG on the engine
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger
