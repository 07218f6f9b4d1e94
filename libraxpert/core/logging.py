from __future__ import annotations

import logging
import json
import sys
from datetime import datetime, timezone
from contextvars import ContextVar
from typing import Any, Dict, Optional

from libraxpert.core.config import settings

# Context variables for request-scoped data
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
current_user_id_ctx: ContextVar[Optional[str]] = ContextVar("current_user_id", default=None)


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        req_id = request_id_ctx.get()
        if req_id:
            log_entry["request_id"] = req_id

        user_id = current_user_id_ctx.get()
        if user_id:
            log_entry["user_id"] = user_id

        # Structured fields passed through log_extra()
        if hasattr(record, "extra_data"):
            log_entry.update(record.extra_data)

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Enum members and datetimes in extra_data fall back to str()
        return json.dumps(log_entry, default=str)


def log_extra(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` kwarg that JSONFormatter merges into the entry.

    Usage::

        logger.info("Loan renewed", **log_extra(loan_id=loan.id, renewal_count=2))
    """
    return {"extra": {"extra_data": fields}}


def setup_logging() -> None:
    """Configure structured JSON logging for the application."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    # Reduce noise from third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)
