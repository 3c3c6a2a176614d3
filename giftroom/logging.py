"""Logging for the gift room API and the ARQ worker.

Records carry gift room context when the call site passes it with
``extra={"room_id": ..., "user_id": ...}``, and the id of the HTTP request
being served (set by ``giftroom.middleware``).
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

from giftroom.config import get_settings

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

CONTEXT_FIELDS = ("request_id", "room_id", "reservation_id", "claim_id", "user_id")


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id to the current context, generating one if needed."""
    request_id = request_id or uuid.uuid4().hex[:16]
    _request_id.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return _request_id.get()


def clear_request_id() -> None:
    _request_id.set(None)


class RequestContextFilter(logging.Filter):
    """Stamp the current request id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


def context_of(record: logging.LogRecord) -> dict:
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per record, gift room context fields at top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "timestamp": self.formatTime(record, self.datefmt),
            **context_of(record),
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable lines for local runs, context appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = context_of(record)
        if context:
            line += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return line


def configure_logging() -> None:
    """Install a single stdout handler on the root logger."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(
        ConsoleFormatter() if settings.environment == "local" else JsonFormatter()
    )

    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("arq.worker").setLevel(log_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
