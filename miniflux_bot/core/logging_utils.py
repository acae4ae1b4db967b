from __future__ import annotations

import logging
import sys
import uuid
from typing import Any

from loguru import logger as loguru_logger

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_STANDARD_FIELDS = frozenset(
    {
        "args",
        "msg",
        "name",
        "levelno",
        "levelname",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "message",
    }
)

_NOISY_LOGGERS = (
    "pyrogram",
    "pyrogram.session",
    "pyrogram.session.session",
    "pyrogram.connection",
    "httpx",
    "httpcore",
    "apscheduler",
    "apscheduler.scheduler",
    "apscheduler.executors.default",
)


def _record_extra(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if not key.startswith("_") and key not in _STANDARD_FIELDS
    }


class InterceptHandler(logging.Handler):
    """Forward stdlib records into loguru, keeping ``extra=`` fields as bound context."""

    def emit(self, record: logging.LogRecord) -> None:
        level: int | str
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        loguru_logger.bind(logger_name=record.name, **_record_extra(record)).opt(
            depth=6, exception=record.exc_info
        ).log(level, record.getMessage())


def setup_json_logging(
    level: str = "INFO",
    *,
    log_file: str | None = None,
    max_file_size: str = "50 MB",
    retention: str = "14 days",
) -> None:
    """Configure structured logging for the whole process.

    Stdlib records are routed into loguru, which serialises them as JSON to
    stdout and optionally to a rotating ``log_file``.
    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    loguru_logger.remove()
    loguru_logger.add(sys.stdout, level=level.upper(), serialize=True, enqueue=True)
    if log_file:
        loguru_logger.add(
            log_file,
            level=level.upper(),
            serialize=True,
            rotation=max_file_size,
            retention=retention,
            compression="gz",
            enqueue=True,
        )
    root.handlers.clear()
    root.setLevel(lvl)
    root.addHandler(InterceptHandler())

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(lvl, logging.WARNING))

    logging.getLogger(__name__).debug(
        "logging_configured", extra={"level": level, "log_file": log_file}
    )


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing one interaction across log lines."""
    return uuid.uuid4().hex[:12]


__all__ = [
    "InterceptHandler",
    "generate_correlation_id",
    "setup_json_logging",
]
