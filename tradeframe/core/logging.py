"""structlog setup for the controller and replay runs.

Every log line written while a tick is running carries the tick's UTC time
under ``tick``, so interleaved model and framework events can be matched up.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import AbstractContextManager
from datetime import datetime

import structlog


def setup_logging(log_level: str = "INFO", json_logs: bool | None = None) -> None:
    """Configure structlog.

    json_logs=None falls back to the JSON_LOGS env var (1/true/yes). JSON output
    renders tracebacks as structured dicts, since model exceptions propagate out
    of a tick unhandled.
    """
    if json_logs is None:
        json_logs = os.environ.get("JSON_LOGS", "").strip().lower() in ("1", "true", "yes")

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_logs:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def tick_context(now_utc: datetime) -> AbstractContextManager:
    """Bind the tick time to every log line emitted inside the block."""
    return structlog.contextvars.bound_contextvars(tick=now_utc.isoformat())


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named logger instance."""
    return structlog.get_logger(name)
