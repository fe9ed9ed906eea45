"""Structured logging configuration (JSON or text format).

Ramp, reconciler and daemon log calls attach per-pod context through
``extra``: ``address`` names the backend, ``weight`` the weight just written,
``ramp_state`` the ramp lifecycle state, ``event_type`` the watch event, and
``total_members`` / ``elapsed_seconds`` summarise a snapshot. Both formatters
render that context, so a single ramp can be followed with a filter on
``address`` whichever format is configured.
"""

from __future__ import annotations

import enum
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import LoggingConfig

CONTEXT_FIELDS = (
    "address",
    "service",
    "weight",
    "ramp_state",
    "event_type",
    "total_members",
    "elapsed_seconds",
)


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the context fields set on a record, with enums reduced to their values."""
    context: dict[str, Any] = {}
    for key in CONTEXT_FIELDS:
        val = getattr(record, key, None)
        if val is None:
            continue
        if isinstance(val, enum.Enum):
            val = val.value
        context[key] = val
    return context


class JSONFormatter(logging.Formatter):
    """Emits log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        payload.update(record_context(record))

        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable format for development, with context as trailing key=value pairs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(name)s] (%(threadName)s) %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        context = record_context(record)
        if not context:
            return text
        pairs = " ".join(f"{key}={val}" for key, val in context.items())
        # Keep the context on the first line when a traceback follows
        head, sep, tail = text.partition("\n")
        return f"{head} {pairs}{sep}{tail}"


def configure_logging(config: LoggingConfig) -> None:
    """Set up the root logger based on configuration."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if config.format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root.addHandler(handler)

    # The watch stream logs every chunk at DEBUG
    for noisy in ("kubernetes", "kubernetes.client.rest", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
