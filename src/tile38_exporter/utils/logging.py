"""
JSON log lines for the exporter.

Every record is one JSON object on stdout. ``extra={...}`` fields are merged
into it, anything that looks like a credential (the Tile38 AUTH password
above all) is masked, and the id of the HTTP request being served is
attached as ``trace_id``.
"""
from __future__ import annotations

import json
import logging
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Final, Optional

MASK: Final[str] = "***MASKED***"

# ============= REQUEST ID =============

_CORRELATION_ID: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def set_correlation_id(value: Optional[str]) -> None:
    _CORRELATION_ID.set(value)


def get_correlation_id() -> Optional[str]:
    return _CORRELATION_ID.get()


# ============= FORMATTER =============

class JsonFormatter(logging.Formatter):
    """One JSON object per record, secrets masked."""

    SENSITIVE_KEYS: Final[tuple[str, ...]] = ("password", "auth", "secret", "token", "credential")

    # LogRecord internals, never copied into the payload
    _RECORD_ATTRS: Final[frozenset[str]] = frozenset(
        logging.LogRecord("", 0, "", 0, "", None, None).__dict__
    ) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = get_correlation_id()
        if cid:
            payload["trace_id"] = cid

        for key, value in record.__dict__.items():
            if key in self._RECORD_ATTRS or key.startswith("_"):
                continue
            payload[key] = self._mask(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_type"] = record.exc_info[0].__name__
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)

    def _mask(self, key: Any, value: Any) -> Any:
        lowered = str(key).lower()
        if any(s in lowered for s in self.SENSITIVE_KEYS):
            return MASK
        if isinstance(value, dict):
            return {k: self._mask(k, v) for k, v in value.items()}
        return value


# ============= SETUP =============

def configure_root(level: int = logging.INFO) -> None:
    """
    Route the root logger to stdout as JSON lines.

    Safe to call again: an existing JSON handler is reused and only its level
    changes.
    """
    root = logging.getLogger()
    root.setLevel(level)

    handler = next((h for h in root.handlers if isinstance(h.formatter, JsonFormatter)), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
    handler.setLevel(level)

    # redis-py logs every reconnect at DEBUG
    for name in ("asyncio", "redis"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ============= TIMING =============

class LogTimer:
    """
    Logs ``<operation>_completed`` with ``duration_ms``, or a warning
    ``<operation>_failed`` when the block raises.

        with LogTimer(logger, "render_catalog", level=logging.DEBUG):
            body = render_catalog(stats)
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO, **fields: Any):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.fields = fields
        self._start = 0.0

    def __enter__(self) -> "LogTimer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        extra = {
            "operation": self.operation,
            "duration_ms": round((time.perf_counter() - self._start) * 1000, 2),
            **self.fields,
        }
        if exc_type is None:
            self.logger.log(self.level, f"{self.operation}_completed", extra=extra)
        else:
            extra["error"] = str(exc_val)
            extra["error_type"] = exc_type.__name__
            self.logger.warning(f"{self.operation}_failed", extra=extra)


__all__ = [
    "JsonFormatter",
    "LogTimer",
    "configure_root",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
]
