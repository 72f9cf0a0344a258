"""
Structured logging for the production board.

Every record leaves as one JSON object per line:

    {"ts": ..., "level": ..., "logger": "mes.engines.transitions",
     "message": "move_completed", "correlation_id": ..., "actor": ...,
     "item_id": ..., "quantity": 3, ...}

Request-scoped fields (who is acting, on which workflow and item, under
which correlation id) live in ``LogContext`` and are stamped onto every
record emitted while they are bound.  Per-call data goes in ``extra=``.
Kernel errors logged with ``exc_info`` contribute their ``code`` and
context attributes as ``exc_*`` fields.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, TextIO
from uuid import UUID

_ROOT = "mes"

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"mes_log_{name}", default=None)
    for name in ("correlation_id", "actor", "workflow_id", "item_id", "request_type")
}


def _var(name: str) -> ContextVar[str | None]:
    try:
        return _CONTEXT_VARS[name]
    except KeyError:
        raise TypeError(f"unknown log context field {name!r}") from None


class LogContext:
    """Request-scoped log fields, safe across threads and asyncio tasks."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Overwrite the given fields; None leaves a field as it is."""
        for name, value in fields.items():
            if value is not None:
                _var(name).set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: value
            for name, var in _CONTEXT_VARS.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT_VARS.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block, then put back
        whatever was there before.  None values are skipped."""
        tokens = [
            (_var(name), _var(name).set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord carries; anything else on a record came from extra=.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    match value:
        case Enum():
            return value.value
        case datetime() | date():
            return value.isoformat()
        case Decimal() | UUID():
            return str(value)
        case set() | frozenset():
            return sorted(value, key=str)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON line per record: base fields, bound context, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                line.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            line["exc_type"] = type(error).__name__
            line["exc_message"] = str(error)
            code = getattr(error, "code", None)
            if code is not None:
                line["exc_code"] = code
            for attr, value in vars(error).items():
                if not attr.startswith("_") and attr != "code":
                    line[f"exc_{attr}"] = value
            line["traceback"] = self.formatException(record.exc_info)

        return json.dumps(line, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Logger ``mes.<name>``; output follows whatever configure_logging set up."""
    return logging.getLogger(f"{_ROOT}.{name}")


_setup_lock = threading.Lock()
_is_configured = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``mes`` logger.  Only the first call in a
    process has any effect until ``reset_logging`` is called."""
    global _is_configured
    with _setup_lock:
        if _is_configured:
            return
        _is_configured = True

    out = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    out.setFormatter(StructuredFormatter())

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(out)


def reset_logging() -> None:
    """Detach handlers and forget configuration.  Used by the test suite."""
    global _is_configured
    with _setup_lock:
        _is_configured = False
    root = logging.getLogger(_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
