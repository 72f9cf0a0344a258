"""
mes_engines.tracer -- one MES_ENGINE_TRACE record per engine call.

``@traced_engine`` wraps a transition and logs, after it returns or raises:

    engine_name        e.g. "transition.split"
    engine_version     ENGINE_VERSION of the transitions module
    input_fingerprint  16 hex chars of SHA-256 over the chosen keyword
                       arguments, so two calls with the same request can be
                       matched in the logs without dumping the board
    duration_ms
    outcome            "ok" or "error", with error_code on failure

The wrapped call's result and exceptions pass through untouched.  Keyword
arguments named in ``fingerprint_fields`` but not supplied count as None.
"""

from __future__ import annotations

import functools
import hashlib
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from mes_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonical(value: Any) -> str:
    match value:
        case None:
            return "null"
        case Enum():
            return str(value.value)
        case Mapping():
            pairs = sorted((str(k), _canonical(v)) for k, v in value.items())
            return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
        case list() | tuple():
            return "[" + ",".join(map(_canonical, value)) + "]"
    return str(value)


def compute_input_fingerprint(fields: tuple[str, ...], kwargs: Mapping[str, Any]) -> str:
    text = "|".join(f"{name}={_canonical(kwargs.get(name))}" for name in fields)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            )
            started = time.monotonic()
            error_code = None
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                error_code = getattr(exc, "code", type(exc).__name__)
                raise
            finally:
                _logger.info(
                    "MES_ENGINE_TRACE",
                    extra={
                        "trace_type": "MES_ENGINE_TRACE",
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": fingerprint,
                        "duration_ms": round((time.monotonic() - started) * 1000, 2),
                        "function": func.__qualname__,
                        "outcome": "ok" if error_code is None else "error",
                        "error_code": error_code,
                    },
                )

        return wrapper

    return decorator
