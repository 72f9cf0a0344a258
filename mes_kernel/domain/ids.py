"""
Id generation -- injectable identity source for new items and log entries.

Responsibility:
    Replace hidden module-level counters with an explicit dependency that
    the caller supplies. The engine asks for ids by prefix ("item", "log")
    and never invents them itself.

Architecture position:
    Kernel > Domain -- pure value layer. ``UuidIdGenerator`` is the
    production default; ``SequentialIdGenerator`` makes tests deterministic.
"""

from __future__ import annotations

import itertools
import threading
from typing import Protocol, runtime_checkable
from uuid import uuid4


@runtime_checkable
class IdGenerator(Protocol):
    """Supplies unique string ids for a given prefix."""

    def next_id(self, prefix: str) -> str:
        ...


class UuidIdGenerator:
    """Random UUID4-based ids: ``item-<uuid>``."""

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{uuid4()}"


class SequentialIdGenerator:
    """
    Monotonic, per-prefix ids: ``item-0001``, ``item-0002``, ``log-0001``.

    Deterministic for a given call order, which makes snapshots produced in
    tests comparable field by field.
    """

    def __init__(self, start: int = 1, width: int = 4):
        self._start = start
        self._width = width
        self._counters: dict[str, itertools.count] = {}
        self._lock = threading.Lock()

    def next_id(self, prefix: str) -> str:
        with self._lock:
            counter = self._counters.setdefault(prefix, itertools.count(self._start))
            value = next(counter)
        return f"{prefix}-{value:0{self._width}d}"
