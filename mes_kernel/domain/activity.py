"""
Activity log / audit trail (``mes_kernel.domain.activity``).

Responsibility
--------------
Immutable records of every transition on the board, and an append-only
collection that answers the time and item queries dashboards and daily
recaps need.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The SQL
counterpart (``mes_kernel.models.activity_log``) carries the same
append-only guarantee at the ORM level.

Invariants enforced
-------------------
* Entries are frozen; their metadata is a read-only mapping.
* ``ActivityLog`` has no removal or update API; ``append`` returns a new
  log and refuses an entry id that is already recorded.
* Stage names are snapshotted when the entry is written, so renaming a
  stage later never rewrites history.

Audit relevance
---------------
Corrections (undo, delete) are recorded as new entries.  Nothing in this
module can make an entry disappear.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from types import MappingProxyType
from typing import Any

from mes_kernel.domain.values import ActivityAction, StageLogicType
from mes_kernel.exceptions import DuplicateLogEntryError


@dataclass(frozen=True)
class ActivityLogEntry:
    """One immutable audit record.

    Contract: frozen.  ``from_stage`` / ``to_stage`` are stage *names* at
    the time of the action, not ids.
    """
    id: str
    timestamp: datetime
    user: str
    action: ActivityAction
    item_name: str
    from_stage: str | None
    to_stage: str | None
    logic_type: StageLogicType
    metadata: Mapping[str, Any] = field(default_factory=dict)
    item_id: str | None = None

    def __post_init__(self) -> None:
        if self.timestamp.tzinfo is None:
            raise ValueError(f"Log entry {self.id}: timestamp must be timezone-aware")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActivityLogEntry):
            return NotImplemented
        return (
            self.id == other.id
            and self.timestamp == other.timestamp
            and self.user == other.user
            and self.action == other.action
            and self.item_name == other.item_name
            and self.from_stage == other.from_stage
            and self.to_stage == other.to_stage
            and self.logic_type == other.logic_type
            and dict(self.metadata) == dict(other.metadata)
            and self.item_id == other.item_id
        )


class ActivityLog:
    """Append-only, immutable sequence of ``ActivityLogEntry``.

    Contract:
        ``append`` returns a new log; the receiver is never changed.
    Guarantees:
        - Insertion order is preserved.
        - An entry id appears at most once.
    Non-goals:
        Persistence -- see ``mes_services.workflow_store``.
    """

    __slots__ = ("_entries", "_ids")

    def __init__(self, entries: Iterable[ActivityLogEntry] = ()):
        ordered: tuple[ActivityLogEntry, ...] = ()
        ids: frozenset[str] = frozenset()
        self._entries = ordered
        self._ids = ids
        if entries:
            appended = self.append(*entries)
            self._entries = appended._entries
            self._ids = appended._ids

    def append(self, *entries: ActivityLogEntry) -> ActivityLog:
        seen = set(self._ids)
        for entry in entries:
            if entry.id in seen:
                raise DuplicateLogEntryError(entry.id)
            seen.add(entry.id)
        log = ActivityLog.__new__(ActivityLog)
        log._entries = self._entries + tuple(entries)
        log._ids = frozenset(seen)
        return log

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ActivityLogEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> ActivityLogEntry:
        return self._entries[index]

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._ids

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActivityLog):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"ActivityLog({len(self._entries)} entries)"

    @property
    def entries(self) -> tuple[ActivityLogEntry, ...]:
        return self._entries

    # -- queries -------------------------------------------------------------

    def since(self, ts: datetime) -> tuple[ActivityLogEntry, ...]:
        return tuple(e for e in self._entries if e.timestamp >= ts)

    def between(self, start: datetime, end: datetime) -> tuple[ActivityLogEntry, ...]:
        """Entries with ``start <= timestamp < end``."""
        return tuple(e for e in self._entries if start <= e.timestamp < end)

    def for_item(self, item_id: str) -> tuple[ActivityLogEntry, ...]:
        return tuple(e for e in self._entries if e.item_id == item_id)

    def by_action(self, action: ActivityAction) -> tuple[ActivityLogEntry, ...]:
        return tuple(e for e in self._entries if e.action is action)

    def newest_first(self) -> tuple[ActivityLogEntry, ...]:
        return tuple(sorted(self._entries, key=lambda e: e.timestamp, reverse=True))

    def grouped_by_day(self, tz: tzinfo) -> OrderedDict[date, tuple[ActivityLogEntry, ...]]:
        """Entries bucketed by local calendar day in ``tz``, newest day first."""
        buckets: dict[date, list[ActivityLogEntry]] = {}
        for entry in self.newest_first():
            day = entry.timestamp.astimezone(tz).date()
            buckets.setdefault(day, []).append(entry)
        return OrderedDict(
            (day, tuple(buckets[day])) for day in sorted(buckets, reverse=True)
        )
