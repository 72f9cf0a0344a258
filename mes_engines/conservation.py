"""
Module: mes_engines.conservation
Responsibility:
    Express the quantity conservation law as arithmetic over the activity
    trail, so any snapshot pair can be checked against the entries that
    connect them.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    total_units(after) - total_units(before) == expected_unit_delta(logs)
    where ``logs`` are the entries produced between the two snapshots.
    Moves, allocations, sales and rejects contribute nothing; the rest
    contribute what their metadata records:

        split      yield - consumed
        merged     yield - consumed_units
        added      quantity
        edit       quantity_delta
        delete     -deleted_quantity
        undone     unit_delta

Failure modes:
    - KeyError if an entry lacks the metadata key its action requires.
"""

from __future__ import annotations

from collections.abc import Iterable

from mes_kernel.domain.activity import ActivityLogEntry
from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.domain.values import ActivityAction


def total_units(items: Iterable[KanbanItem]) -> int:
    """Units held by every item in a snapshot, whatever its status."""
    return sum(item.quantity for item in items)


def entry_unit_delta(entry: ActivityLogEntry) -> int:
    meta = entry.metadata
    match entry.action:
        case ActivityAction.SPLIT:
            return int(meta["yield"]) - int(meta["consumed"])
        case ActivityAction.MERGED:
            return int(meta["yield"]) - int(meta["consumed_units"])
        case ActivityAction.ADDED:
            return int(meta["quantity"])
        case ActivityAction.UNDONE:
            return int(meta["unit_delta"])
        case ActivityAction.MOVED:
            if meta.get("deleted"):
                return -int(meta["deleted_quantity"])
            return int(meta.get("quantity_delta", 0))
        case _:
            return 0


def expected_unit_delta(logs: Iterable[ActivityLogEntry]) -> int:
    return sum(entry_unit_delta(entry) for entry in logs)


def lineage_root(items: Iterable[KanbanItem], item_id: str) -> str:
    """Follow ``parent_id`` links up to the root of an item's lineage."""
    by_id = {item.id: item for item in items}
    current = item_id
    seen: set[str] = set()
    while current in by_id and by_id[current].parent_id is not None:
        if current in seen:
            break
        seen.add(current)
        current = by_id[current].parent_id
    return current


def lineage_units(items: Iterable[KanbanItem], root_id: str) -> int:
    """Units held by ``root_id`` and every item descended from it via
    ``parent_id``."""
    snapshot = tuple(items)
    return sum(
        item.quantity for item in snapshot
        if lineage_root(snapshot, item.id) == root_id
    )
