"""
Kanban item store (``mes_kernel.domain.kanban``).

Responsibility
--------------
The central entity of the production board -- one physical batch of a
SKU sitting at one stage -- plus pure helpers that query and rebuild an
item snapshot.  A snapshot is an ordered ``tuple[KanbanItem, ...]``; no
helper mutates its input.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``quantity`` is a non-negative integer and is zero only on consumed
  items: a zero batch is never active.
* An assembly container is a tagged variant (``assembly`` is set).  While
  active its quantity equals the units allocated to it.
* Items are values: every change produces a new ``KanbanItem`` via
  ``evolve``; the id never changes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from mes_kernel.domain.values import ItemStatus, SalesChannel
from mes_kernel.exceptions import ItemNotFoundError


@dataclass(frozen=True)
class AssemblyProgress:
    """Partial BOM fulfilment carried by an in-progress assembly container.

    ``progress`` maps component SKU to the units allocated so far.
    """
    target_sku: str
    progress: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for sku, qty in self.progress.items():
            if qty < 0:
                raise ValueError(f"Negative progress for {sku}: {qty}")
        object.__setattr__(self, "progress", MappingProxyType(dict(self.progress)))

    @property
    def total_units(self) -> int:
        return sum(self.progress.values())

    def allocated(self, sku: str) -> int:
        return self.progress.get(sku, 0)

    def add(self, sku: str, qty: int) -> AssemblyProgress:
        merged = dict(self.progress)
        merged[sku] = merged.get(sku, 0) + qty
        return AssemblyProgress(self.target_sku, merged)

    def cleared(self) -> AssemblyProgress:
        return AssemblyProgress(self.target_sku, {})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssemblyProgress):
            return NotImplemented
        return (
            self.target_sku == other.target_sku
            and dict(self.progress) == dict(other.progress)
        )

    def __hash__(self) -> int:
        return hash((self.target_sku, tuple(sorted(self.progress.items()))))


@dataclass(frozen=True)
class KanbanItem:
    """One physical batch of a SKU at a stage.

    Contract: frozen; lineage fields are tuples of item ids.
    Guarantees: quantity >= 0, and 0 only when status is CONSUMED.
    Non-goals: does not know its blueprint -- ``stage_id`` is resolved
    through a ``WorkflowContext``.
    """
    id: str
    name: str
    sku: str | None
    stage_id: str
    quantity: int
    collection: str | None = None
    emoji: str | None = None
    price: Decimal = Decimal("0")
    parent_id: str | None = None
    child_ids: tuple[str, ...] = ()
    merged_from: tuple[str, ...] = ()
    status: ItemStatus = ItemStatus.ACTIVE
    sales_channel: SalesChannel | None = None
    assembly: AssemblyProgress | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Kanban item id must not be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise TypeError(f"Item {self.id}: quantity must be int, got {self.quantity!r}")
        if self.quantity < 0:
            raise ValueError(f"Item {self.id}: quantity must be >= 0, got {self.quantity}")
        if self.quantity == 0 and self.status is not ItemStatus.CONSUMED:
            raise ValueError(
                f"Item {self.id}: zero quantity is only valid on consumed items "
                f"(status={self.status.value})"
            )

    @property
    def is_active(self) -> bool:
        return self.status is ItemStatus.ACTIVE

    @property
    def is_container(self) -> bool:
        return self.assembly is not None

    @property
    def units(self) -> int:
        if self.assembly is not None and self.is_active:
            return self.assembly.total_units
        return self.quantity

    def evolve(self, **changes: Any) -> KanbanItem:
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Snapshot helpers
# ---------------------------------------------------------------------------


def find_item(items: Iterable[KanbanItem], item_id: str) -> KanbanItem | None:
    for item in items:
        if item.id == item_id:
            return item
    return None


def require_item(items: Iterable[KanbanItem], item_id: str) -> KanbanItem:
    item = find_item(items, item_id)
    if item is None:
        raise ItemNotFoundError(item_id)
    return item


def find_loose_item(
    items: Iterable[KanbanItem],
    sku: str | None,
    stage_id: str,
    exclude_id: str | None = None,
    match_missing_sku: bool = False,
) -> KanbanItem | None:
    """Active, non-container item of ``sku`` at ``stage_id`` (pile to merge into).

    Items without a SKU only pile up with each other when
    ``match_missing_sku`` is set.
    """
    if sku is None and not match_missing_sku:
        return None
    for item in items:
        if (
            item.sku == sku
            and item.stage_id == stage_id
            and item.is_active
            and not item.is_container
            and item.id != exclude_id
        ):
            return item
    return None


def find_container(
    items: Iterable[KanbanItem], stage_id: str, target_sku: str,
) -> KanbanItem | None:
    """The active assembly container for ``target_sku`` at ``stage_id``."""
    for item in items:
        if (
            item.assembly is not None
            and item.assembly.target_sku == target_sku
            and item.stage_id == stage_id
            and item.is_active
        ):
            return item
    return None


def replace_item(items: Sequence[KanbanItem], updated: KanbanItem) -> tuple[KanbanItem, ...]:
    """Swap the item with ``updated.id`` in place, keeping order."""
    found = False
    result: list[KanbanItem] = []
    for item in items:
        if item.id == updated.id:
            result.append(updated)
            found = True
        else:
            result.append(item)
    if not found:
        raise ItemNotFoundError(updated.id)
    return tuple(result)


def remove_item(items: Sequence[KanbanItem], item_id: str) -> tuple[KanbanItem, ...]:
    result = tuple(i for i in items if i.id != item_id)
    if len(result) == len(items):
        raise ItemNotFoundError(item_id)
    return result


def active_items(items: Iterable[KanbanItem]) -> tuple[KanbanItem, ...]:
    return tuple(i for i in items if i.is_active)


def items_at_stage(
    items: Iterable[KanbanItem], stage_id: str, *, active_only: bool = True,
) -> tuple[KanbanItem, ...]:
    return tuple(
        i for i in items
        if i.stage_id == stage_id and (i.is_active or not active_only)
    )
