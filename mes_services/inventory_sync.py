"""
mes_services.inventory_sync -- keep the ready-stock record in step with the board.

Responsibility:
    Translate the log entries of a transition into per-SKU stock
    adjustments: units entering the ready (packing) stage are added, units
    leaving it or reaching a sold stage are removed.  Stages are matched by
    name pattern, so the rule holds across every pipeline of a set.
    Undo hands the adjustments of the undone request back to ``revert``.

Architecture position:
    Services -- boundary collaborator.  ``InventoryLedger`` is the port;
    ``SqlInventoryLedger`` writes ``InventoryStockModel`` rows and
    ``InMemoryInventoryLedger`` backs hosts without a database.

Invariants enforced:
    - Stock never goes negative: decreases floor at zero.
    - Adjustments are reported with the delta the ledger actually applied,
      so ``revert`` puts stock back exactly, floor included.
    - An entry whose source and destination both match the ready pattern
      (an edit, a move between two packing stages) is not an arrival.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.orm import Session

from mes_engines.transitions import TransitionResult
from mes_kernel.domain.activity import ActivityLogEntry
from mes_kernel.domain.clock import Clock
from mes_kernel.domain.kanban import KanbanItem, find_item
from mes_kernel.domain.values import ActivityAction
from mes_kernel.logging_config import get_logger
from mes_kernel.models.inventory_stock import InventoryStockModel

logger = get_logger("services.inventory_sync")

DEFAULT_READY_PATTERN = "packing"
DEFAULT_SOLD_PATTERN = "sold"


@dataclass(frozen=True)
class StockAdjustment:
    sku: str
    name: str
    delta: int
    reason: str


@runtime_checkable
class InventoryLedger(Protocol):
    def quantity(self, sku: str) -> int: ...

    def adjust(self, sku: str, name: str, delta: int) -> int:
        """Apply ``delta`` (floored at zero) and return the new quantity."""
        ...


class InMemoryInventoryLedger:
    def __init__(self, opening: dict[str, int] | None = None):
        self._stock: dict[str, int] = dict(opening or {})
        self._names: dict[str, str] = {}

    def quantity(self, sku: str) -> int:
        return self._stock.get(sku, 0)

    def adjust(self, sku: str, name: str, delta: int) -> int:
        self._names.setdefault(sku, name)
        self._stock[sku] = max(0, self._stock.get(sku, 0) + delta)
        return self._stock[sku]

    def snapshot(self) -> dict[str, int]:
        return dict(self._stock)


class SqlInventoryLedger:
    """Ledger over ``inventory_stock`` rows; flushes, never commits."""

    def __init__(self, session: Session, clock: Clock):
        self._session = session
        self._clock = clock

    def _row(self, sku: str) -> InventoryStockModel | None:
        return self._session.scalars(
            select(InventoryStockModel).where(InventoryStockModel.sku == sku)
        ).one_or_none()

    def quantity(self, sku: str) -> int:
        row = self._row(sku)
        return row.stock_quantity if row is not None else 0

    def adjust(self, sku: str, name: str, delta: int) -> int:
        row = self._row(sku)
        if row is None:
            row = InventoryStockModel(sku=sku, name=name, stock_quantity=0)
            self._session.add(row)
        row.stock_quantity = max(0, row.stock_quantity + delta)
        row.updated_at = self._clock.now()
        self._session.flush()
        return row.stock_quantity


class InventorySync:
    """
    Derives and applies stock adjustments for transitions.

    Contract:
        ``on_transition`` inspects only the entries of one result and
        returns the adjustments it applied, in entry order.
    Non-goals:
        Does not hold stock itself; the ledger does.
    """

    def __init__(
        self,
        ledger: InventoryLedger,
        ready_pattern: str = DEFAULT_READY_PATTERN,
        sold_pattern: str = DEFAULT_SOLD_PATTERN,
    ):
        self._ledger = ledger
        self._ready = ready_pattern.lower()
        self._sold = sold_pattern.lower()

    @property
    def ledger(self) -> InventoryLedger:
        return self._ledger

    def is_ready_stage(self, stage_name: str | None) -> bool:
        return stage_name is not None and self._ready in stage_name.lower()

    def is_sold_stage(self, stage_name: str | None) -> bool:
        return stage_name is not None and self._sold in stage_name.lower()

    def on_transition(self, result: TransitionResult) -> tuple[StockAdjustment, ...]:
        adjustments = tuple(
            adj for entry in result.logs
            if (adj := self._adjustment_for(entry, result.items)) is not None
        )
        return self._apply(adjustments)

    def revert(self, adjustments: Iterable[StockAdjustment]) -> tuple[StockAdjustment, ...]:
        """Take back adjustments returned by ``on_transition``, newest first."""
        return self._apply(
            StockAdjustment(adj.sku, adj.name, -adj.delta, "undone")
            for adj in reversed(tuple(adjustments))
            if adj.delta
        )

    def _adjustment_for(
        self, entry: ActivityLogEntry, items: Sequence[KanbanItem],
    ) -> StockAdjustment | None:
        meta = entry.metadata
        match entry.action:
            case ActivityAction.MOVED if meta.get("deleted"):
                qty, sku = int(meta["deleted_quantity"]), meta.get("sku")
            case ActivityAction.MOVED if "edited_fields" in meta:
                delta = int(meta.get("quantity_delta", 0))
                target = find_item(items, entry.item_id) if entry.item_id else None
                if delta == 0 or target is None or not target.sku or not self.is_ready_stage(entry.to_stage):
                    return None
                return StockAdjustment(target.sku, target.name, delta, "edited")
            case ActivityAction.MOVED if "component_sku" in meta:
                qty, sku = int(meta["consumed"]), meta.get("component_sku")
            case ActivityAction.MOVED:
                target = find_item(items, meta.get("target_item_id", ""))
                qty, sku = int(meta["quantity"]), target.sku if target is not None else None
            case ActivityAction.SOLD | ActivityAction.ADDED:
                qty, sku = int(meta["quantity"]), meta.get("sku")
            case ActivityAction.REJECTED:
                qty, sku = int(meta["rejected_qty"]), meta.get("sku")
            case _:
                return None
        if not sku:
            return None

        to_ready = self.is_ready_stage(entry.to_stage)
        from_ready = self.is_ready_stage(entry.from_stage)
        if to_ready and not from_ready:
            return StockAdjustment(sku, entry.item_name, qty, "entered_ready_stage")
        if self.is_sold_stage(entry.to_stage) and not self.is_sold_stage(entry.from_stage):
            return StockAdjustment(sku, entry.item_name, -qty, "sold")
        if from_ready and not to_ready:
            return StockAdjustment(sku, entry.item_name, -qty, "left_ready_stage")
        return None

    def _apply(self, adjustments: Iterable[StockAdjustment]) -> tuple[StockAdjustment, ...]:
        applied = []
        for adj in adjustments:
            old_qty = self._ledger.quantity(adj.sku)
            new_qty = self._ledger.adjust(adj.sku, adj.name, adj.delta)
            applied.append(replace(adj, delta=new_qty - old_qty))
            logger.info(
                "inventory_adjusted",
                extra={
                    "sku": adj.sku,
                    "requested_delta": adj.delta,
                    "delta": new_qty - old_qty,
                    "reason": adj.reason,
                    "stock_quantity": new_qty,
                },
            )
        return tuple(applied)
