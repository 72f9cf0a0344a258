"""
Board selector -- read-only queries over persisted items, logs and stock.

Returns frozen domain values (``KanbanItem``, ``ActivityLogEntry``) rebuilt
from the ORM rows, ordered the way the engine expects them: items in
creation order, log entries in append (``seq``) order.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select

from mes_kernel.domain.activity import ActivityLog, ActivityLogEntry
from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.domain.values import ItemStatus
from mes_kernel.models.activity_log import ActivityLogModel
from mes_kernel.models.inventory_stock import InventoryStockModel
from mes_kernel.models.kanban_item import KanbanItemModel
from mes_kernel.selectors.base import BaseSelector


class BoardSelector(BaseSelector[KanbanItemModel]):
    """Queries backing the persistence collaborator and dashboards."""

    def items(self) -> tuple[KanbanItem, ...]:
        rows = self.session.scalars(
            select(KanbanItemModel).order_by(
                KanbanItemModel.created_at, KanbanItemModel.id,
            )
        ).all()
        return tuple(row.to_dto() for row in rows)

    def item(self, item_id: str) -> KanbanItem | None:
        row = self.session.get(KanbanItemModel, item_id)
        return row.to_dto() if row is not None else None

    def active_at_stage(self, stage_id: str) -> tuple[KanbanItem, ...]:
        rows = self.session.scalars(
            select(KanbanItemModel)
            .where(
                KanbanItemModel.stage_id == stage_id,
                KanbanItemModel.status == ItemStatus.ACTIVE.value,
            )
            .order_by(KanbanItemModel.created_at, KanbanItemModel.id)
        ).all()
        return tuple(row.to_dto() for row in rows)

    def log(self) -> ActivityLog:
        rows = self.session.scalars(
            select(ActivityLogModel).order_by(ActivityLogModel.seq)
        ).all()
        return ActivityLog(row.to_dto() for row in rows)

    def log_since(self, ts: datetime) -> tuple[ActivityLogEntry, ...]:
        rows = self.session.scalars(
            select(ActivityLogModel)
            .where(ActivityLogModel.timestamp >= ts)
            .order_by(ActivityLogModel.seq)
        ).all()
        return tuple(row.to_dto() for row in rows)

    def log_for_item(self, item_id: str) -> tuple[ActivityLogEntry, ...]:
        rows = self.session.scalars(
            select(ActivityLogModel)
            .where(ActivityLogModel.item_id == item_id)
            .order_by(ActivityLogModel.seq)
        ).all()
        return tuple(row.to_dto() for row in rows)

    def last_log_seq(self) -> int:
        """Highest log sequence number, 0 when the trail is empty."""
        return self.session.scalar(
            select(func.coalesce(func.max(ActivityLogModel.seq), 0))
        )

    def stock_quantity(self, sku: str) -> int:
        qty = self.session.scalar(
            select(InventoryStockModel.stock_quantity).where(
                InventoryStockModel.sku == sku
            )
        )
        return qty or 0
