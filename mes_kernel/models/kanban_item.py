"""
Module: mes_kernel.models.kanban_item
Responsibility: ORM persistence for kanban items (batches on the board).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ (for DTO conversion) only.

Invariants enforced:
    - quantity >= 0 (CHECK constraint); zero only on consumed rows is
      guaranteed by the domain type on load.
    - Lineage lists and assembly progress are stored as JSON and restored
      as tuples / AssemblyProgress.

Failure modes:
    - IntegrityError on duplicate id or negative quantity.
    - ValueError from KanbanItem if a row violates a domain invariant.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from mes_kernel.db.base import Base
from mes_kernel.domain.kanban import AssemblyProgress, KanbanItem
from mes_kernel.domain.values import ItemStatus, SalesChannel


class KanbanItemModel(Base):
    """
    One batch row.

    Contract:
        Mirrors ``KanbanItem`` field for field.  Rows are mutable: a
        transition updates stage, quantity and status in place; only an
        explicit delete removes a row.
    """

    __tablename__ = "kanban_items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_kanban_items_quantity_non_negative"),
        Index("idx_kanban_items_stage", "stage_id", "status"),
        Index("idx_kanban_items_sku", "sku"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    stage_id: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    collection: Mapped[str | None] = mapped_column(String(100), nullable=True)
    emoji: Mapped[str | None] = mapped_column(String(16), nullable=True)
    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    child_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    merged_from: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    sales_channel: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Present only on assembly containers
    target_sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assembly_progress: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<KanbanItem {self.id} {self.sku} x{self.quantity} @{self.stage_id} {self.status}>"

    def to_dto(self) -> KanbanItem:
        """Convert ORM row to the frozen domain item."""
        assembly = None
        if self.target_sku is not None:
            assembly = AssemblyProgress(
                self.target_sku,
                {k: int(v) for k, v in (self.assembly_progress or {}).items()},
            )
        return KanbanItem(
            id=self.id,
            name=self.name,
            sku=self.sku,
            stage_id=self.stage_id,
            quantity=self.quantity,
            collection=self.collection,
            emoji=self.emoji,
            price=Decimal(self.price) if self.price is not None else Decimal("0"),
            parent_id=self.parent_id,
            child_ids=tuple(self.child_ids or ()),
            merged_from=tuple(self.merged_from or ()),
            status=ItemStatus(self.status),
            sales_channel=SalesChannel(self.sales_channel) if self.sales_channel else None,
            assembly=assembly,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def apply_dto(self, item: KanbanItem) -> None:
        """Overwrite this row's columns from a domain item with the same id."""
        if item.id != self.id:
            raise ValueError(f"Cannot apply item {item.id} onto row {self.id}")
        self.name = item.name
        self.sku = item.sku
        self.stage_id = item.stage_id
        self.quantity = item.quantity
        self.collection = item.collection
        self.emoji = item.emoji
        self.price = item.price
        self.parent_id = item.parent_id
        self.child_ids = list(item.child_ids)
        self.merged_from = list(item.merged_from)
        self.status = item.status.value
        self.sales_channel = item.sales_channel.value if item.sales_channel else None
        if item.assembly is not None:
            self.target_sku = item.assembly.target_sku
            self.assembly_progress = dict(item.assembly.progress)
        else:
            self.target_sku = None
            self.assembly_progress = None
        self.created_at = item.created_at
        self.updated_at = item.updated_at

    @classmethod
    def from_dto(cls, item: KanbanItem) -> KanbanItemModel:
        """Create ORM row from a domain item."""
        row = cls(id=item.id)
        row.apply_dto(item)
        return row
