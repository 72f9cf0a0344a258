"""
Module: mes_kernel.models.inventory_stock
Responsibility: ORM persistence for the per-SKU ready-stock record that the
    inventory collaborator keeps in step with the board.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - sku is unique.
    - stock_quantity >= 0 (CHECK constraint; adjustments floor at zero).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from mes_kernel.db.base import Base


class InventoryStockModel(Base):
    """Stock-on-hand for one finished-goods SKU."""

    __tablename__ = "inventory_stock"

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_inventory_stock_non_negative"),
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    stock_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<InventoryStock {self.sku} qty={self.stock_quantity}>"
