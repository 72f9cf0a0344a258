"""ORM models for the production board."""

from mes_kernel.models.activity_log import ActivityLogModel
from mes_kernel.models.inventory_stock import InventoryStockModel
from mes_kernel.models.kanban_item import KanbanItemModel

__all__ = [
    "ActivityLogModel",
    "InventoryStockModel",
    "KanbanItemModel",
]
