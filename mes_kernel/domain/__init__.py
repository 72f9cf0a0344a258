"""
Pure domain layer.

This module contains pure value objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable. Time and identity are injected through
Clock and IdGenerator.
"""

from mes_kernel.domain.activity import ActivityLog, ActivityLogEntry
from mes_kernel.domain.blueprint import WorkflowBlueprint, WorkflowStage
from mes_kernel.domain.clock import Clock, DeterministicClock, SequentialClock, SystemClock
from mes_kernel.domain.context import WorkflowContext
from mes_kernel.domain.ids import IdGenerator, SequentialIdGenerator, UuidIdGenerator
from mes_kernel.domain.kanban import (
    AssemblyProgress,
    KanbanItem,
    active_items,
    find_container,
    find_item,
    find_loose_item,
    items_at_stage,
    remove_item,
    replace_item,
    require_item,
)
from mes_kernel.domain.master_data import (
    BOMComponent,
    MasterCollection,
    MasterDataCatalog,
    MasterMaterial,
    MasterProduct,
    SearchHit,
)
from mes_kernel.domain.values import (
    SALES_CHANNEL_LABELS,
    ActivityAction,
    ItemStatus,
    MaterialCategory,
    SalesChannel,
    StageLogicType,
)

__all__ = [
    # Values
    "ActivityAction",
    "ItemStatus",
    "MaterialCategory",
    "SalesChannel",
    "SALES_CHANNEL_LABELS",
    "StageLogicType",
    # Blueprint
    "WorkflowBlueprint",
    "WorkflowStage",
    "WorkflowContext",
    # Master data
    "BOMComponent",
    "MasterCollection",
    "MasterDataCatalog",
    "MasterMaterial",
    "MasterProduct",
    "SearchHit",
    # Kanban
    "AssemblyProgress",
    "KanbanItem",
    "active_items",
    "find_container",
    "find_item",
    "find_loose_item",
    "items_at_stage",
    "remove_item",
    "replace_item",
    "require_item",
    # Activity
    "ActivityLog",
    "ActivityLogEntry",
    # Infrastructure
    "Clock",
    "DeterministicClock",
    "SequentialClock",
    "SystemClock",
    "IdGenerator",
    "SequentialIdGenerator",
    "UuidIdGenerator",
]
