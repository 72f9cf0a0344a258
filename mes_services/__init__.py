"""
mes_services -- imperative shell around the pure engines.

Persistence (``workflow_store``), inventory synchronisation
(``inventory_sync``), the daily recap (``daily_recap``) and the single
writer that ties them to the transition engine (``workflow_service``).
"""

from mes_services.daily_recap import format_daily_recap
from mes_services.inventory_sync import (
    InMemoryInventoryLedger,
    InventoryLedger,
    InventorySync,
    SqlInventoryLedger,
    StockAdjustment,
)
from mes_services.workflow_service import (
    INVALID_REQUEST,
    AddRequest,
    AllocateRequest,
    DeleteRequest,
    EditRequest,
    MoveRequest,
    RejectRequest,
    SellRequest,
    SendToWorkflowRequest,
    SplitRequest,
    TransitionOutcome,
    WorkflowRequest,
    WorkflowService,
)
from mes_services.workflow_store import SqlWorkflowStore, WorkflowStore, persist_result

__all__ = [
    "INVALID_REQUEST",
    "AddRequest",
    "AllocateRequest",
    "DeleteRequest",
    "EditRequest",
    "InMemoryInventoryLedger",
    "InventoryLedger",
    "InventorySync",
    "MoveRequest",
    "RejectRequest",
    "SellRequest",
    "SendToWorkflowRequest",
    "SplitRequest",
    "SqlInventoryLedger",
    "SqlWorkflowStore",
    "StockAdjustment",
    "TransitionOutcome",
    "WorkflowRequest",
    "WorkflowService",
    "WorkflowStore",
    "format_daily_recap",
    "persist_result",
]
