"""
mes_services.workflow_service -- the board's single writer.

Responsibility:
    Hold the authoritative ``(items, logs, version)`` snapshot of one
    pipeline and serialise every change to it: read the snapshot, run a
    pure transition, persist the diff, sync inventory, then publish the new
    snapshot.  Engine errors are converted here into an unsuccessful
    ``TransitionOutcome``; nothing past this boundary sees an exception for
    a rejected request.

Architecture position:
    Services -- stateful orchestration over ``mes_engines`` and the
    persistence and inventory collaborators.

Invariants enforced:
    - Single writer: read-compute-write runs under one lock, so two
      requests never act on the same snapshot.
    - Optimistic check: a request carrying ``expected_version`` is refused
      with STALE_SNAPSHOT when the board has moved on.
    - A refused request leaves snapshot, store, inventory and history
      untouched.
    - Undo restores items, never the trail: it appends an ``undone`` entry.

Failure modes:
    - Persistence errors (SQLAlchemy) propagate; the in-memory snapshot is
      only replaced after the store accepted the diff.

Audit relevance:
    Every request runs inside ``LogContext.bind`` with a fresh correlation
    id, the actor, the workflow id and the request type, so the engine
    traces and the service records of one request share those fields.

Usage:
    service = WorkflowService(context, TransitionEngine(ids, clock))
    outcome = service.apply(MoveRequest(
        actor="budi", item_id="item-003", to_stage_id="stg-assembly", moved_qty=2,
    ))
    if not outcome.is_success:
        print(outcome.error_code, outcome.error_message)
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from mes_engines.routing import DropDecision, classify_drop
from mes_engines.stats import StageSummary, WorkflowStats, calc_stats, stage_summaries
from mes_engines.transitions import ItemUpdate, TransitionEngine, TransitionResult
from mes_kernel.domain.activity import ActivityLog, ActivityLogEntry
from mes_kernel.domain.context import WorkflowContext
from mes_kernel.domain.kanban import KanbanItem, require_item
from mes_kernel.domain.values import SalesChannel
from mes_kernel.exceptions import MesKernelError, NothingToUndoError, StaleSnapshotError
from mes_kernel.logging_config import LogContext, get_logger
from mes_services.daily_recap import format_daily_recap
from mes_services.inventory_sync import InventorySync, StockAdjustment
from mes_services.workflow_store import WorkflowStore, persist_result

logger = get_logger("services.workflow")

INVALID_REQUEST = "INVALID_REQUEST"


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class MoveRequest:
    actor: str
    item_id: str
    to_stage_id: str
    moved_qty: int
    expected_version: int | None = None


@dataclass(frozen=True)
class SendToWorkflowRequest:
    actor: str
    item_id: str
    to_stage_id: str
    moved_qty: int
    expected_version: int | None = None


@dataclass(frozen=True)
class SplitRequest:
    actor: str
    item_id: str
    to_stage_id: str
    consumed_count: int
    yield_count: int
    child_name: str
    child_sku: str | None = None
    expected_version: int | None = None


@dataclass(frozen=True)
class AllocateRequest:
    actor: str
    item_id: str
    to_stage_id: str
    allocate_qty: int
    product_sku: str
    expected_version: int | None = None


@dataclass(frozen=True)
class SellRequest:
    actor: str
    item_id: str
    to_stage_id: str
    channel: SalesChannel
    sale_price: Decimal = Decimal("0")
    expected_version: int | None = None


@dataclass(frozen=True)
class AddRequest:
    actor: str
    name: str
    sku: str | None
    stage_id: str
    quantity: int
    collection: str | None = None
    emoji: str | None = None
    expected_version: int | None = None


@dataclass(frozen=True)
class EditRequest:
    actor: str
    item_id: str
    updates: ItemUpdate = field(default_factory=ItemUpdate)
    expected_version: int | None = None


@dataclass(frozen=True)
class DeleteRequest:
    actor: str
    item_id: str
    expected_version: int | None = None


@dataclass(frozen=True)
class RejectRequest:
    actor: str
    item_id: str
    reject_qty: int
    expected_version: int | None = None


WorkflowRequest = (
    MoveRequest | SendToWorkflowRequest | SplitRequest | AllocateRequest
    | SellRequest | AddRequest | EditRequest | DeleteRequest | RejectRequest
)


# =============================================================================
# Outcome
# =============================================================================


@dataclass(frozen=True)
class TransitionOutcome:
    """
    Result of ``WorkflowService.apply`` / ``undo``.

    Either the new snapshot and the entries written, or an error code and
    message with the snapshot unchanged.
    """

    success: bool
    version: int
    items: tuple[KanbanItem, ...] = ()
    logs: tuple[ActivityLogEntry, ...] = ()
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def succeeded(
        cls, result: TransitionResult, version: int,
    ) -> TransitionOutcome:
        return cls(success=True, version=version, items=result.items, logs=result.logs)

    @classmethod
    def failed(cls, error_code: str, message: str, version: int) -> TransitionOutcome:
        return cls(success=False, version=version, error_code=error_code, error_message=message)

    @property
    def is_success(self) -> bool:
        return self.success

    @property
    def log(self) -> ActivityLogEntry | None:
        return self.logs[0] if self.logs else None


@dataclass(frozen=True)
class _HistoryFrame:
    items: tuple[KanbanItem, ...]
    entries: tuple[ActivityLogEntry, ...]
    stock: tuple[StockAdjustment, ...] = ()


# =============================================================================
# Service
# =============================================================================


class WorkflowService:
    """
    Owns the board snapshot of one pipeline.

    Contract:
        ``apply`` and ``undo`` never raise for a rejected request; they
        return a ``TransitionOutcome`` with ``error_code`` set to the
        typed error's ``code`` (or INVALID_REQUEST for malformed input).
    Guarantees:
        - ``version`` increases by one per successful ``apply`` / ``undo``.
        - At most ``history_depth`` snapshots are kept for undo.
    Non-goals:
        - No redo.  Undoing an undo is not supported.
        - Does not commit the store's transaction.
    """

    def __init__(
        self,
        context: WorkflowContext,
        engine: TransitionEngine,
        store: WorkflowStore | None = None,
        inventory: InventorySync | None = None,
        history_depth: int = 50,
        initial_items: Sequence[KanbanItem] = (),
    ):
        if history_depth < 1:
            raise ValueError(f"history_depth must be >= 1, got {history_depth}")
        self._context = context
        self._engine = engine
        self._store = store
        self._inventory = inventory
        self._lock = threading.Lock()
        self._history: deque[_HistoryFrame] = deque(maxlen=history_depth)
        self._version = 0

        if store is not None:
            self._items = store.load_items()
            self._logs = store.load_logs()
            if not self._items and initial_items:
                for item in initial_items:
                    store.save_item(item)
                self._items = tuple(initial_items)
        else:
            self._items = tuple(initial_items)
            self._logs = ActivityLog()

        logger.info(
            "workflow_service_started",
            extra={
                "workflow_id": context.workflow_id,
                "item_count": len(self._items),
                "log_count": len(self._logs),
            },
        )

    # ------------------------------------------------------------------
    # Snapshot access
    # ------------------------------------------------------------------

    @property
    def context(self) -> WorkflowContext:
        return self._context

    @property
    def items(self) -> tuple[KanbanItem, ...]:
        return self._items

    @property
    def logs(self) -> ActivityLog:
        return self._logs

    @property
    def version(self) -> int:
        return self._version

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    def item(self, item_id: str) -> KanbanItem:
        return require_item(self._items, item_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply(self, request: WorkflowRequest) -> TransitionOutcome:
        """Run one request against the current snapshot."""
        with self._lock, LogContext.bind(
            correlation_id=str(uuid4()),
            actor=request.actor,
            workflow_id=self._context.workflow_id,
            item_id=getattr(request, "item_id", None),
            request_type=type(request).__name__,
        ):
            before = self._items
            try:
                self._check_version(request.expected_version)
                result = self._dispatch(request, before)
                self._commit(before, result)
            except MesKernelError as exc:
                logger.warning(
                    "request_rejected",
                    extra={"error_code": exc.code, "detail": str(exc)},
                )
                return TransitionOutcome.failed(exc.code, str(exc), self._version)
            except (ValueError, TypeError) as exc:
                logger.warning(
                    "request_invalid",
                    extra={"error_code": INVALID_REQUEST, "detail": str(exc)},
                )
                return TransitionOutcome.failed(INVALID_REQUEST, str(exc), self._version)

            stock = self._inventory.on_transition(result) if self._inventory is not None else ()
            self._history.append(_HistoryFrame(before, result.logs, stock))

            logger.info(
                "request_applied",
                extra={"version": self._version, "log_entries": len(result.logs)},
            )
            return TransitionOutcome.succeeded(result, self._version)

    def undo(self, actor: str, expected_version: int | None = None) -> TransitionOutcome:
        """Restore the snapshot before the most recent successful request."""
        with self._lock, LogContext.bind(
            correlation_id=str(uuid4()),
            actor=actor,
            workflow_id=self._context.workflow_id,
            request_type="UndoRequest",
        ):
            before = self._items
            try:
                self._check_version(expected_version)
                if not self._history:
                    raise NothingToUndoError()
                frame = self._history[-1]
                result = self._engine.restore(
                    before, snapshot=frame.items, undone_entries=frame.entries, actor=actor,
                )
                self._commit(before, result)
            except MesKernelError as exc:
                logger.warning("undo_rejected", extra={"error_code": exc.code})
                return TransitionOutcome.failed(exc.code, str(exc), self._version)

            self._history.pop()
            if self._inventory is not None:
                self._inventory.revert(frame.stock)

            logger.info("undo_applied", extra={"version": self._version})
            return TransitionOutcome.succeeded(result, self._version)

    def _check_version(self, expected: int | None) -> None:
        if expected is not None and expected != self._version:
            raise StaleSnapshotError(expected, self._version)

    def _commit(self, before: tuple[KanbanItem, ...], result: TransitionResult) -> None:
        # Duplicate entry ids surface here, before the store sees anything.
        logs = self._logs.append(*result.logs)
        if self._store is not None:
            persist_result(self._store, before, result)
        self._items = result.items
        self._logs = logs
        self._version += 1

    def _dispatch(self, request: WorkflowRequest, items: tuple[KanbanItem, ...]) -> TransitionResult:
        engine, ctx = self._engine, self._context
        match request:
            case MoveRequest():
                return engine.move(
                    items, item_id=request.item_id, to_stage_id=request.to_stage_id,
                    moved_qty=request.moved_qty, actor=request.actor, context=ctx,
                )
            case SendToWorkflowRequest():
                return engine.send_to_workflow(
                    items, item_id=request.item_id, to_stage_id=request.to_stage_id,
                    moved_qty=request.moved_qty, actor=request.actor, context=ctx,
                )
            case SplitRequest():
                return engine.split(
                    items, item_id=request.item_id, to_stage_id=request.to_stage_id,
                    consumed_count=request.consumed_count, yield_count=request.yield_count,
                    child_name=request.child_name, child_sku=request.child_sku,
                    actor=request.actor, context=ctx,
                )
            case AllocateRequest():
                return engine.allocate_to_assembly(
                    items, item_id=request.item_id, to_stage_id=request.to_stage_id,
                    allocate_qty=request.allocate_qty, product_sku=request.product_sku,
                    actor=request.actor, context=ctx,
                )
            case SellRequest():
                return engine.sell(
                    items, item_id=request.item_id, to_stage_id=request.to_stage_id,
                    channel=request.channel, sale_price=request.sale_price,
                    actor=request.actor, context=ctx,
                )
            case AddRequest():
                return engine.add(
                    items, name=request.name, sku=request.sku, stage_id=request.stage_id,
                    quantity=request.quantity, actor=request.actor, context=ctx,
                    collection=request.collection, emoji=request.emoji,
                )
            case EditRequest():
                return engine.edit(
                    items, item_id=request.item_id, updates=request.updates,
                    actor=request.actor, context=ctx,
                )
            case DeleteRequest():
                return engine.delete(
                    items, item_id=request.item_id, actor=request.actor, context=ctx,
                )
            case RejectRequest():
                return engine.reject(
                    items, item_id=request.item_id, reject_qty=request.reject_qty,
                    actor=request.actor, context=ctx,
                )
            case _:
                raise TypeError(f"Unsupported request type: {type(request).__name__}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def classify_drop(self, item_id: str, stage_id: str) -> DropDecision:
        """What dropping an item onto a stage would require.  Raises the
        same typed errors the matching transition would."""
        return classify_drop(self.item(item_id), stage_id, self._context)

    def stats(self, as_of: datetime) -> WorkflowStats:
        return calc_stats(self._items, self._logs, self._context.blueprint, as_of)

    def stage_summaries(self) -> tuple[StageSummary, ...]:
        return stage_summaries(self._items, self._context.blueprint)

    def recap(self, as_of: datetime) -> str:
        return format_daily_recap(self.stats(as_of), as_of)
