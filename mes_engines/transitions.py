"""
Module: mes_engines.transitions
Responsibility:
    The production board's state machine.  Each public method takes the
    current item snapshot, a ``WorkflowContext`` and a request, and returns
    a complete new snapshot plus the activity log entries describing it.

Architecture position:
    Engines -- pure calculation layer.  The only non-pure inputs are the
    injected ``IdGenerator`` and ``Clock``; there is no other I/O.

Invariants enforced:
    - Quantity conservation: every unit removed from an item reappears in a
      new item, an existing item, or an item in a terminal status.  Split
      yields and assembly completions are the only ratio changes, and both
      are recorded in their log metadata.
    - No partial transition: all validation happens before the first new
      item is built; on error nothing is returned.
    - Terminal statuses are final: only active items take part in a
      transition, and only ``delete`` erases an item.
    - Audit completeness: every successful call returns at least one log
      entry; stage names are snapshotted into it.

Failure modes:
    - ItemNotFoundError / StageNotFoundError for unresolved ids.
    - InvalidQuantityError for quantities outside 1..available.
    - CategoryNotAllowedError from the stage allow-list gate.
    - ProductNotFoundError / NoMatchingBOMError for invalid assembly targets.
    - ItemNotActiveError, ChannelNotAllowedError, StageLogicMismatchError,
      AssemblyContainerError for requests that do not fit the item or stage.

Audit relevance:
    Log metadata is JSON-native (ints, strings, lists) so the trail can be
    stored and replayed verbatim.  ``mes_engines.conservation`` recomputes
    the expected unit delta from it.

Usage:
    engine = TransitionEngine(ids=UuidIdGenerator(), clock=SystemClock())
    result = engine.move(
        items, item_id="item-1", to_stage_id="stg-finishing",
        moved_qty=3, actor="budi", context=ctx,
    )
    items, logs = result.items, result.logs
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from mes_engines.assembly import plan_completion
from mes_engines.categories import check_category_gate
from mes_engines.tracer import traced_engine
from mes_kernel.domain.activity import ActivityLogEntry
from mes_kernel.domain.blueprint import WorkflowStage
from mes_kernel.domain.clock import Clock
from mes_kernel.domain.context import WorkflowContext
from mes_kernel.domain.ids import IdGenerator
from mes_kernel.domain.kanban import (
    AssemblyProgress,
    KanbanItem,
    find_container,
    find_item,
    find_loose_item,
    remove_item,
    replace_item,
    require_item,
)
from mes_kernel.domain.values import (
    ActivityAction,
    ItemStatus,
    SalesChannel,
    StageLogicType,
)
from mes_kernel.exceptions import (
    AssemblyContainerError,
    ChannelNotAllowedError,
    InvalidQuantityError,
    ItemNotActiveError,
    NoMatchingBOMError,
    ProductNotFoundError,
    StageLogicMismatchError,
)
from mes_kernel.logging_config import get_logger

logger = get_logger("engines.transitions")

ENGINE_VERSION = "1.0"

ASSEMBLY_NAME_PREFIX = "[Assembly] "
CONTAINER_SKU_PREFIX = "WIP-"
DELETED_NAME_PREFIX = "[DELETED] "
REJECTED_NAME_PREFIX = "[REJECT] "
DELETED_STAGE_LABEL = "Deleted"
REJECT_STAGE_LABEL = "Waste / Reject"


class _Unset(Enum):
    TOKEN = "unset"


UNSET = _Unset.TOKEN


@dataclass(frozen=True)
class ItemUpdate:
    """Fields to change on ``edit``.  Fields left ``UNSET`` are untouched;
    ``None`` clears an optional field."""
    name: str | _Unset = UNSET
    sku: str | None | _Unset = UNSET
    quantity: int | _Unset = UNSET
    collection: str | None | _Unset = UNSET
    emoji: str | None | _Unset = UNSET

    def changes(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in (
                ("name", self.name),
                ("sku", self.sku),
                ("quantity", self.quantity),
                ("collection", self.collection),
                ("emoji", self.emoji),
            )
            if value is not UNSET
        }


@dataclass(frozen=True)
class TransitionResult:
    """New item snapshot plus the log entries produced by one transition."""
    items: tuple[KanbanItem, ...]
    logs: tuple[ActivityLogEntry, ...]

    @property
    def log(self) -> ActivityLogEntry:
        """The primary (first) log entry."""
        return self.logs[0]

    def item(self, item_id: str) -> KanbanItem | None:
        return find_item(self.items, item_id)


def _require_active(item: KanbanItem) -> None:
    if not item.is_active:
        raise ItemNotActiveError(item.id, item.status.value)


def _require_plain(item: KanbanItem, operation: str) -> None:
    if item.is_container:
        raise AssemblyContainerError(item.id, operation)


def _require_qty(item: KanbanItem, qty: int, field: str = "quantity") -> None:
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0 or qty > item.quantity:
        raise InvalidQuantityError(item.id, qty, item.quantity, field=field)


def _require_positive(item_id: str | None, qty: int, field: str) -> None:
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise InvalidQuantityError(item_id, qty, None, field=field)


def _require_logic(stage: WorkflowStage, operation: str, expected: StageLogicType) -> None:
    if stage.logic_type is not expected:
        raise StageLogicMismatchError(stage.id, operation, stage.logic_type.value)


def _forbid_exit(stage: WorkflowStage, operation: str) -> None:
    if stage.is_exit:
        raise StageLogicMismatchError(stage.id, operation, stage.logic_type.value)


class TransitionEngine:
    """
    Pure state transitions for kanban items.

    Contract:
        Every public method returns a ``TransitionResult`` holding the full
        new item snapshot (input order preserved, new items appended) and
        the log entries of the call, or raises a ``TransitionError`` /
        ``NotFoundError`` without producing anything.
    Guarantees:
        - Inputs are never mutated.
        - All entries of one call share one timestamp from the clock.
        - Ids come only from the injected generator.
    Non-goals:
        - Does not persist, serialise, or undo; see ``mes_services``.
        - Does not decide which transition a drop means; see
          ``mes_engines.routing``.
    """

    def __init__(self, ids: IdGenerator, clock: Clock):
        self._ids = ids
        self._clock = clock

    # ------------------------------------------------------------------
    # Shared builders
    # ------------------------------------------------------------------

    def _entry(
        self,
        now: datetime,
        actor: str,
        action: ActivityAction,
        item_name: str,
        from_stage: str | None,
        to_stage: str | None,
        logic_type: StageLogicType,
        metadata: dict[str, Any],
        item_id: str | None,
    ) -> ActivityLogEntry:
        return ActivityLogEntry(
            id=self._ids.next_id("log"),
            timestamp=now,
            user=actor,
            action=action,
            item_name=item_name,
            from_stage=from_stage,
            to_stage=to_stage,
            logic_type=logic_type,
            metadata=metadata,
            item_id=item_id,
        )

    def _new_item(self, now: datetime, **fields: Any) -> KanbanItem:
        return KanbanItem(
            id=self._ids.next_id("item"),
            created_at=now,
            updated_at=now,
            **fields,
        )

    # ------------------------------------------------------------------
    # Passthrough move
    # ------------------------------------------------------------------

    @traced_engine(
        "transition.move", ENGINE_VERSION,
        fingerprint_fields=("item_id", "to_stage_id", "moved_qty"),
    )
    def move(
        self,
        items: Sequence[KanbanItem],
        *,
        item_id: str,
        to_stage_id: str,
        moved_qty: int,
        actor: str,
        context: WorkflowContext,
    ) -> TransitionResult:
        """Move ``moved_qty`` units of an item to another stage unchanged.

        The moved units join an existing loose pile of the same SKU at the
        destination if there is one; when that takes the whole item, the
        source leaves the board.  Otherwise a partial move splits off a new
        parent-linked item and a full move relocates the item itself.
        """
        item = require_item(items, item_id)
        stage = context.stage(to_stage_id)
        return self._passthrough(items, item, stage, moved_qty, actor, context, "move")

    @traced_engine(
        "transition.send_to_workflow", ENGINE_VERSION,
        fingerprint_fields=("item_id", "to_stage_id", "moved_qty"),
    )
    def send_to_workflow(
        self,
        items: Sequence[KanbanItem],
        *,
        item_id: str,
        to_stage_id: str,
        moved_qty: int,
        actor: str,
        context: WorkflowContext,
    ) -> TransitionResult:
        """Passthrough move whose destination may belong to a linked blueprint."""
        item = require_item(items, item_id)
        stage = context.any_stage(to_stage_id)
        return self._passthrough(
            items, item, stage, moved_qty, actor, context, "send to workflow",
        )

    def _passthrough(
        self,
        items: Sequence[KanbanItem],
        item: KanbanItem,
        stage: WorkflowStage,
        moved_qty: int,
        actor: str,
        context: WorkflowContext,
        operation: str,
    ) -> TransitionResult:
        _require_active(item)
        _require_plain(item, operation)
        _forbid_exit(stage, operation)
        _require_qty(item, moved_qty)
        check_category_gate(item, stage, context.catalog)

        now = self._clock.now()
        from_name = context.stage_name(item.stage_id)
        full = moved_qty == item.quantity
        pile = find_loose_item(
            items, item.sku, stage.id, exclude_id=item.id, match_missing_sku=True,
        )

        if pile is not None:
            result = replace_item(
                items, pile.evolve(quantity=pile.quantity + moved_qty, updated_at=now),
            )
            if full:
                result = remove_item(result, item.id)
            else:
                result = replace_item(
                    result, item.evolve(quantity=item.quantity - moved_qty, updated_at=now),
                )
            target_id = pile.id
        elif full:
            result = replace_item(items, item.evolve(stage_id=stage.id, updated_at=now))
            target_id = item.id
        else:
            moved = self._new_item(
                now,
                name=item.name,
                sku=item.sku,
                stage_id=stage.id,
                quantity=moved_qty,
                collection=item.collection,
                emoji=item.emoji,
                price=item.price,
                parent_id=item.id,
            )
            result = replace_item(
                items, item.evolve(quantity=item.quantity - moved_qty, updated_at=now),
            ) + (moved,)
            target_id = moved.id

        entry = self._entry(
            now, actor, ActivityAction.MOVED, item.name,
            from_name, stage.name, StageLogicType.PASSTHROUGH,
            {
                "quantity": moved_qty,
                "source_item_id": item.id,
                "target_item_id": target_id,
                "merged_into_existing": pile is not None,
                "source_removed": pile is not None and full,
                "to_stage_id": stage.id,
            },
            item.id,
        )
        logger.info(
            "move_completed",
            extra={
                "item_id": item.id,
                "target_item_id": target_id,
                "to_stage_id": stage.id,
                "quantity": moved_qty,
                "merged_into_existing": pile is not None,
            },
        )
        return TransitionResult(result, (entry,))

    # ------------------------------------------------------------------
    # Split
    # ------------------------------------------------------------------

    @traced_engine(
        "transition.split", ENGINE_VERSION,
        fingerprint_fields=("item_id", "to_stage_id", "consumed_count", "yield_count", "child_sku"),
    )
    def split(
        self,
        items: Sequence[KanbanItem],
        *,
        item_id: str,
        to_stage_id: str,
        consumed_count: int,
        yield_count: int,
        child_name: str,
        child_sku: str | None,
        actor: str,
        context: WorkflowContext,
    ) -> TransitionResult:
        """Transform ``consumed_count`` units of a parent into one child batch
        of ``yield_count`` units of another material."""
        parent = require_item(items, item_id)
        stage = context.stage(to_stage_id)
        _require_active(parent)
        _require_plain(parent, "split")
        _require_logic(stage, "split", StageLogicType.SPLIT)
        _require_qty(parent, consumed_count, field="consumed_count")
        _require_positive(parent.id, yield_count, "yield_count")
        if not child_name:
            raise ValueError("child_name must not be empty")
        check_category_gate(parent, stage, context.catalog)

        now = self._clock.now()
        child = self._new_item(
            now,
            name=child_name,
            sku=child_sku,
            stage_id=stage.id,
            quantity=yield_count,
            collection=parent.collection,
            parent_id=parent.id,
        )
        remaining = parent.quantity - consumed_count
        updated_parent = parent.evolve(
            quantity=remaining,
            status=ItemStatus.CONSUMED if remaining == 0 else ItemStatus.ACTIVE,
            child_ids=parent.child_ids + (child.id,),
            updated_at=now,
        )
        result = replace_item(items, updated_parent) + (child,)

        entry = self._entry(
            now, actor, ActivityAction.SPLIT, parent.name,
            context.stage_name(parent.stage_id), stage.name, StageLogicType.SPLIT,
            {
                "consumed": consumed_count,
                "yield": yield_count,
                "child_count": yield_count,
                "child_item_id": child.id,
                "child_sku": child_sku,
            },
            parent.id,
        )
        logger.info(
            "split_completed",
            extra={
                "item_id": parent.id,
                "child_item_id": child.id,
                "consumed": consumed_count,
                "yield": yield_count,
                "parent_remaining": remaining,
            },
        )
        return TransitionResult(result, (entry,))

    # ------------------------------------------------------------------
    # Assembly allocation
    # ------------------------------------------------------------------

    @traced_engine(
        "transition.allocate_to_assembly", ENGINE_VERSION,
        fingerprint_fields=("item_id", "to_stage_id", "allocate_qty", "product_sku"),
    )
    def allocate_to_assembly(
        self,
        items: Sequence[KanbanItem],
        *,
        item_id: str,
        to_stage_id: str,
        allocate_qty: int,
        product_sku: str,
        actor: str,
        context: WorkflowContext,
    ) -> TransitionResult:
        """Dedicate component units to the assembly container of a product,
        completing as many finished units as the allocated parts allow.

        Leftover parts of a completion are refunded to the board as loose
        items at the assembly stage.
        """
        component = require_item(items, item_id)
        stage = context.stage(to_stage_id)
        _require_active(component)
        _require_plain(component, "allocate")
        _require_logic(stage, "allocate", StageLogicType.MERGE)
        product = context.catalog.product(product_sku)
        if product is None:
            raise ProductNotFoundError(product_sku)
        if component.sku is None or not product.requires(component.sku):
            logger.warning(
                "allocation_bom_mismatch",
                extra={
                    "item_id": component.id,
                    "component_sku": component.sku,
                    "product_sku": product.sku,
                },
            )
            raise NoMatchingBOMError(component.sku, product.sku)
        _require_qty(component, allocate_qty, field="allocate_qty")
        check_category_gate(component, stage, context.catalog)

        now = self._clock.now()
        remaining = component.quantity - allocate_qty
        working = replace_item(
            items,
            component.evolve(
                quantity=remaining,
                status=ItemStatus.CONSUMED if remaining == 0 else ItemStatus.ACTIVE,
                updated_at=now,
            ),
        )

        container = find_container(working, stage.id, product.sku)
        if container is None:
            progress = AssemblyProgress(product.sku).add(component.sku, allocate_qty)
            container = self._new_item(
                now,
                name=f"{ASSEMBLY_NAME_PREFIX}{product.name}",
                sku=f"{CONTAINER_SKU_PREFIX}{product.sku}",
                stage_id=stage.id,
                quantity=progress.total_units,
                collection=product.collection,
                assembly=progress,
            )
            working = working + (container,)
        else:
            progress = container.assembly.add(component.sku, allocate_qty)
            container = container.evolve(
                quantity=progress.total_units, assembly=progress, updated_at=now,
            )
            working = replace_item(working, container)

        logs = [
            self._entry(
                now, actor, ActivityAction.MOVED,
                f"{component.name} ({allocate_qty}x) -> {ASSEMBLY_NAME_PREFIX}{product.name}",
                context.stage_name(component.stage_id), stage.name, StageLogicType.MERGE,
                {
                    "consumed": allocate_qty,
                    "component_sku": component.sku,
                    "product_sku": product.sku,
                    "container_id": container.id,
                },
                component.id,
            )
        ]

        plan = plan_completion(product, progress.progress)
        if not plan.completes:
            logger.info(
                "allocation_recorded",
                extra={
                    "item_id": component.id,
                    "container_id": container.id,
                    "product_sku": product.sku,
                    "allocated": allocate_qty,
                    "progress": dict(progress.progress),
                },
            )
            return TransitionResult(working, tuple(logs))

        working = replace_item(
            working,
            container.evolve(
                quantity=0,
                status=ItemStatus.CONSUMED,
                assembly=progress.cleared(),
                updated_at=now,
            ),
        )

        refunded: dict[str, str] = {}
        for sku, qty in plan.leftover.items():
            pile = find_loose_item(working, sku, stage.id)
            if pile is not None:
                working = replace_item(
                    working, pile.evolve(quantity=pile.quantity + qty, updated_at=now),
                )
                refunded[sku] = pile.id
            else:
                material = context.catalog.material(sku)
                refund = self._new_item(
                    now,
                    name=material.name if material is not None else product.component_name(sku),
                    sku=sku,
                    stage_id=stage.id,
                    quantity=qty,
                )
                working = working + (refund,)
                refunded[sku] = refund.id

        finished = find_loose_item(working, product.sku, stage.id)
        if finished is not None:
            finished = finished.evolve(
                quantity=finished.quantity + plan.completions,
                merged_from=finished.merged_from + (container.id,),
                updated_at=now,
            )
            working = replace_item(working, finished)
        else:
            finished = self._new_item(
                now,
                name=product.name,
                sku=product.sku,
                stage_id=stage.id,
                quantity=plan.completions,
                collection=product.collection,
                merged_from=(container.id,),
            )
            working = working + (finished,)

        logs.append(
            self._entry(
                now, actor, ActivityAction.MERGED, product.name,
                stage.name, stage.name, StageLogicType.MERGE,
                {
                    "yield": plan.completions,
                    "merged_items": [line.material_name for line in product.bom],
                    "consumed_units": plan.consumed_units,
                    "container_id": container.id,
                    "output_item_id": finished.id,
                    "refunded": dict(plan.leftover),
                    "refund_item_ids": refunded,
                },
                finished.id,
            )
        )
        logger.info(
            "assembly_completed",
            extra={
                "container_id": container.id,
                "product_sku": product.sku,
                "completions": plan.completions,
                "consumed_units": plan.consumed_units,
                "refunded": dict(plan.leftover),
            },
        )
        return TransitionResult(working, tuple(logs))

    # ------------------------------------------------------------------
    # Exit / sale
    # ------------------------------------------------------------------

    @traced_engine(
        "transition.sell", ENGINE_VERSION,
        fingerprint_fields=("item_id", "to_stage_id", "channel", "sale_price"),
    )
    def sell(
        self,
        items: Sequence[KanbanItem],
        *,
        item_id: str,
        to_stage_id: str,
        channel: SalesChannel,
        sale_price: Decimal,
        actor: str,
        context: WorkflowContext,
    ) -> TransitionResult:
        """Sell a whole batch through ``channel`` at unit price ``sale_price``."""
        item = require_item(items, item_id)
        stage = context.stage(to_stage_id)
        _require_active(item)
        _require_plain(item, "sell")
        _require_logic(stage, "sell", StageLogicType.EXIT)
        channel = SalesChannel(channel)
        if stage.exit_channels and channel not in stage.exit_channels:
            raise ChannelNotAllowedError(
                stage.id, channel.value, tuple(c.value for c in stage.exit_channels),
            )
        price = Decimal(sale_price)
        if price < 0:
            raise ValueError(f"sale_price must not be negative, got {price}")
        check_category_gate(item, stage, context.catalog)

        now = self._clock.now()
        sold = item.evolve(
            stage_id=stage.id,
            status=ItemStatus.SOLD,
            sales_channel=channel,
            price=price,
            updated_at=now,
        )
        entry = self._entry(
            now, actor, ActivityAction.SOLD, item.name,
            context.stage_name(item.stage_id), stage.name, StageLogicType.EXIT,
            {
                "sales_channel": channel.value,
                "sale_price": str(price),
                "quantity": item.quantity,
                "sku": item.sku,
            },
            item.id,
        )
        logger.info(
            "sale_recorded",
            extra={
                "item_id": item.id,
                "sku": item.sku,
                "quantity": item.quantity,
                "channel": channel.value,
                "sale_price": str(price),
            },
        )
        return TransitionResult(replace_item(items, sold), (entry,))

    # ------------------------------------------------------------------
    # Add / edit / delete
    # ------------------------------------------------------------------

    @traced_engine(
        "transition.add", ENGINE_VERSION,
        fingerprint_fields=("sku", "stage_id", "quantity"),
    )
    def add(
        self,
        items: Sequence[KanbanItem],
        *,
        name: str,
        sku: str | None,
        stage_id: str,
        quantity: int,
        actor: str,
        context: WorkflowContext,
        collection: str | None = None,
        emoji: str | None = None,
    ) -> TransitionResult:
        """Put new material on the board, accumulating onto an existing
        active pile of the same SKU at the stage."""
        stage = context.stage(stage_id)
        _forbid_exit(stage, "add")
        _require_positive(None, quantity, "quantity")
        if not name:
            raise ValueError("name must not be empty")

        probe = KanbanItem(
            id="<new>", name=name, sku=sku, stage_id=stage.id, quantity=quantity,
        )
        check_category_gate(probe, stage, context.catalog)

        now = self._clock.now()
        pile = find_loose_item(items, sku, stage.id)
        if pile is not None:
            target = pile.evolve(quantity=pile.quantity + quantity, updated_at=now)
            result = replace_item(items, target)
        else:
            target = self._new_item(
                now,
                name=name,
                sku=sku,
                stage_id=stage.id,
                quantity=quantity,
                collection=collection,
                emoji=emoji,
            )
            result = tuple(items) + (target,)

        entry = self._entry(
            now, actor, ActivityAction.ADDED, name,
            None, stage.name, StageLogicType.PASSTHROUGH,
            {"quantity": quantity, "merged_into_existing": pile is not None, "sku": sku},
            target.id,
        )
        logger.info(
            "item_added",
            extra={
                "item_id": target.id,
                "sku": sku,
                "stage_id": stage.id,
                "quantity": quantity,
                "merged_into_existing": pile is not None,
            },
        )
        return TransitionResult(result, (entry,))

    @traced_engine("transition.edit", ENGINE_VERSION, fingerprint_fields=("item_id",))
    def edit(
        self,
        items: Sequence[KanbanItem],
        *,
        item_id: str,
        updates: ItemUpdate,
        actor: str,
        context: WorkflowContext,
    ) -> TransitionResult:
        """Change descriptive fields or the quantity of an item in place.

        Stage and status never change.  The log entry lists the edited
        fields and the quantity delta.
        """
        item = require_item(items, item_id)
        _require_active(item)
        changes = updates.changes()
        if "quantity" in changes:
            if item.is_container:
                raise AssemblyContainerError(item.id, "edit the quantity of")
            _require_positive(item.id, changes["quantity"], "quantity")
        if "name" in changes and not changes["name"]:
            raise ValueError("name must not be empty")

        now = self._clock.now()
        edited = item.evolve(**changes, updated_at=now)
        stage_name = context.stage_name(item.stage_id)
        entry = self._entry(
            now, actor, ActivityAction.MOVED, edited.name,
            stage_name, stage_name, StageLogicType.PASSTHROUGH,
            {
                "edited_fields": sorted(changes),
                "quantity_delta": edited.quantity - item.quantity,
            },
            item.id,
        )
        logger.info(
            "item_edited",
            extra={"item_id": item.id, "edited_fields": sorted(changes)},
        )
        return TransitionResult(replace_item(items, edited), (entry,))

    @traced_engine("transition.delete", ENGINE_VERSION, fingerprint_fields=("item_id",))
    def delete(
        self,
        items: Sequence[KanbanItem],
        *,
        item_id: str,
        actor: str,
        context: WorkflowContext,
    ) -> TransitionResult:
        """Erase an item.  The only transition that removes an item; the
        trail keeps a ``[DELETED]`` entry for it."""
        item = require_item(items, item_id)
        now = self._clock.now()
        entry = self._entry(
            now, actor, ActivityAction.MOVED, f"{DELETED_NAME_PREFIX}{item.name}",
            context.stage_name(item.stage_id), DELETED_STAGE_LABEL,
            StageLogicType.PASSTHROUGH,
            {
                "deleted": True,
                "deleted_quantity": item.quantity,
                "status": item.status.value,
                "sku": item.sku,
            },
            item.id,
        )
        logger.info(
            "item_deleted",
            extra={"item_id": item.id, "quantity": item.quantity, "status": item.status.value},
        )
        return TransitionResult(remove_item(items, item_id), (entry,))

    # ------------------------------------------------------------------
    # Reject
    # ------------------------------------------------------------------

    @traced_engine(
        "transition.reject", ENGINE_VERSION,
        fingerprint_fields=("item_id", "reject_qty"),
    )
    def reject(
        self,
        items: Sequence[KanbanItem],
        *,
        item_id: str,
        reject_qty: int,
        actor: str,
        context: WorkflowContext,
    ) -> TransitionResult:
        """Write off ``reject_qty`` units as waste.

        A full reject flips the item to rejected in place; a partial reject
        reduces it and appends a rejected clone holding the waste.
        """
        item = require_item(items, item_id)
        _require_active(item)
        _require_plain(item, "reject")
        _require_qty(item, reject_qty, field="reject_qty")

        now = self._clock.now()
        if reject_qty == item.quantity:
            result = replace_item(
                items, item.evolve(status=ItemStatus.REJECTED, updated_at=now),
            )
            rejected_id = item.id
        else:
            waste = self._new_item(
                now,
                name=item.name,
                sku=item.sku,
                stage_id=item.stage_id,
                quantity=reject_qty,
                collection=item.collection,
                emoji=item.emoji,
                price=item.price,
                parent_id=item.id,
                status=ItemStatus.REJECTED,
            )
            result = replace_item(
                items, item.evolve(quantity=item.quantity - reject_qty, updated_at=now),
            ) + (waste,)
            rejected_id = waste.id

        entry = self._entry(
            now, actor, ActivityAction.REJECTED,
            f"{REJECTED_NAME_PREFIX}{item.name} ({reject_qty}x)",
            context.stage_name(item.stage_id), REJECT_STAGE_LABEL, StageLogicType.EXIT,
            {"rejected_qty": reject_qty, "rejected_item_id": rejected_id, "sku": item.sku},
            item.id,
        )
        logger.info(
            "reject_recorded",
            extra={"item_id": item.id, "rejected_item_id": rejected_id, "quantity": reject_qty},
        )
        return TransitionResult(result, (entry,))

    # ------------------------------------------------------------------
    # Restore (undo)
    # ------------------------------------------------------------------

    @traced_engine("transition.restore", ENGINE_VERSION)
    def restore(
        self,
        items: Sequence[KanbanItem],
        *,
        snapshot: Sequence[KanbanItem],
        undone_entries: Sequence[ActivityLogEntry],
        actor: str,
    ) -> TransitionResult:
        """Return to an earlier item snapshot, recording an ``undone`` entry.

        The trail is never rewound: the compensating entry names the entries
        it reverses and carries the unit difference between the snapshots.
        """
        now = self._clock.now()
        unit_delta = sum(i.quantity for i in snapshot) - sum(i.quantity for i in items)
        label = undone_entries[0].item_name if undone_entries else "board"
        entry = self._entry(
            now, actor, ActivityAction.UNDONE, f"Undo: {label}",
            None, None, StageLogicType.PASSTHROUGH,
            {
                "unit_delta": unit_delta,
                "undone_entry_ids": [e.id for e in undone_entries],
                "undone_actions": [e.action.value for e in undone_entries],
            },
            undone_entries[0].item_id if undone_entries else None,
        )
        logger.info(
            "snapshot_restored",
            extra={"unit_delta": unit_delta, "undone_entries": len(undone_entries)},
        )
        return TransitionResult(tuple(snapshot), (entry,))
