"""
Module: mes_engines.routing
Responsibility:
    Classify a drop of an item onto a stage: which transition it calls for,
    and what the caller needs to ask the operator before issuing it
    (split targets and default yield, candidate products for assembly,
    enabled sales channels).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Read-only: returns a
    decision and never builds items.

Invariants enforced:
    - The category gate is applied before any decision is returned.
    - Assembly candidates are pre-filtered by BOM membership, so every
      product offered can actually consume the dropped SKU.

Failure modes:
    - StageNotFoundError, CategoryNotAllowedError.
    - NoMatchingBOMError when dropping onto a merge stage an item that no
      catalogued product consumes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from mes_engines.categories import check_category_gate
from mes_kernel.domain.context import WorkflowContext
from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.domain.master_data import MasterMaterial, MasterProduct
from mes_kernel.domain.values import MaterialCategory, SalesChannel, StageLogicType
from mes_kernel.exceptions import AssemblyContainerError, ItemNotActiveError, NoMatchingBOMError
from mes_kernel.logging_config import get_logger

logger = get_logger("engines.routing")


class DropKind(str, Enum):
    NONE = "none"
    MOVE = "move"
    SPLIT = "split"
    ALLOCATE = "allocate"
    SELL = "sell"


@dataclass(frozen=True)
class DropDecision:
    """What a drop means and the choices it leaves to the operator."""
    kind: DropKind
    item_id: str
    stage_id: str
    category: MaterialCategory | None = None
    default_yield: int | None = None
    split_targets: tuple[MasterMaterial | str, ...] = ()
    candidate_products: tuple[MasterProduct, ...] = ()
    channels: tuple[SalesChannel, ...] = ()


def classify_drop(
    item: KanbanItem,
    stage_id: str,
    context: WorkflowContext,
) -> DropDecision:
    """Decide which transition dropping ``item`` onto ``stage_id`` requires.

    Dropping an item onto the stage it already sits in is a no-op
    (``DropKind.NONE``).
    """
    stage = context.stage(stage_id)
    if not item.is_active:
        raise ItemNotActiveError(item.id, item.status.value)
    if item.is_container:
        raise AssemblyContainerError(item.id, "drop")
    if item.stage_id == stage.id:
        return DropDecision(DropKind.NONE, item.id, stage.id)

    category = check_category_gate(item, stage, context.catalog)

    match stage.logic_type:
        case StageLogicType.PASSTHROUGH:
            decision = DropDecision(DropKind.MOVE, item.id, stage.id, category)
        case StageLogicType.SPLIT:
            decision = DropDecision(
                DropKind.SPLIT, item.id, stage.id, category,
                default_yield=stage.default_yield or 1,
                split_targets=context.catalog.split_targets(item.sku),
            )
        case StageLogicType.MERGE:
            candidates = context.catalog.products_consuming(item.sku)
            if not candidates:
                logger.warning(
                    "drop_no_bom_candidates",
                    extra={"item_id": item.id, "sku": item.sku, "stage_id": stage.id},
                )
                raise NoMatchingBOMError(item.sku, "*")
            decision = DropDecision(
                DropKind.ALLOCATE, item.id, stage.id, category,
                candidate_products=candidates,
            )
        case StageLogicType.EXIT:
            decision = DropDecision(
                DropKind.SELL, item.id, stage.id, category,
                channels=stage.exit_channels or tuple(SalesChannel),
            )

    logger.debug(
        "drop_classified",
        extra={"item_id": item.id, "stage_id": stage.id, "kind": decision.kind.value},
    )
    return decision
