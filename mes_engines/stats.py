"""
Module: mes_engines.stats
Responsibility:
    Derive dashboard figures from an item snapshot and the activity trail:
    work in progress, ready stock and its value, today's sales, splits and
    assemblies, sales per channel, and waste.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "Today" is the calendar
    day of the caller-supplied ``as_of`` in its own timezone; the engine
    never reads the wall clock.

Invariants enforced:
    - Pure aggregation: neither input is modified and nothing is cached.
    - Only active items count toward WIP and ready stock.
    - Waste counts only rejected items whose stage belongs to the blueprint.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from decimal import Decimal

from mes_engines.tracer import traced_engine
from mes_kernel.domain.activity import ActivityLogEntry
from mes_kernel.domain.blueprint import WorkflowBlueprint
from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.domain.values import ActivityAction, ItemStatus

UNKNOWN_CHANNEL = "unknown"


@dataclass(frozen=True)
class WorkflowStats:
    wip_count: int
    ready_stock_count: int
    stock_value: Decimal
    sales_today_count: int
    split_today_count: int
    merge_today_count: int
    rejected_count: int
    rejected_items: tuple[KanbanItem, ...] = ()
    sales_by_channel: dict[str, int] = field(default_factory=dict)
    units_sold_today: int = 0


@dataclass(frozen=True)
class StageSummary:
    stage_id: str
    stage_name: str
    order: int
    batch_count: int
    unit_count: int


def start_of_day(as_of: datetime) -> datetime:
    """Local midnight of ``as_of``'s day, in ``as_of``'s timezone."""
    if as_of.tzinfo is None:
        raise ValueError("as_of must be timezone-aware")
    return datetime.combine(as_of.date(), time.min, tzinfo=as_of.tzinfo)


@traced_engine("stats.calc", "1.0")
def calc_stats(
    items: Sequence[KanbanItem],
    logs: Iterable[ActivityLogEntry],
    blueprint: WorkflowBlueprint,
    as_of: datetime,
) -> WorkflowStats:
    """Aggregate board figures for ``blueprint`` as of ``as_of``."""
    ready = blueprint.ready_stage()
    ready_id = ready.id if ready is not None else None
    wip_stage_ids = {
        s.id for s in blueprint.stages if not s.is_exit and s.id != ready_id
    }

    active = [i for i in items if i.is_active]
    wip_count = sum(i.quantity for i in active if i.stage_id in wip_stage_ids)
    ready_items = [i for i in active if ready_id is not None and i.stage_id == ready_id]
    ready_stock_count = sum(i.quantity for i in ready_items)
    stock_value = sum((i.price * i.quantity for i in ready_items), Decimal("0"))

    day_start = start_of_day(as_of)
    day_end = day_start + timedelta(days=1)
    today = [e for e in logs if day_start <= e.timestamp < day_end]
    sales = [e for e in today if e.action is ActivityAction.SOLD]

    by_channel: dict[str, int] = {}
    for entry in sales:
        channel = entry.metadata.get("sales_channel") or UNKNOWN_CHANNEL
        by_channel[channel] = by_channel.get(channel, 0) + 1

    rejected = tuple(
        i for i in items
        if i.status is ItemStatus.REJECTED and blueprint.has_stage(i.stage_id)
    )

    return WorkflowStats(
        wip_count=wip_count,
        ready_stock_count=ready_stock_count,
        stock_value=stock_value,
        sales_today_count=len(sales),
        split_today_count=sum(1 for e in today if e.action is ActivityAction.SPLIT),
        merge_today_count=sum(1 for e in today if e.action is ActivityAction.MERGED),
        rejected_count=sum(i.quantity for i in rejected),
        rejected_items=rejected,
        sales_by_channel=by_channel,
        units_sold_today=sum(int(e.metadata.get("quantity", 0)) for e in sales),
    )


def stage_summaries(
    items: Iterable[KanbanItem], blueprint: WorkflowBlueprint,
) -> tuple[StageSummary, ...]:
    """Active batch and unit counts per stage, in display order."""
    batches: dict[str, int] = {}
    units: dict[str, int] = {}
    for item in items:
        if not item.is_active:
            continue
        batches[item.stage_id] = batches.get(item.stage_id, 0) + 1
        units[item.stage_id] = units.get(item.stage_id, 0) + item.quantity
    return tuple(
        StageSummary(
            stage_id=s.id,
            stage_name=s.name,
            order=s.order,
            batch_count=batches.get(s.id, 0),
            unit_count=units.get(s.id, 0),
        )
        for s in blueprint.ordered_stages()
    )
