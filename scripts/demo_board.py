#!/usr/bin/env python3
"""
Walk the demo board through one production day.

Loads the ``gentanala`` configuration set, seeds its opening board and
drives the real WorkflowService: a CNC split, a passthrough move, a full
assembly run, a sale, a reject and its undo.  Prints the trail, the stage
columns, the dashboard figures and the daily recap.

Usage:
    python3 scripts/demo_board.py
    python3 scripts/demo_board.py --db-url sqlite:///board.db   # persist
    python3 scripts/demo_board.py --log-level DEBUG             # engine traces
"""

import argparse
import logging
import sys
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from mes_config import DEFAULT_SET, load_config_set  # noqa: E402
from mes_engines.transitions import TransitionEngine  # noqa: E402
from mes_kernel.db import create_tables, get_session, init_engine_from_url  # noqa: E402
from mes_kernel.domain.clock import DeterministicClock  # noqa: E402
from mes_kernel.domain.ids import SequentialIdGenerator  # noqa: E402
from mes_kernel.domain.values import SalesChannel  # noqa: E402
from mes_kernel.logging_config import configure_logging  # noqa: E402
from mes_services import (  # noqa: E402
    AllocateRequest,
    InMemoryInventoryLedger,
    InventorySync,
    MoveRequest,
    RejectRequest,
    SellRequest,
    SplitRequest,
    SqlInventoryLedger,
    SqlWorkflowStore,
    WorkflowService,
)

ACTOR = "demo"
DEMO_START = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)
HT42_COMPONENTS = ("item-003", "item-004", "item-007", "item-008", "item-009", "item-010")


def _expect(outcome, step: str):
    if not outcome.is_success:
        raise SystemExit(f"{step} failed: {outcome.error_code}: {outcome.error_message}")
    print(f"  v{outcome.version:<3} {step}")
    return outcome


def run_day(service: WorkflowService, clock: DeterministicClock) -> None:
    print("\nTransitions")
    print("-" * 60)

    split = _expect(service.apply(SplitRequest(
        actor=ACTOR, item_id="item-001", to_stage_id="stg-cnc",
        consumed_count=1, yield_count=4,
        child_name="Casing Hutan Tropis", child_sku="WIP-CASE-HT",
    )), "split 1 teak block into 4 cases")
    clock.advance(600)

    child_id = split.log.metadata["child_item_id"]
    _expect(service.apply(MoveRequest(
        actor=ACTOR, item_id=child_id, to_stage_id="stg-finishing", moved_qty=4,
    )), "move the new cases to finishing")
    clock.advance(600)

    finished_id = None
    for item_id in HT42_COMPONENTS:
        outcome = _expect(service.apply(AllocateRequest(
            actor=ACTOR, item_id=item_id, to_stage_id="stg-assembly",
            allocate_qty=2, product_sku="FG-HT42-BLK",
        )), f"allocate 2 x {service.item(item_id).name}")
        for entry in outcome.logs:
            if "output_item_id" in entry.metadata:
                finished_id = entry.metadata["output_item_id"]
        clock.advance(120)

    if finished_id is None:
        raise SystemExit("assembly did not complete")
    _expect(service.apply(MoveRequest(
        actor=ACTOR, item_id=finished_id, to_stage_id="stg-packing", moved_qty=2,
    )), "move finished watches to packing")
    clock.advance(600)

    _expect(service.apply(SellRequest(
        actor=ACTOR, item_id="item-006", to_stage_id="stg-sold",
        channel=SalesChannel.SHOPEE, sale_price=Decimal("425000"),
    )), "sell the Kaliandra batch on Shopee")
    clock.advance(600)

    _expect(service.apply(RejectRequest(
        actor=ACTOR, item_id="item-002", reject_qty=1,
    )), "reject one leather sheet")
    _expect(service.undo(ACTOR), "undo the reject")


def report(service: WorkflowService, as_of: datetime) -> None:
    print("\nActivity trail")
    print("-" * 60)
    for entry in service.logs:
        route = f"{entry.from_stage or '-'} -> {entry.to_stage or '-'}"
        print(f"  {entry.timestamp:%H:%M}  {entry.action.value:<8} {entry.item_name[:40]:<40} {route}")

    print("\nStages")
    print("-" * 60)
    for summary in service.stage_summaries():
        print(f"  {summary.order}. {summary.stage_name:<22} {summary.batch_count:>3} batches {summary.unit_count:>5} pcs")

    print("\nDaily recap")
    print("-" * 60)
    print(service.recap(as_of))


def main() -> int:
    parser = argparse.ArgumentParser(description="Production board demo day")
    parser.add_argument("--set", default=DEFAULT_SET, help="Configuration set name")
    parser.add_argument("--db-url", default=None, help="Persist to this database URL")
    parser.add_argument("--log-level", default="WARNING", help="Structured log level")
    args = parser.parse_args()

    configure_logging(level=getattr(logging, args.log_level.upper(), logging.WARNING))

    config_set = load_config_set(args.set)
    context = config_set.context()
    clock = DeterministicClock(DEMO_START)
    engine = TransitionEngine(ids=SequentialIdGenerator(), clock=clock)

    print(f"Configuration {config_set.set_id} v{config_set.version} ({config_set.checksum[:12]})")
    print(f"Pipeline: {context.blueprint.name}")

    session = None
    if args.db_url:
        init_engine_from_url(args.db_url)
        create_tables()
        session = get_session()
        store = SqlWorkflowStore(session)
        inventory = InventorySync(SqlInventoryLedger(session, clock))
    else:
        store = None
        inventory = InventorySync(InMemoryInventoryLedger())

    service = WorkflowService(
        context, engine, store=store, inventory=inventory,
        initial_items=config_set.demo_items,
    )
    try:
        run_day(service, clock)
        report(service, clock.now())
        if session is not None:
            session.commit()
    finally:
        if session is not None:
            session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
