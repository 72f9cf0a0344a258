"""
Ready-stock synchronisation.

Verifies:
- Units arriving at the packing stage are added to stock; leaving it or being sold removes them
- Adds, edits, deletes and rejects at the packing stage adjust stock
- Moves that never touch the packing stage leave stock alone
- Undo takes back exactly the stock adjustments its request applied
- Stock never goes negative
- The SQL ledger keeps one row per SKU
"""

from decimal import Decimal

import pytest

from mes_engines.transitions import ItemUpdate
from mes_kernel.domain.values import SalesChannel
from mes_services import (
    AddRequest,
    InMemoryInventoryLedger,
    InventoryLedger,
    InventorySync,
    MoveRequest,
    SellRequest,
    SendToWorkflowRequest,
    SqlInventoryLedger,
    WorkflowService,
)

ACTOR = "tester"


@pytest.fixture
def ledger():
    return InMemoryInventoryLedger()


@pytest.fixture
def sync(ledger):
    return InventorySync(ledger)


@pytest.fixture
def line(make_context):
    return make_context()


@pytest.fixture
def board(make_item):
    return (
        make_item(id="w-1", sku="FG-TEST", stage_id="s-in", quantity=5),
        make_item(id="w-2", sku="FG-TEST", stage_id="s-pack", quantity=2),
        make_item(id="w-3", sku="RAW-JATI-001", stage_id="s-in", quantity=4),
    )


class TestLedgers:
    def test_in_memory_floors_at_zero(self, ledger):
        assert ledger.adjust("FG-A", "A", 3) == 3
        assert ledger.adjust("FG-A", "A", -5) == 0
        assert ledger.quantity("FG-A") == 0
        assert ledger.quantity("FG-NONE") == 0

    def test_opening_stock(self):
        ledger = InMemoryInventoryLedger({"FG-A": 4})
        assert ledger.snapshot() == {"FG-A": 4}

    def test_sql_ledger_creates_and_updates_row(self, session, deterministic_clock):
        ledger = SqlInventoryLedger(session, deterministic_clock)
        assert isinstance(ledger, InventoryLedger)

        assert ledger.adjust("FG-A", "Watch A", 3) == 3
        assert ledger.adjust("FG-A", "Watch A", -1) == 2
        assert ledger.adjust("FG-A", "Watch A", -9) == 0
        assert ledger.quantity("FG-A") == 0
        assert ledger.quantity("FG-B") == 0


class TestTransitionRules:
    def test_stage_patterns(self, sync):
        assert sync.is_ready_stage("Packing Ready")
        assert sync.is_ready_stage("Service Packing")
        assert not sync.is_ready_stage(None)
        assert sync.is_sold_stage("SOLD")
        assert not sync.is_sold_stage("Packing")

    def test_move_into_packing_adds(self, sync, ledger, engine, line, board):
        result = engine.move(board, item_id="w-1", to_stage_id="s-pack", moved_qty=3, actor=ACTOR, context=line)

        adjustments = sync.on_transition(result)

        assert [(a.sku, a.delta, a.reason) for a in adjustments] == [("FG-TEST", 3, "entered_ready_stage")]
        assert ledger.quantity("FG-TEST") == 3

    def test_move_out_of_packing_removes(self, sync, ledger, engine, line, board):
        ledger.adjust("FG-TEST", "FG", 2)
        result = engine.move(board, item_id="w-2", to_stage_id="s-in", moved_qty=2, actor=ACTOR, context=line)

        sync.on_transition(result)

        assert ledger.quantity("FG-TEST") == 0

    def test_move_elsewhere_ignored(self, sync, engine, line, board):
        result = engine.move(board, item_id="w-3", to_stage_id="s-merge", moved_qty=1, actor=ACTOR, context=line)
        assert sync.on_transition(result) == ()

    def test_sale_removes(self, sync, ledger, engine, line, board):
        ledger.adjust("FG-TEST", "FG", 2)
        result = engine.sell(
            board, item_id="w-2", to_stage_id="s-out", channel=SalesChannel.SHOPEE,
            sale_price=Decimal("1"), actor=ACTOR, context=line,
        )

        (adjustment,) = sync.on_transition(result)

        assert adjustment.reason == "sold"
        assert adjustment.delta == -2
        assert ledger.quantity("FG-TEST") == 0

    def test_add_to_packing(self, sync, ledger, engine, line):
        result = engine.add((), name="Watch", sku="FG-TEST", stage_id="s-pack", quantity=4, actor=ACTOR, context=line)
        sync.on_transition(result)
        assert ledger.quantity("FG-TEST") == 4

    def test_edit_quantity_at_packing(self, sync, ledger, engine, line, board):
        ledger.adjust("FG-TEST", "FG", 2)
        result = engine.edit(board, item_id="w-2", updates=ItemUpdate(quantity=5), actor=ACTOR, context=line)

        (adjustment,) = sync.on_transition(result)

        assert adjustment.reason == "edited"
        assert ledger.quantity("FG-TEST") == 5

    def test_edit_elsewhere_ignored(self, sync, engine, line, board):
        result = engine.edit(board, item_id="w-1", updates=ItemUpdate(quantity=1), actor=ACTOR, context=line)
        assert sync.on_transition(result) == ()

    def test_delete_at_packing(self, sync, ledger, engine, line, board):
        ledger.adjust("FG-TEST", "FG", 2)
        result = engine.delete(board, item_id="w-2", actor=ACTOR, context=line)

        (adjustment,) = sync.on_transition(result)

        assert adjustment.reason == "left_ready_stage"
        assert ledger.quantity("FG-TEST") == 0

    def test_reject_at_packing(self, sync, ledger, engine, line, board):
        ledger.adjust("FG-TEST", "FG", 2)
        result = engine.reject(board, item_id="w-2", reject_qty=1, actor=ACTOR, context=line)

        sync.on_transition(result)

        assert ledger.quantity("FG-TEST") == 1

    def test_custom_patterns(self, ledger, engine, line, board):
        sync = InventorySync(ledger, ready_pattern="intake")
        result = engine.move(board, item_id="w-2", to_stage_id="s-in", moved_qty=1, actor=ACTOR, context=line)
        sync.on_transition(result)
        assert ledger.quantity("FG-TEST") == 1


class TestDemoBoard:
    def test_service_round_trip_between_lines(self, context, engine, demo_items):
        ledger = InMemoryInventoryLedger({"FG-KL38-NAT": 5})
        service = WorkflowService(context, engine, inventory=InventorySync(ledger), initial_items=demo_items)

        out = service.apply(SendToWorkflowRequest(ACTOR, "item-006", "stg-svc-repair", 2))
        assert ledger.quantity("FG-KL38-NAT") == 3

        child_id = out.log.metadata["target_item_id"]
        service.apply(SendToWorkflowRequest(ACTOR, child_id, "stg-svc-packing", 2))
        assert ledger.quantity("FG-KL38-NAT") == 5

    def test_sale_through_service(self, context, engine, demo_items):
        ledger = InMemoryInventoryLedger({"FG-HT42-BLK": 3})
        service = WorkflowService(context, engine, inventory=InventorySync(ledger), initial_items=demo_items)

        sold = service.apply(
            SellRequest(ACTOR, "item-005", "stg-sold", SalesChannel.B2B, Decimal("450000"))
        )

        assert sold.is_success
        assert ledger.quantity("FG-HT42-BLK") == 0

    def test_add_through_service(self, context, engine, demo_items):
        ledger = InMemoryInventoryLedger()
        service = WorkflowService(context, engine, inventory=InventorySync(ledger), initial_items=demo_items)

        service.apply(AddRequest(ACTOR, "Hutan Tropis 42mm", "FG-HT42-BLK", "stg-packing", 2))

        assert ledger.quantity("FG-HT42-BLK") == 2


class TestUndoReconciliation:
    def test_revert_takes_back_applied_deltas(self, sync, ledger, engine, line, board):
        result = engine.move(board, item_id="w-1", to_stage_id="s-pack", moved_qty=3, actor=ACTOR, context=line)
        applied = sync.on_transition(result)

        reverted = sync.revert(applied)

        assert [(a.sku, a.delta, a.reason) for a in reverted] == [("FG-TEST", -3, "undone")]
        assert ledger.quantity("FG-TEST") == 0

    def test_applied_delta_reflects_floor(self, sync, ledger, engine, line, board):
        ledger.adjust("FG-TEST", "FG", 1)
        result = engine.sell(
            board, item_id="w-2", to_stage_id="s-out", channel=SalesChannel.OFFLINE,
            sale_price=Decimal("1"), actor=ACTOR, context=line,
        )

        (applied,) = sync.on_transition(result)

        assert applied.delta == -1
        sync.revert((applied,))
        assert ledger.quantity("FG-TEST") == 1

    def test_undo_through_service(self, line, engine, board):
        ledger = InMemoryInventoryLedger()
        service = WorkflowService(line, engine, inventory=InventorySync(ledger), initial_items=board)

        service.apply(MoveRequest(ACTOR, "w-1", "s-pack", 3))
        assert ledger.quantity("FG-TEST") == 3

        service.undo(ACTOR)
        assert ledger.quantity("FG-TEST") == 0

    @pytest.mark.parametrize("opening", [3, 7])
    def test_undo_sale_from_outside_packing(self, line, engine, board, opening):
        ledger = InMemoryInventoryLedger({"FG-TEST": opening})
        service = WorkflowService(line, engine, inventory=InventorySync(ledger), initial_items=board)

        sold = service.apply(SellRequest(ACTOR, "w-1", "s-out", SalesChannel.SHOPEE, Decimal("450000")))
        assert sold.is_success
        assert ledger.quantity("FG-TEST") == max(0, opening - 5)

        assert service.undo(ACTOR).is_success
        assert ledger.quantity("FG-TEST") == opening

    def test_undo_steps_back_in_order(self, line, engine, board):
        ledger = InMemoryInventoryLedger({"FG-TEST": 2})
        service = WorkflowService(line, engine, inventory=InventorySync(ledger), initial_items=board)

        service.apply(MoveRequest(ACTOR, "w-1", "s-pack", 5))
        service.apply(SellRequest(ACTOR, "w-2", "s-out", SalesChannel.OFFLINE, Decimal("1")))
        assert ledger.quantity("FG-TEST") == 5

        service.undo(ACTOR)
        assert ledger.quantity("FG-TEST") == 7
        service.undo(ACTOR)
        assert ledger.quantity("FG-TEST") == 2

    def test_refused_request_does_not_sync(self, line, engine, board):
        ledger = InMemoryInventoryLedger()
        service = WorkflowService(line, engine, inventory=InventorySync(ledger), initial_items=board)

        service.apply(MoveRequest(ACTOR, "w-1", "s-pack", 50))

        assert ledger.snapshot() == {}
