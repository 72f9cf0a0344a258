"""
Split transition tests.

A split consumes N units of a parent and creates one child batch of M
units of another material at a split stage.
"""

import pytest

from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.domain.values import ActivityAction, ItemStatus, StageLogicType
from mes_kernel.exceptions import (
    CategoryNotAllowedError,
    InvalidQuantityError,
    StageLogicMismatchError,
)

ACTOR = "tester"


def _split(engine, items, ctx, item_id, *, consumed, yielded, to_stage_id="s-split",
           child_name="Casing Hutan Tropis", child_sku="WIP-CASE-HT"):
    return engine.split(
        items, item_id=item_id, to_stage_id=to_stage_id,
        consumed_count=consumed, yield_count=yielded,
        child_name=child_name, child_sku=child_sku,
        actor=ACTOR, context=ctx,
    )


class TestSplitOutcome:
    """Parent bookkeeping, child creation and the log entry."""

    def test_partial_split(self, engine, make_item, make_context):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=5)

        result = _split(engine, (parent,), ctx, parent.id, consumed=1, yielded=4)

        updated, child = result.items
        assert updated.quantity == 4
        assert updated.is_active
        assert updated.stage_id == "s-in"
        assert updated.child_ids == (child.id,)
        assert child.quantity == 4
        assert child.stage_id == "s-split"
        assert child.parent_id == parent.id
        assert child.sku == "WIP-CASE-HT"
        assert child.name == "Casing Hutan Tropis"

    def test_full_split_consumes_parent(self, engine, make_item, make_context):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=2)

        result = _split(engine, (parent,), ctx, parent.id, consumed=2, yielded=8)

        updated = result.item(parent.id)
        assert updated.status is ItemStatus.CONSUMED
        assert updated.quantity == 0
        assert result.items[-1].quantity == 8

    def test_repeat_splits_accumulate_child_ids(self, engine, make_item, make_context):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=5)

        first = _split(engine, (parent,), ctx, parent.id, consumed=1, yielded=4)
        second = _split(engine, first.items, ctx, parent.id, consumed=1, yielded=4)

        assert second.item(parent.id).child_ids == ("item-0001", "item-0002")
        assert len(second.items) == 3

    def test_log_metadata(self, engine, make_item, make_context):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=5)

        result = _split(engine, (parent,), ctx, parent.id, consumed=1, yielded=4)

        entry = result.log
        assert entry.action is ActivityAction.SPLIT
        assert entry.logic_type is StageLogicType.SPLIT
        assert entry.from_stage == "Intake"
        assert entry.to_stage == "Cutting"
        assert entry.metadata["consumed"] == 1
        assert entry.metadata["yield"] == 4
        assert entry.metadata["child_count"] == 4
        assert entry.metadata["child_item_id"] == "item-0001"
        assert entry.metadata["child_sku"] == "WIP-CASE-HT"

    def test_child_without_sku(self, engine, make_item, make_context):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=1)

        result = _split(engine, (parent,), ctx, parent.id, consumed=1, yielded=3, child_sku=None)

        assert result.items[-1].sku is None

    def test_child_inherits_collection(self, engine, make_item, make_context):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=1, collection="Kaliandra")

        result = _split(engine, (parent,), ctx, parent.id, consumed=1, yielded=3)

        assert result.items[-1].collection == "Kaliandra"


class TestSplitRefusals:
    @pytest.mark.parametrize("consumed", [0, 6, -2])
    def test_consumed_out_of_range(self, engine, make_item, make_context, consumed):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=5)
        with pytest.raises(InvalidQuantityError) as exc_info:
            _split(engine, (parent,), ctx, parent.id, consumed=consumed, yielded=4)
        assert exc_info.value.field == "consumed_count"

    @pytest.mark.parametrize("yielded", [0, -1])
    def test_yield_must_be_positive(self, engine, make_item, make_context, yielded):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=5)
        with pytest.raises(InvalidQuantityError) as exc_info:
            _split(engine, (parent,), ctx, parent.id, consumed=1, yielded=yielded)
        assert exc_info.value.field == "yield_count"

    def test_empty_child_name(self, engine, make_item, make_context):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=5)
        with pytest.raises(ValueError):
            _split(engine, (parent,), ctx, parent.id, consumed=1, yielded=4, child_name="")

    def test_split_needs_split_stage(self, engine, make_item, make_context):
        ctx = make_context()
        parent = make_item(stage_id="s-in", quantity=5)
        with pytest.raises(StageLogicMismatchError) as exc_info:
            _split(engine, (parent,), ctx, parent.id, consumed=1, yielded=4, to_stage_id="s-pack")
        assert exc_info.value.logic_type == "passthrough"

    def test_category_gate_on_parent(self, engine, context):
        finished = context.catalog.product("FG-HT42-BLK")
        item = KanbanItem(
            id="fg-1", name=finished.name, sku=finished.sku, stage_id="stg-packing", quantity=2,
        )
        with pytest.raises(CategoryNotAllowedError):
            _split(engine, (item,), context, "fg-1", consumed=1, yielded=2, to_stage_id="stg-cnc")

    def test_raw_block_split_at_cnc(self, engine, context, demo_items):
        result = _split(
            engine, demo_items, context, "item-001",
            consumed=1, yielded=4, to_stage_id="stg-cnc",
        )
        assert result.item("item-001").quantity == 4
        assert result.items[-1].stage_id == "stg-cnc"
        assert result.log.to_stage == "CNC / Processing"
