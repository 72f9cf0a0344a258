"""
Sale and reject transition tests.
"""

from decimal import Decimal

import pytest

from mes_kernel.domain.values import ActivityAction, ItemStatus, SalesChannel, StageLogicType
from mes_kernel.exceptions import (
    AssemblyContainerError,
    ChannelNotAllowedError,
    InvalidQuantityError,
    ItemNotActiveError,
    StageLogicMismatchError,
)

ACTOR = "tester"


def _sell(engine, items, ctx, item_id, channel=SalesChannel.SHOPEE, price=Decimal("450000"),
          to_stage_id="s-out"):
    return engine.sell(
        items, item_id=item_id, to_stage_id=to_stage_id, channel=channel,
        sale_price=price, actor=ACTOR, context=ctx,
    )


def _reject(engine, items, ctx, item_id, qty):
    return engine.reject(items, item_id=item_id, reject_qty=qty, actor=ACTOR, context=ctx)


class TestSell:
    """Whole-batch sales through an exit stage."""

    def test_item_becomes_sold(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(sku="FG-X", stage_id="s-pack", quantity=3)

        result = _sell(engine, (item,), ctx, item.id)

        sold = result.item(item.id)
        assert sold.status is ItemStatus.SOLD
        assert sold.stage_id == "s-out"
        assert sold.quantity == 3
        assert sold.sales_channel is SalesChannel.SHOPEE
        assert sold.price == Decimal("450000")

    def test_log_entry(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(sku="FG-X", stage_id="s-pack", quantity=3)

        result = _sell(engine, (item,), ctx, item.id, channel=SalesChannel.WHATSAPP)

        entry = result.log
        assert entry.action is ActivityAction.SOLD
        assert entry.logic_type is StageLogicType.EXIT
        assert entry.from_stage == "Packing"
        assert entry.to_stage == "Sold"
        assert entry.metadata == {
            "sales_channel": "whatsapp",
            "sale_price": "450000",
            "quantity": 3,
            "sku": "FG-X",
        }

    def test_channel_given_as_string(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(sku="FG-X", stage_id="s-pack", quantity=1)

        result = _sell(engine, (item,), ctx, item.id, channel="offline")

        assert result.item(item.id).sales_channel is SalesChannel.OFFLINE

    def test_unknown_channel(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(sku="FG-X", stage_id="s-pack", quantity=1)
        with pytest.raises(ValueError):
            _sell(engine, (item,), ctx, item.id, channel="telegram")

    def test_channel_not_enabled(self, engine, make_item, make_context):
        ctx = make_context(exit_channels=(SalesChannel.OFFLINE,))
        item = make_item(sku="FG-X", stage_id="s-pack", quantity=1)
        with pytest.raises(ChannelNotAllowedError) as exc_info:
            _sell(engine, (item,), ctx, item.id, channel=SalesChannel.SHOPEE)
        assert exc_info.value.enabled == ("offline",)

    def test_negative_price(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(sku="FG-X", stage_id="s-pack", quantity=1)
        with pytest.raises(ValueError):
            _sell(engine, (item,), ctx, item.id, price=Decimal("-1"))

    def test_sell_needs_exit_stage(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(sku="FG-X", stage_id="s-in", quantity=1)
        with pytest.raises(StageLogicMismatchError):
            _sell(engine, (item,), ctx, item.id, to_stage_id="s-pack")

    def test_sold_item_cannot_be_sold_again(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(sku="FG-X", stage_id="s-pack", quantity=1)
        sold = _sell(engine, (item,), ctx, item.id)
        with pytest.raises(ItemNotActiveError):
            _sell(engine, sold.items, ctx, item.id)

    def test_demo_sold_stage_enables_every_channel(self, engine, context, demo_items):
        result = _sell(
            engine, demo_items, context, "item-005",
            channel=SalesChannel.KOL_GIFT, price=Decimal("0"), to_stage_id="stg-sold",
        )
        assert result.item("item-005").sales_channel is SalesChannel.KOL_GIFT

    def test_demo_sale_of_finished_batch(self, engine, context, demo_items):
        result = _sell(engine, demo_items, context, "item-006", to_stage_id="stg-sold")
        assert result.item("item-006").status is ItemStatus.SOLD
        assert result.log.to_stage == "SOLD"


class TestReject:
    """Write-offs keep their units in a rejected item."""

    def test_full_reject_in_place(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(stage_id="s-in", quantity=4)

        result = _reject(engine, (item,), ctx, item.id, 4)

        assert len(result.items) == 1
        rejected = result.item(item.id)
        assert rejected.status is ItemStatus.REJECTED
        assert rejected.quantity == 4
        assert rejected.stage_id == "s-in"
        assert result.log.metadata["rejected_item_id"] == item.id

    def test_partial_reject_creates_waste_clone(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(stage_id="s-in", quantity=4, collection="Kaliandra")

        result = _reject(engine, (item,), ctx, item.id, 1)

        source, waste = result.items
        assert source.quantity == 3
        assert source.is_active
        assert waste.status is ItemStatus.REJECTED
        assert waste.quantity == 1
        assert waste.parent_id == item.id
        assert waste.stage_id == "s-in"
        assert waste.collection == "Kaliandra"

    def test_log_entry(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(stage_id="s-in", quantity=4)

        result = _reject(engine, (item,), ctx, item.id, 1)

        entry = result.log
        assert entry.action is ActivityAction.REJECTED
        assert entry.item_name == f"[REJECT] {item.name} (1x)"
        assert entry.from_stage == "Intake"
        assert entry.to_stage == "Waste / Reject"
        assert entry.metadata["rejected_qty"] == 1
        assert entry.metadata["sku"] == item.sku

    @pytest.mark.parametrize("qty", [0, 5])
    def test_quantity_out_of_range(self, engine, make_item, make_context, qty):
        ctx = make_context()
        item = make_item(stage_id="s-in", quantity=4)
        with pytest.raises(InvalidQuantityError):
            _reject(engine, (item,), ctx, item.id, qty)

    def test_rejected_item_is_terminal(self, engine, make_item, make_context):
        ctx = make_context()
        item = make_item(stage_id="s-in", quantity=4)
        done = _reject(engine, (item,), ctx, item.id, 4)
        with pytest.raises(ItemNotActiveError):
            _reject(engine, done.items, ctx, item.id, 1)

    def test_container_cannot_be_rejected(self, engine, make_context, two_part_product, test_materials, make_item):
        ctx = make_context(products=(two_part_product,), materials=test_materials)
        case = make_item(sku="WIP-CASE-HT", stage_id="s-in", quantity=2)
        opened = engine.allocate_to_assembly(
            (case,), item_id=case.id, to_stage_id="s-merge", allocate_qty=1,
            product_sku="FG-TEST", actor=ACTOR, context=ctx,
        )
        with pytest.raises(AssemblyContainerError):
            _reject(engine, opened.items, ctx, "item-0001", 1)
