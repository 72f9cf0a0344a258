"""
Dashboard statistics over the demo board.

Opening board: 110 raw units and 10 WIP units in production, 8 finished
watches (3 at 450k, 5 at 425k) in packing.
"""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from mes_engines.stats import calc_stats, stage_summaries, start_of_day
from mes_kernel.domain.activity import ActivityLog
from mes_kernel.domain.values import SalesChannel

ACTOR = "tester"


def _sell(engine, items, context, item_id, channel):
    return engine.sell(
        items, item_id=item_id, to_stage_id="stg-sold", channel=channel,
        sale_price=Decimal("425000"), actor=ACTOR, context=context,
    )


class TestOpeningBoard:
    def test_counts(self, demo_items, context, deterministic_clock):
        stats = calc_stats(demo_items, ActivityLog(), context.blueprint, deterministic_clock.now())

        assert stats.wip_count == 120
        assert stats.ready_stock_count == 8
        assert stats.stock_value == Decimal("3475000")
        assert stats.sales_today_count == 0
        assert stats.units_sold_today == 0
        assert stats.split_today_count == 0
        assert stats.merge_today_count == 0
        assert stats.rejected_count == 0
        assert stats.sales_by_channel == {}

    def test_stage_summaries(self, demo_items, context):
        summaries = stage_summaries(demo_items, context.blueprint)
        assert [s.stage_id for s in summaries] == [
            "stg-raw", "stg-cnc", "stg-finishing", "stg-assembly", "stg-packing", "stg-sold",
        ]
        raw = summaries[0]
        assert (raw.batch_count, raw.unit_count) == (6, 110)
        assert summaries[-1].unit_count == 0


class TestAfterActivity:
    def test_sale_counts_today(self, engine, demo_items, context, deterministic_clock):
        result = _sell(engine, demo_items, context, "item-006", SalesChannel.SHOPEE)
        log = ActivityLog(result.logs)

        stats = calc_stats(result.items, log, context.blueprint, deterministic_clock.now())

        assert stats.sales_today_count == 1
        assert stats.units_sold_today == 5
        assert stats.sales_by_channel == {"shopee": 1}
        assert stats.ready_stock_count == 3
        assert stats.stock_value == Decimal("1350000")

    def test_yesterdays_sales_do_not_count(self, engine, demo_items, context, deterministic_clock):
        result = _sell(engine, demo_items, context, "item-006", SalesChannel.SHOPEE)
        tomorrow = deterministic_clock.now() + timedelta(days=1)

        stats = calc_stats(result.items, ActivityLog(result.logs), context.blueprint, tomorrow)

        assert stats.sales_today_count == 0

    def test_today_follows_as_of_timezone(self, engine, demo_items, context, deterministic_clock):
        # 09:00 UTC is 16:00 in Jakarta; at 06:00 the next Jakarta morning it is "yesterday"
        result = _sell(engine, demo_items, context, "item-006", SalesChannel.SHOPEE)
        jakarta = timezone(timedelta(hours=7))
        next_morning = datetime(2026, 3, 3, 6, 0, tzinfo=jakarta)

        stats = calc_stats(result.items, ActivityLog(result.logs), context.blueprint, next_morning)

        assert stats.sales_today_count == 0

    def test_split_and_reject(self, engine, demo_items, context, deterministic_clock):
        split = engine.split(
            demo_items, item_id="item-001", to_stage_id="stg-cnc", consumed_count=1,
            yield_count=4, child_name="Casing", child_sku="WIP-CASE-HT",
            actor=ACTOR, context=context,
        )
        rejected = engine.reject(
            split.items, item_id="item-002", reject_qty=2, actor=ACTOR, context=context,
        )
        log = ActivityLog(split.logs + rejected.logs)

        stats = calc_stats(rejected.items, log, context.blueprint, deterministic_clock.now())

        assert stats.split_today_count == 1
        assert stats.rejected_count == 2
        assert [i.quantity for i in stats.rejected_items] == [2]
        assert stats.wip_count == 120 + 3 - 2


class TestStartOfDay:
    def test_local_midnight(self):
        as_of = datetime(2026, 3, 2, 15, 30, tzinfo=UTC)
        assert start_of_day(as_of) == datetime(2026, 3, 2, tzinfo=UTC)

    def test_naive_rejected(self):
        with pytest.raises(ValueError):
            start_of_day(datetime(2026, 3, 2, 15, 30))
