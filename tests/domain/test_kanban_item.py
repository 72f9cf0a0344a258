"""
Kanban item and snapshot helper tests.
"""

from decimal import Decimal

import pytest

from mes_kernel.domain.kanban import (
    AssemblyProgress,
    KanbanItem,
    active_items,
    find_container,
    find_item,
    find_loose_item,
    items_at_stage,
    remove_item,
    replace_item,
    require_item,
)
from mes_kernel.domain.values import ItemStatus
from mes_kernel.exceptions import ItemNotFoundError


class TestKanbanItemInvariants:
    """Quantity and identity rules enforced at construction."""

    def test_defaults(self, make_item):
        item = make_item()
        assert item.is_active
        assert item.price == Decimal("0")
        assert item.child_ids == ()
        assert not item.is_container

    def test_zero_quantity_only_when_consumed(self, make_item):
        with pytest.raises(ValueError, match="zero quantity"):
            make_item(quantity=0)
        consumed = make_item(quantity=0, status=ItemStatus.CONSUMED)
        assert consumed.quantity == 0

    def test_zero_quantity_sold_rejected(self, make_item):
        with pytest.raises(ValueError):
            make_item(quantity=0, status=ItemStatus.SOLD)

    def test_negative_quantity(self, make_item):
        with pytest.raises(ValueError):
            make_item(quantity=-1)

    @pytest.mark.parametrize("bad", [1.5, "3", True])
    def test_non_int_quantity(self, make_item, bad):
        with pytest.raises(TypeError):
            make_item(quantity=bad)

    def test_empty_id(self):
        with pytest.raises(ValueError):
            KanbanItem(id="", name="x", sku=None, stage_id="s", quantity=1)

    def test_evolve_keeps_id(self, make_item):
        item = make_item(quantity=5)
        moved = item.evolve(stage_id="stg-cnc", quantity=3)
        assert moved.id == item.id
        assert item.quantity == 5

    def test_terminal_statuses(self):
        assert not ItemStatus.ACTIVE.is_terminal
        assert all(s.is_terminal for s in ItemStatus if s is not ItemStatus.ACTIVE)


class TestAssemblyProgress:
    """Partial BOM fulfilment on containers."""

    def test_add_and_total(self):
        progress = AssemblyProgress("FG-X").add("A", 2).add("B", 1).add("A", 1)
        assert progress.allocated("A") == 3
        assert progress.total_units == 4
        assert progress.allocated("C") == 0

    def test_progress_is_read_only(self):
        progress = AssemblyProgress("FG-X", {"A": 1})
        with pytest.raises(TypeError):
            progress.progress["A"] = 5

    def test_negative_progress_rejected(self):
        with pytest.raises(ValueError):
            AssemblyProgress("FG-X", {"A": -1})

    def test_equality_and_hash(self):
        a = AssemblyProgress("FG-X", {"A": 1, "B": 2})
        b = AssemblyProgress("FG-X", {"B": 2, "A": 1})
        assert a == b
        assert hash(a) == hash(b)
        assert a.cleared().total_units == 0

    def test_container_units_follow_progress(self, make_item):
        progress = AssemblyProgress("FG-X", {"A": 2, "B": 1})
        container = make_item(sku="WIP-FG-X", quantity=3, assembly=progress)
        assert container.is_container
        assert container.units == 3


class TestSnapshotHelpers:
    """Pure queries and rebuilds over item tuples."""

    def test_find_and_require(self, make_item):
        items = (make_item(), make_item())
        assert find_item(items, items[1].id) is items[1]
        assert find_item(items, "nope") is None
        with pytest.raises(ItemNotFoundError):
            require_item(items, "nope")

    def test_find_loose_item_skips_containers_and_inactive(self, make_item):
        container = make_item(
            sku="RAW-A", stage_id="s", quantity=1,
            assembly=AssemblyProgress("FG", {"RAW-A": 1}),
        )
        sold = make_item(sku="RAW-A", stage_id="s", status=ItemStatus.SOLD)
        pile = make_item(sku="RAW-A", stage_id="s")
        items = (container, sold, pile)
        assert find_loose_item(items, "RAW-A", "s") is pile
        assert find_loose_item(items, "RAW-A", "s", exclude_id=pile.id) is None
        assert find_loose_item(items, None, "s") is None

    def test_find_loose_item_without_sku(self, make_item):
        loose = make_item(sku=None, stage_id="s")
        items = (make_item(sku="RAW-A", stage_id="s"), loose)
        assert find_loose_item(items, None, "s") is None
        assert find_loose_item(items, None, "s", match_missing_sku=True) is loose

    def test_find_container(self, make_item):
        container = make_item(
            sku="WIP-FG", stage_id="s", quantity=1,
            assembly=AssemblyProgress("FG", {"A": 1}),
        )
        assert find_container((container,), "s", "FG") is container
        assert find_container((container,), "s", "OTHER") is None
        assert find_container((container,), "t", "FG") is None

    def test_replace_item_keeps_order(self, make_item):
        a, b, c = make_item(), make_item(), make_item()
        updated = replace_item((a, b, c), b.evolve(quantity=9))
        assert [i.id for i in updated] == [a.id, b.id, c.id]
        assert updated[1].quantity == 9

    def test_replace_missing_item(self, make_item):
        with pytest.raises(ItemNotFoundError):
            replace_item((make_item(),), make_item())

    def test_remove_item(self, make_item):
        a, b = make_item(), make_item()
        assert remove_item((a, b), a.id) == (b,)
        with pytest.raises(ItemNotFoundError):
            remove_item((a, b), "missing")

    def test_stage_filters(self, make_item):
        active = make_item(stage_id="s")
        rejected = make_item(stage_id="s", status=ItemStatus.REJECTED)
        elsewhere = make_item(stage_id="t")
        items = (active, rejected, elsewhere)
        assert items_at_stage(items, "s") == (active,)
        assert items_at_stage(items, "s", active_only=False) == (active, rejected)
        assert active_items(items) == (active, elsewhere)
