"""
Completion planning for assembly containers.
"""

import pytest

from mes_engines.assembly import missing_parts, plan_completion, possible_completions
from mes_kernel.domain.master_data import BOMComponent, MasterProduct

WATCH = MasterProduct(
    sku="FG-W",
    name="Watch",
    collection=None,
    bom=(
        BOMComponent("CASE", "Case", 1),
        BOMComponent("STRAP", "Strap", 2),
    ),
)


class TestPossibleCompletions:
    @pytest.mark.parametrize(
        "progress, expected",
        [
            ({}, 0),
            ({"CASE": 3}, 0),
            ({"CASE": 1, "STRAP": 1}, 0),
            ({"CASE": 1, "STRAP": 2}, 1),
            ({"CASE": 3, "STRAP": 5}, 2),
            ({"CASE": 4, "STRAP": 8, "OTHER": 9}, 4),
        ],
    )
    def test_limited_by_scarcest_line(self, progress, expected):
        assert possible_completions(WATCH, progress) == expected

    def test_empty_bom_never_completes(self):
        empty = MasterProduct("FG-E", "Empty", None, ())
        assert possible_completions(empty, {"CASE": 10}) == 0


class TestPlanCompletion:
    def test_no_completion_consumes_nothing(self):
        plan = plan_completion(WATCH, {"CASE": 2})
        assert not plan.completes
        assert plan.consumed == {}
        assert plan.leftover == {}

    def test_consumed_and_leftover(self):
        plan = plan_completion(WATCH, {"CASE": 3, "STRAP": 5})
        assert plan.completions == 2
        assert plan.consumed == {"CASE": 2, "STRAP": 4}
        assert plan.consumed_units == 6
        assert plan.leftover == {"CASE": 1, "STRAP": 1}

    def test_parts_outside_bom_returned_whole(self):
        plan = plan_completion(WATCH, {"CASE": 1, "STRAP": 2, "GHOST": 3})
        assert plan.leftover == {"GHOST": 3}

    def test_units_are_conserved(self):
        progress = {"CASE": 5, "STRAP": 7}
        plan = plan_completion(WATCH, progress)
        assert plan.consumed_units + sum(plan.leftover.values()) == sum(progress.values())


class TestMissingParts:
    def test_needed_for_next_unit(self):
        assert missing_parts(WATCH, {"CASE": 1}) == {"STRAP": 2}
        assert missing_parts(WATCH, {"CASE": 1, "STRAP": 2}) == {"CASE": 1, "STRAP": 2}
        assert missing_parts(WATCH, {}) == {"CASE": 1, "STRAP": 2}
