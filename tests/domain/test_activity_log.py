"""
Activity log tests.

Verifies:
- Entries are frozen and carry a read-only metadata mapping
- Timestamps must be timezone-aware
- The log is append-only and refuses duplicate entry ids
- Time and item queries used by dashboards and recaps
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from mes_kernel.domain.activity import ActivityLog, ActivityLogEntry
from mes_kernel.domain.values import ActivityAction, StageLogicType
from mes_kernel.exceptions import DuplicateLogEntryError

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _entry(entry_id, ts=T0, action=ActivityAction.MOVED, item_id="item-1", **metadata):
    return ActivityLogEntry(
        id=entry_id,
        timestamp=ts,
        user="tester",
        action=action,
        item_name="Balok Kayu Jati",
        from_stage="Raw Material",
        to_stage="CNC / Processing",
        logic_type=StageLogicType.PASSTHROUGH,
        metadata=metadata,
        item_id=item_id,
    )


class TestActivityLogEntry:
    def test_naive_timestamp_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            _entry("log-1", ts=datetime(2026, 3, 2, 9, 0))

    def test_metadata_is_read_only(self):
        entry = _entry("log-1", quantity=3)
        with pytest.raises(TypeError):
            entry.metadata["quantity"] = 4

    def test_entry_is_frozen(self):
        entry = _entry("log-1")
        with pytest.raises(AttributeError):
            entry.user = "someone"

    def test_equality_compares_metadata(self):
        assert _entry("log-1", quantity=3) == _entry("log-1", quantity=3)
        assert _entry("log-1", quantity=3) != _entry("log-1", quantity=4)


class TestActivityLogAppend:
    """Append-only semantics."""

    def test_append_returns_new_log(self):
        empty = ActivityLog()
        log = empty.append(_entry("log-1"))
        assert len(empty) == 0
        assert len(log) == 1
        assert "log-1" in log

    def test_duplicate_id_in_same_append(self):
        with pytest.raises(DuplicateLogEntryError):
            ActivityLog().append(_entry("log-1"), _entry("log-1"))

    def test_duplicate_id_across_appends(self):
        log = ActivityLog([_entry("log-1")])
        with pytest.raises(DuplicateLogEntryError) as exc_info:
            log.append(_entry("log-1"))
        assert exc_info.value.code == "DUPLICATE_LOG_ENTRY"

    def test_construct_from_generator(self):
        log = ActivityLog(_entry(f"log-{i}") for i in range(3))
        assert [e.id for e in log] == ["log-0", "log-1", "log-2"]

    def test_insertion_order_preserved(self):
        log = ActivityLog().append(_entry("b", ts=T0 + timedelta(hours=1)), _entry("a", ts=T0))
        assert [e.id for e in log.entries] == ["b", "a"]
        assert log[0].id == "b"


class TestActivityLogQueries:
    """Queries over the trail."""

    @pytest.fixture
    def log(self):
        return ActivityLog([
            _entry("log-1", ts=T0 - timedelta(days=1), item_id="item-1"),
            _entry("log-2", ts=T0, action=ActivityAction.SPLIT, item_id="item-2"),
            _entry("log-3", ts=T0 + timedelta(hours=2), action=ActivityAction.SOLD, item_id="item-1"),
        ])

    def test_since(self, log):
        assert [e.id for e in log.since(T0)] == ["log-2", "log-3"]

    def test_between_is_half_open(self, log):
        window = log.between(T0, T0 + timedelta(hours=2))
        assert [e.id for e in window] == ["log-2"]

    def test_for_item(self, log):
        assert [e.id for e in log.for_item("item-1")] == ["log-1", "log-3"]

    def test_by_action(self, log):
        assert [e.id for e in log.by_action(ActivityAction.SOLD)] == ["log-3"]

    def test_newest_first(self, log):
        assert [e.id for e in log.newest_first()] == ["log-3", "log-2", "log-1"]

    def test_grouped_by_day_newest_day_first(self, log):
        groups = log.grouped_by_day(UTC)
        days = list(groups)
        assert days == [T0.date(), (T0 - timedelta(days=1)).date()]
        assert [e.id for e in groups[T0.date()]] == ["log-3", "log-2"]

    def test_grouped_by_day_uses_local_zone(self):
        late = T0.replace(hour=20)
        log = ActivityLog([_entry("log-1", ts=late)])
        jakarta = timezone(timedelta(hours=7))
        assert list(log.grouped_by_day(jakarta)) == [(late + timedelta(hours=7)).date()]
