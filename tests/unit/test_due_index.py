"""Due Index ordering, range scans and calendar-day buckets."""
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import T0
from engines.clock import FixedClock
from engines.due_index import DueIndex

UTC_CLOCK = FixedClock(T0)


def days(n: float) -> timedelta:
    return timedelta(days=n)


@pytest.fixture
def index():
    return DueIndex.rebuild([
        ("b", T0 - days(1)),
        ("a", T0 - days(1)),
        ("c", T0),
        ("d", T0 + days(2)),
    ])


class TestRangeBefore:
    def test_ascending_with_ties_broken_by_item_id(self, index):
        assert index.range_before(T0 + days(5)) == ["a", "b", "c", "d"]

    def test_inclusive_at_the_boundary(self, index):
        assert index.range_before(T0) == ["a", "b", "c"]

    def test_nothing_due(self, index):
        assert index.range_before(T0 - days(3)) == []


class TestUpdates:
    def test_update_moves_item(self, index):
        index.update("a", T0 + days(10))
        assert index.range_before(T0) == ["b", "c"]
        assert index.get("a") == T0 + days(10)
        assert len(index) == 4

    def test_update_inserts_unknown_item(self, index):
        index.update("e", T0 - days(9))
        assert index.range_before(T0)[0] == "e"
        assert "e" in index

    def test_remove(self, index):
        assert index.remove("c") is True
        assert index.remove("c") is False
        assert "c" not in index
        assert index.range_before(T0) == ["a", "b"]


class TestRangeBetween:
    def test_half_open_by_default(self, index):
        keys = list(index.range_between(T0 - days(1), T0))
        assert [k[1] for k in keys] == ["a", "b"]

    def test_include_end(self, index):
        keys = list(index.range_between(None, T0, include_end=True))
        assert [k[1] for k in keys] == ["a", "b", "c"]

    def test_resumes_after_key(self, index):
        keys = list(index.range_between(None, T0 + days(5), after=(T0 - days(1), "a")))
        assert [k[1] for k in keys] == ["b", "c", "d"]


class TestCountBuckets:
    def test_buckets_follow_calendar_days(self):
        index = DueIndex.rebuild([
            ("overdue", T0 - days(2)),
            ("earlier-today", T0 - timedelta(hours=1)),
            ("later-today", T0 + timedelta(hours=5)),
            ("tomorrow", T0 + days(1)),
            ("thursday", T0 + days(3)),
            ("next-week", T0 + days(8)),
            ("next-month", T0 + days(20)),
        ])
        counts = index.count_buckets(T0, UTC_CLOCK.day_start)

        assert counts.overdue == 1
        assert counts.due_today == 2
        assert counts.due_tomorrow == 1
        assert counts.due_this_week == 4
        assert counts.due_next_week == 1
        assert counts.not_due_later == 2
        assert counts.total == 7
        assert counts.overdue + counts.due_this_week + counts.not_due_later == counts.total

    def test_due_by_date(self):
        index = DueIndex.rebuild([
            ("x", T0 - timedelta(hours=3)),
            ("y", T0 + timedelta(hours=3)),
            ("z", T0 + days(1)),
        ])
        counts = index.count_buckets(T0, UTC_CLOCK.day_start)
        assert counts.due_by_date == {date(2024, 3, 4): 2, date(2024, 3, 5): 1}

    def test_day_boundary_is_midnight_not_now_minus_24h(self):
        # Due yesterday evening but less than a day ago: overdue, not due today
        index = DueIndex.rebuild([("late", datetime(2024, 3, 3, 23, 0, tzinfo=timezone.utc))])
        counts = index.count_buckets(T0, UTC_CLOCK.day_start)
        assert counts.overdue == 1
        assert counts.due_today == 0

    def test_day_start_in_another_zone(self):
        new_york = FixedClock(T0, tz=ZoneInfo("America/New_York"))
        # 03:00 UTC on Tuesday is still Monday evening in New York
        index = DueIndex.rebuild([("evening", datetime(2024, 3, 5, 3, 0, tzinfo=timezone.utc))])
        counts = index.count_buckets(T0, new_york.day_start)
        assert counts.due_today == 1
        assert counts.due_by_date == {date(2024, 3, 4): 1}

    def test_empty_index(self):
        counts = DueIndex().count_buckets(T0, UTC_CLOCK.day_start)
        assert counts.total == 0
        assert counts.due_by_date == {}


def test_due_query_is_monotonic_in_time(index):
    earlier = set(index.range_before(T0 - timedelta(hours=1)))
    later = set(index.range_before(T0 + timedelta(days=1)))
    assert earlier <= later
    assert earlier == {"a", "b"}
