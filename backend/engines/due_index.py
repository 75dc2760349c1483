"""Due Index

All of one user's items ordered by ``(next_review, item_id)``. A pure data
structure: it answers range and bucket queries and knows nothing about
levels, ratings or sessions.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator

from sortedcontainers import SortedList

from engines.clock import DayStart, day_boundaries, next_day_start

_ONE_TICK = timedelta(microseconds=1)

IndexKey = tuple[datetime, str]


@dataclass(frozen=True, slots=True)
class BucketCounts:
    """Due counts partitioned at calendar-day boundaries relative to ``as_of``."""
    overdue: int = 0
    due_today: int = 0
    due_tomorrow: int = 0
    due_this_week: int = 0
    due_next_week: int = 0
    not_due_later: int = 0
    total: int = 0
    due_by_date: dict[date, int] = field(default_factory=dict)


class DueIndex:
    """Ordered map item_id -> next_review with O(log n) point updates."""

    __slots__ = ("_keys", "_next_review")

    def __init__(self) -> None:
        self._keys: SortedList = SortedList()
        self._next_review: dict[str, datetime] = {}

    @classmethod
    def rebuild(cls, entries: Iterable[tuple[str, datetime]]) -> DueIndex:
        """Reconstruct the index from (item_id, next_review) pairs."""
        index = cls()
        for item_id, next_review in entries:
            index._next_review[item_id] = next_review
        index._keys = SortedList((nr, iid) for iid, nr in index._next_review.items())
        return index

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._next_review

    def get(self, item_id: str) -> datetime | None:
        return self._next_review.get(item_id)

    def update(self, item_id: str, next_review: datetime) -> None:
        """Insert the item or move it to its new review time."""
        current = self._next_review.get(item_id)
        if current is not None:
            if current == next_review:
                return
            self._keys.remove((current, item_id))
        self._keys.add((next_review, item_id))
        self._next_review[item_id] = next_review

    def remove(self, item_id: str) -> bool:
        current = self._next_review.pop(item_id, None)
        if current is None:
            return False
        self._keys.remove((current, item_id))
        return True

    def _count_before(self, instant: datetime) -> int:
        # (t,) sorts before every (t, item_id), so this counts next_review < t
        return self._keys.bisect_left((instant,))

    def range_before(self, instant: datetime) -> list[str]:
        """Item ids with next_review <= instant, ascending, ties by item id."""
        stop = self._count_before(instant + _ONE_TICK)
        return [item_id for _, item_id in self._keys.islice(0, stop)]

    def range_between(
        self,
        start: datetime | None,
        end: datetime,
        *,
        after: IndexKey | None = None,
        include_end: bool = False,
    ) -> Iterator[IndexKey]:
        """Keys with start <= next_review < end (<= end with include_end).

        ``after`` resumes strictly past a previously yielded key.
        """
        lo = 0 if start is None else self._count_before(start)
        if after is not None:
            lo = max(lo, self._keys.bisect_right(after))
        hi = self._count_before(end + _ONE_TICK if include_end else end)
        if lo >= hi:
            return iter(())
        return self._keys.islice(lo, hi)

    def count_buckets(self, as_of: datetime, day_start: DayStart) -> BucketCounts:
        """Bucket counts from one ordered scan, split at day boundaries of ``as_of``."""
        d0, d1, d2, *_, d7 = day_boundaries(day_start, as_of, 7)
        d14 = day_boundaries(day_start, d7, 7)[-1]

        overdue = today = tomorrow = week = next_week = later = 0
        by_date: dict[date, int] = {}
        window_start: datetime | None = None
        window_end: datetime | None = None

        for next_review, _ in self._keys:
            if window_end is None or next_review >= window_end:
                window_start = day_start(next_review)
                window_end = next_day_start(day_start, window_start)
            day = window_start.date()
            by_date[day] = by_date.get(day, 0) + 1

            if next_review < d0:
                overdue += 1
            elif next_review < d7:
                week += 1
                if next_review < d1:
                    today += 1
                elif next_review < d2:
                    tomorrow += 1
            else:
                later += 1
                if next_review < d14:
                    next_week += 1

        return BucketCounts(
            overdue=overdue,
            due_today=today,
            due_tomorrow=tomorrow,
            due_this_week=week,
            due_next_week=next_week,
            not_due_later=later,
            total=len(self._keys),
            due_by_date=by_date,
        )
