"""Schedule Summary

Read-only views over a user's partition: due counts bucketed by calendar
day, and review performance derived from the review histories. Nothing
computed here is stored.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from core.errors import AppError, EngineErrorMapper, Err, Ok, Result, invalid_format
from core.logging import srs_logger
from engines.clock import Clock, DayStart, calendar_date
from engines.item_state import ItemState
from engines.partition import PartitionStore

log = srs_logger()

ORIGIN = "engine.summary"


@dataclass(frozen=True, slots=True)
class ScheduleSummary:
    user_id: str
    as_of: datetime
    overdue: int
    due_today: int
    due_tomorrow: int
    due_this_week: int
    due_next_week: int
    not_due_later: int
    total: int
    due_by_date: dict[date, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ReviewPerformance:
    user_id: str
    total_reviews: int
    correct_reviews: int
    accuracy: float  # Percent of reviews not rated Again
    streak_days: int
    mastered_items: int
    mastery_distribution: dict[str, int] = field(default_factory=dict)


def days_until_review(state: ItemState, as_of: datetime, day_start: DayStart) -> int:
    """Whole calendar days from as_of's day to the review day; negative when overdue."""
    return (calendar_date(day_start, state.next_review) - calendar_date(day_start, as_of)).days


def mastery_bucket(state: ItemState, threshold: int) -> str:
    if state.is_new:
        return "new"
    if state.level >= threshold:
        return "mastered"
    if state.level <= 2:
        return "learning"
    if state.level <= 5:
        return "reviewing"
    return "maturing"


def review_streak(review_days: set[date], today: date) -> int:
    """Consecutive days with at least one review, ending today (0 without a review today)."""
    streak = 0
    day = today
    while day in review_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


class ScheduleReporter:
    """Due-count and performance aggregates for a user."""

    __slots__ = ("_partitions", "_clock", "_mastery_threshold", "_mapper")

    def __init__(self, partitions: PartitionStore, clock: Clock, mastery_threshold: int = 12):
        self._partitions = partitions
        self._clock = clock
        self._mastery_threshold = mastery_threshold
        self._mapper = EngineErrorMapper("summary")

    async def get_summary(self, user_id: str, as_of: datetime) -> Result[ScheduleSummary, AppError]:
        if as_of.tzinfo is None:
            return invalid_format("as_of", "timezone-aware datetime", as_of.isoformat(), origin=ORIGIN)
        try:
            schedule = await self._partitions.get(user_id)
        except Exception as exc:
            log.exception("partition_load_failed", user_id=user_id)
            return Err(self._mapper.map_exception(exc))

        counts = schedule.index.count_buckets(as_of, self._clock.day_start)
        return Ok(ScheduleSummary(
            user_id=user_id,
            as_of=as_of,
            overdue=counts.overdue,
            due_today=counts.due_today,
            due_tomorrow=counts.due_tomorrow,
            due_this_week=counts.due_this_week,
            due_next_week=counts.due_next_week,
            not_due_later=counts.not_due_later,
            total=counts.total,
            due_by_date=counts.due_by_date,
        ))

    async def get_performance(self, user_id: str, as_of: datetime) -> Result[ReviewPerformance, AppError]:
        if as_of.tzinfo is None:
            return invalid_format("as_of", "timezone-aware datetime", as_of.isoformat(), origin=ORIGIN)
        try:
            schedule = await self._partitions.get(user_id)
        except Exception as exc:
            log.exception("partition_load_failed", user_id=user_id)
            return Err(self._mapper.map_exception(exc))

        day_start = self._clock.day_start
        total = correct = mastered = 0
        review_days: set[date] = set()
        distribution = {"new": 0, "learning": 0, "reviewing": 0, "maturing": 0, "mastered": 0}

        for state in schedule:
            bucket = mastery_bucket(state, self._mastery_threshold)
            distribution[bucket] += 1
            if bucket == "mastered":
                mastered += 1
            for entry in state.review_history:
                if entry.timestamp > as_of:
                    continue
                total += 1
                if entry.rating.is_correct:
                    correct += 1
                review_days.add(calendar_date(day_start, entry.timestamp))

        return Ok(ReviewPerformance(
            user_id=user_id,
            total_reviews=total,
            correct_reviews=correct,
            accuracy=round(correct / total * 100, 1) if total else 0.0,
            streak_days=review_streak(review_days, calendar_date(day_start, as_of)),
            mastered_items=mastered,
            mastery_distribution=distribution,
        ))
