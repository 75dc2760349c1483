"""Item State

The scheduling record for one (user, item) pair. Values are immutable; the
Outcome Processor produces a successor with ``apply_review`` and swaps it in.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from core.errors import AppError, Ok, Result, invariant_violated
from engines.interval_policy import Transition
from engines.ratings import Rating

DEFAULT_DIFFICULTY_FACTOR = 2.5
MIN_DIFFICULTY_FACTOR = 1.3


@dataclass(frozen=True, slots=True)
class ReviewEntry:
    """One accepted review, as recorded in the append-only history."""
    timestamp: datetime
    rating: Rating
    resulting_level: int
    submission_id: str


@dataclass(frozen=True, slots=True)
class ItemState:
    user_id: str
    item_id: str
    created_at: datetime
    next_review: datetime
    level: int = 0
    difficulty_factor: float = DEFAULT_DIFFICULTY_FACTOR
    consecutive_correct: int = 0
    last_reviewed: datetime | None = None
    review_history: tuple[ReviewEntry, ...] = ()
    version: int = 0
    last_submission_id: str | None = None

    @classmethod
    def new(
        cls,
        user_id: str,
        item_id: str,
        now: datetime,
        difficulty_factor: float = DEFAULT_DIFFICULTY_FACTOR,
    ) -> ItemState:
        """Fresh state for a newly registered item: due immediately, level 0."""
        return cls(
            user_id=user_id,
            item_id=item_id,
            created_at=now,
            next_review=now,
            difficulty_factor=difficulty_factor,
        )

    @property
    def is_new(self) -> bool:
        return self.last_reviewed is None

    @property
    def interval_days(self) -> int | None:
        """Days between the last review and the scheduled one, None before the first review."""
        if self.last_reviewed is None:
            return None
        return round((self.next_review - self.last_reviewed) / timedelta(days=1))

    def is_mastered(self, threshold: int) -> bool:
        return self.level >= threshold

    def first_reviewed(self) -> datetime | None:
        return self.review_history[0].timestamp if self.review_history else None

    def apply_review(
        self,
        transition: Transition,
        rating: Rating,
        submission_id: str,
        now: datetime,
    ) -> ItemState:
        """Successor state after an accepted review."""
        streak = 0 if transition.resets_streak else self.consecutive_correct + 1
        entry = ReviewEntry(
            timestamp=now,
            rating=rating,
            resulting_level=transition.new_level,
            submission_id=submission_id,
        )
        return replace(
            self,
            level=transition.new_level,
            difficulty_factor=transition.new_difficulty_factor,
            consecutive_correct=streak,
            last_reviewed=now,
            next_review=now + timedelta(days=transition.new_interval_days),
            review_history=self.review_history + (entry,),
            version=self.version + 1,
            last_submission_id=submission_id,
        )

    def check_invariants(self) -> Result[ItemState, AppError]:
        """Verify the record is internally consistent."""
        origin = "item_state"
        anchor = self.last_reviewed if self.last_reviewed is not None else self.created_at
        if self.next_review < anchor:
            return invariant_violated(
                "next_review_after_anchor", self.item_id, origin=origin,
                next_review=self.next_review.isoformat(), anchor=anchor.isoformat(),
            )
        if self.difficulty_factor < MIN_DIFFICULTY_FACTOR:
            return invariant_violated(
                "difficulty_factor_floor", self.item_id, origin=origin,
                difficulty_factor=self.difficulty_factor,
            )
        if self.level < 0 or self.consecutive_correct < 0:
            return invariant_violated("non_negative_counters", self.item_id, origin=origin)
        if self.version != len(self.review_history):
            return invariant_violated(
                "version_tracks_history", self.item_id, origin=origin,
                version=self.version, history=len(self.review_history),
            )
        return Ok(self)
