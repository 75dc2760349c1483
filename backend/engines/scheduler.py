"""Scheduling Engine

Facade exposing the engine's operations to collaborators. Every dependency
(repository, clock, interval policy, event bus) is passed in; nothing is
reached through module globals.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from core.config import Settings
from core.errors import (
    AppError,
    EngineErrorMapper,
    Err,
    Ok,
    Result,
    duplicate_key,
    invalid_format,
    not_found,
    required_field,
)
from core.logging import srs_logger
from engines.clock import Clock, SystemClock
from engines.events import EventBus
from engines.interval_policy import DefaultIntervalPolicy, IntervalPolicy, PolicyConfig
from engines.item_state import ItemState
from engines.outcomes import OutcomeProcessor
from engines.partition import PartitionStore
from engines.ratings import Rating
from engines.repository import DuplicateItemError, ItemStateRepository
from engines.sessions import SessionBatch, SessionCoordinator, SessionMode
from engines.summary import ReviewPerformance, ScheduleReporter, ScheduleSummary, days_until_review

log = srs_logger()

ORIGIN = "engine.scheduler"


@dataclass(frozen=True, slots=True)
class SchedulerConfig:
    mastery_threshold: int = 12
    new_items_per_day: int = 20
    default_difficulty_factor: float = 2.5

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulerConfig:
        return cls(
            mastery_threshold=settings.MASTERY_THRESHOLD,
            new_items_per_day=settings.NEW_ITEMS_PER_DAY,
            default_difficulty_factor=settings.DEFAULT_DIFFICULTY_FACTOR,
        )


def policy_config_from_settings(settings: Settings) -> PolicyConfig:
    return PolicyConfig(
        min_difficulty_factor=settings.MIN_DIFFICULTY_FACTOR,
        default_difficulty_factor=settings.DEFAULT_DIFFICULTY_FACTOR,
        max_interval_days=settings.MAX_INTERVAL_DAYS,
    )


class SchedulingEngine:
    """Entry point for sessions, reviews, summaries and item lifecycle."""

    def __init__(
        self,
        repository: ItemStateRepository,
        *,
        clock: Clock | None = None,
        policy: IntervalPolicy | None = None,
        events: EventBus | None = None,
        config: SchedulerConfig | None = None,
    ):
        self.config = config or SchedulerConfig()
        self.clock = clock or SystemClock()
        self.events = events or EventBus()
        self._repository = repository
        self._partitions = PartitionStore(repository)
        self._mapper = EngineErrorMapper("scheduler")

        policy = policy or DefaultIntervalPolicy()
        self._outcomes = OutcomeProcessor(
            self._partitions,
            repository,
            policy,
            self.clock,
            self.events,
            mastery_threshold=self.config.mastery_threshold,
        )
        self._sessions = SessionCoordinator(
            self._partitions, self.clock, new_items_per_day=self.config.new_items_per_day
        )
        self._reporter = ScheduleReporter(
            self._partitions, self.clock, mastery_threshold=self.config.mastery_threshold
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        repository: ItemStateRepository,
        events: EventBus | None = None,
    ) -> SchedulingEngine:
        return cls(
            repository,
            clock=SystemClock(settings.SCHEDULE_TIMEZONE),
            policy=DefaultIntervalPolicy(policy_config_from_settings(settings)),
            events=events,
            config=SchedulerConfig.from_settings(settings),
        )

    # -- item lifecycle (driven by the content store) -------------------------

    async def register_item(
        self, user_id: str, item_id: str, now: datetime | None = None
    ) -> Result[ItemState, AppError]:
        """Create the scheduling record for a newly registered item."""
        if not user_id:
            return required_field("user_id", origin=ORIGIN)
        if not item_id:
            return required_field("item_id", origin=ORIGIN)
        if now is not None and now.tzinfo is None:
            return invalid_format("created_at", "timezone-aware datetime", now.isoformat(), origin=ORIGIN)

        try:
            schedule = await self._partitions.get(user_id, for_write=True)
            if schedule.get(item_id) is not None:
                return duplicate_key("ItemState", "item_id", item_id, origin=ORIGIN)

            state = ItemState.new(
                user_id,
                item_id,
                now or self.clock.now(),
                difficulty_factor=self.config.default_difficulty_factor,
            )
            await self._repository.insert(state)
        except DuplicateItemError:
            return duplicate_key("ItemState", "item_id", item_id, origin=ORIGIN)
        except Exception as exc:
            log.exception("register_failed", user_id=user_id, item_id=item_id)
            return Err(self._mapper.map_exception(exc))

        schedule.put(state)
        log.info("item_registered", user_id=user_id, item_id=item_id)
        return Ok(state)

    async def remove_item(self, user_id: str, item_id: str) -> Result[ItemState, AppError]:
        """Drop an item's scheduling record after the content store deleted it."""
        try:
            schedule = await self._partitions.get(user_id)
            if schedule.get(item_id) is None:
                return not_found("ItemState", f"{user_id}/{item_id}", origin=ORIGIN)
            await self._repository.delete(user_id, item_id)
        except Exception as exc:
            log.exception("remove_failed", user_id=user_id, item_id=item_id)
            return Err(self._mapper.map_exception(exc))

        removed = schedule.drop(item_id)
        log.info("item_removed", user_id=user_id, item_id=item_id)
        return Ok(removed)

    async def get_item(self, user_id: str, item_id: str) -> Result[ItemState, AppError]:
        try:
            schedule = await self._partitions.get(user_id)
        except Exception as exc:
            return Err(self._mapper.map_exception(exc))
        state = schedule.get(item_id)
        if state is None:
            return not_found("ItemState", f"{user_id}/{item_id}", origin=ORIGIN)
        return Ok(state)

    def days_until_review(self, state: ItemState, as_of: datetime | None = None) -> int:
        """Calendar days until the item is due in the engine's zone; negative when overdue."""
        return days_until_review(state, as_of or self.clock.now(), self.clock.day_start)

    # -- operations ------------------------------------------------------------

    async def submit_review(
        self,
        user_id: str,
        item_id: str,
        rating: Rating | str | int,
        submission_id: str,
        expected_version: int | None = None,
    ) -> Result[ItemState, AppError]:
        return await self._outcomes.submit_review(
            user_id, item_id, rating, submission_id, expected_version
        )

    async def get_session(
        self,
        user_id: str,
        limit: int,
        mode: SessionMode | str,
        as_of: datetime | None = None,
        cursor: str | None = None,
    ) -> Result[SessionBatch, AppError]:
        return await self._sessions.get_session(
            user_id, limit, mode, as_of or self.clock.now(), cursor
        )

    async def get_summary(
        self, user_id: str, as_of: datetime | None = None
    ) -> Result[ScheduleSummary, AppError]:
        return await self._reporter.get_summary(user_id, as_of or self.clock.now())

    async def get_performance(
        self, user_id: str, as_of: datetime | None = None
    ) -> Result[ReviewPerformance, AppError]:
        return await self._reporter.get_performance(user_id, as_of or self.clock.now())
