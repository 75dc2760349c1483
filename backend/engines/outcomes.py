"""Outcome Processor

Applies one review rating to one Item State.

Order of checks for ``submit_review``:

1. rating and submission id are well formed          -> validation error
2. the (user, item) pair exists                      -> not found
3. no other write for the item is in flight          -> conflict
4. submission id equals the last applied one         -> Ok(current), nothing applied
5. expected_version (when given) matches the stored  -> conflict

An accepted review is persisted first; only a successful save installs it
in memory and the Due Index and announces it with a ReviewCompleted event.
While the save is pending, readers keep seeing the previous state and any
further submission for the item, including a retry of the same one, gets a
conflict. The processor never retries.
"""
import asyncio

from core.errors import (
    AppError,
    EngineErrorMapper,
    Err,
    Ok,
    Result,
    not_found,
    required_field,
    version_conflict,
)
from core.logging import srs_logger
from engines.clock import Clock
from engines.events import EventBus, ReviewCompleted
from engines.interval_policy import IntervalPolicy
from engines.item_state import ItemState
from engines.partition import PartitionStore
from engines.ratings import Rating, parse_rating
from engines.repository import ItemStateRepository, StaleVersionError

log = srs_logger()

ORIGIN = "engine.outcomes"


class OutcomeProcessor:
    """Applies ratings with idempotency and optimistic concurrency."""

    __slots__ = ("_partitions", "_repository", "_policy", "_clock", "_events", "_mastery_threshold", "_mapper")

    def __init__(
        self,
        partitions: PartitionStore,
        repository: ItemStateRepository,
        policy: IntervalPolicy,
        clock: Clock,
        events: EventBus,
        mastery_threshold: int = 12,
    ):
        self._partitions = partitions
        self._repository = repository
        self._policy = policy
        self._clock = clock
        self._events = events
        self._mastery_threshold = mastery_threshold
        self._mapper = EngineErrorMapper("outcomes")

    async def submit_review(
        self,
        user_id: str,
        item_id: str,
        rating: Rating | str | int,
        submission_id: str,
        expected_version: int | None = None,
    ) -> Result[ItemState, AppError]:
        parsed = parse_rating(rating)
        if parsed.is_err():
            return parsed
        rating = parsed.unwrap()
        if not submission_id:
            return required_field("submission_id", origin=ORIGIN)

        try:
            schedule = await self._partitions.get(user_id)
        except Exception as exc:
            log.exception("partition_load_failed", user_id=user_id)
            return Err(self._mapper.map_exception(exc))

        current = schedule.get(item_id)
        if current is None:
            return not_found("ItemState", f"{user_id}/{item_id}", origin=ORIGIN)

        if item_id in schedule.in_flight:
            log.info("review_conflict", user_id=user_id, item_id=item_id, reason="write_in_flight")
            return version_conflict("ItemState", f"{user_id}/{item_id}", None, current.version, origin=ORIGIN)

        if current.last_submission_id == submission_id:
            log.info("review_replayed", user_id=user_id, item_id=item_id, submission_id=submission_id)
            return Ok(current)

        if expected_version is not None and expected_version != current.version:
            log.info(
                "review_conflict",
                user_id=user_id,
                item_id=item_id,
                expected_version=expected_version,
                actual_version=current.version,
            )
            return version_conflict(
                "ItemState", f"{user_id}/{item_id}", expected_version, current.version, origin=ORIGIN
            )

        transition = self._policy.transition(
            current.level,
            current.difficulty_factor,
            current.interval_days,
            rating,
        )
        updated = current.apply_review(transition, rating, submission_id, self._clock.now())
        checked = updated.check_invariants()
        if checked.is_err():
            log.error("review_rejected", user_id=user_id, item_id=item_id, error=str(checked.unwrap_err()))
            return checked

        # No await between the checks above and the marker: a second submission
        # for the item sees the write in flight until the save settles.
        schedule.in_flight.add(item_id)
        try:
            await self._repository.save(updated, expected_version=current.version)
        except StaleVersionError:
            self._partitions.invalidate(user_id)
            log.warning("review_conflict", user_id=user_id, item_id=item_id, reason="stale_in_storage")
            return version_conflict(
                "ItemState", f"{user_id}/{item_id}", current.version, current.version + 1, origin=ORIGIN
            )
        except asyncio.CancelledError:
            # The write may or may not have landed; reload from storage next time
            self._partitions.invalidate(user_id)
            raise
        except Exception as exc:
            log.exception("review_not_saved", user_id=user_id, item_id=item_id, version=current.version)
            return Err(self._mapper.map_exception(exc, during_write=True))
        finally:
            schedule.in_flight.discard(item_id)
        schedule.put(updated)

        event = ReviewCompleted(
            user_id=user_id,
            item_id=item_id,
            rating=rating,
            previous_level=current.level,
            new_level=updated.level,
            mastered_transition=(
                not current.is_mastered(self._mastery_threshold)
                and updated.is_mastered(self._mastery_threshold)
            ),
            occurred_at=updated.last_reviewed,
            version=updated.version,
            submission_id=submission_id,
        )
        log.info(
            "review_applied",
            user_id=user_id,
            item_id=item_id,
            rating=rating.name,
            level=updated.level,
            interval_days=updated.interval_days,
            version=updated.version,
            mastered_transition=event.mastered_transition,
        )
        await self._events.publish(event)
        return Ok(updated)
