"""Review events published toward gamification and analytics collaborators."""
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from core.logging import srs_logger
from engines.ratings import Rating

log = srs_logger()


@dataclass(frozen=True, slots=True)
class ReviewCompleted:
    """Emitted once per accepted (non-replayed) review submission."""
    user_id: str
    item_id: str
    rating: Rating
    previous_level: int
    new_level: int
    mastered_transition: bool
    occurred_at: datetime
    version: int
    submission_id: str


ReviewHandler = Callable[[ReviewCompleted], Awaitable[None]]


class EventBus:
    """In-process fan-out of ReviewCompleted events to async subscribers."""

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: list[ReviewHandler] = []

    def subscribe(self, handler: ReviewHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def publish(self, event: ReviewCompleted) -> int:
        """Deliver to every handler; returns how many handled it without raising.

        The review behind the event is already committed, so a failing
        subscriber is logged with its traceback and the remaining handlers
        still run.
        """
        delivered = 0
        for handler in list(self._handlers):
            try:
                await handler(event)
                delivered += 1
            except Exception:
                log.exception(
                    "event_handler_failed",
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    user_id=event.user_id,
                    item_id=event.item_id,
                    version=event.version,
                )
        return delivered


class EventRecorder:
    """Subscriber that keeps every event it receives."""

    __slots__ = ("events",)

    def __init__(self) -> None:
        self.events: list[ReviewCompleted] = []

    async def __call__(self, event: ReviewCompleted) -> None:
        self.events.append(event)
