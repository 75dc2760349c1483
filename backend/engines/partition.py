"""Per-user scheduling partitions.

Each user's states live in a ``UserSchedule`` (item map, Due Index and the
queue of never-reviewed items). Partitions are independent of each other and
load lazily from the repository the first time a user is touched.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Iterable, Iterator

from sortedcontainers import SortedList

from core.logging import srs_logger
from engines.due_index import DueIndex
from engines.item_state import ItemState
from engines.repository import ItemStateRepository

log = srs_logger()

NewKey = tuple[datetime, str]


class UserSchedule:
    """All scheduling state for a single user."""

    __slots__ = ("user_id", "_states", "index", "_unseen", "_introduced", "in_flight")

    def __init__(self, user_id: str, states: Iterable[ItemState] = ()):
        self.user_id = user_id
        self._states: dict[str, ItemState] = {s.item_id: s for s in states}
        self.index = DueIndex.rebuild((s.item_id, s.next_review) for s in self._states.values())
        # Registration order of items never reviewed yet
        self._unseen: SortedList = SortedList(
            (s.created_at, s.item_id) for s in self._states.values() if s.is_new
        )
        # First-review instants, for the daily new-item allowance
        self._introduced: SortedList = SortedList(
            first for s in self._states.values() if (first := s.first_reviewed()) is not None
        )
        self.in_flight: set[str] = set()

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[ItemState]:
        return iter(self._states.values())

    def get(self, item_id: str) -> ItemState | None:
        return self._states.get(item_id)

    def put(self, state: ItemState) -> None:
        """Install a state, keeping the Due Index and the secondary orders in step."""
        self.index.update(state.item_id, state.next_review)
        previous = self._states.get(state.item_id)
        if previous is not None:
            self._forget_order(previous)
        self._states[state.item_id] = state
        if state.is_new:
            self._unseen.add((state.created_at, state.item_id))
        elif (first := state.first_reviewed()) is not None:
            self._introduced.add(first)

    def drop(self, item_id: str) -> ItemState | None:
        state = self._states.pop(item_id, None)
        if state is not None:
            self.index.remove(item_id)
            self._forget_order(state)
        return state

    def _forget_order(self, state: ItemState) -> None:
        if state.is_new:
            self._unseen.discard((state.created_at, state.item_id))
        elif (first := state.first_reviewed()) is not None:
            self._introduced.discard(first)

    def unseen_after(self, after: NewKey | None = None) -> Iterator[NewKey]:
        """Never-reviewed items in registration order, strictly after ``after``."""
        start = 0 if after is None else self._unseen.bisect_right(after)
        return self._unseen.islice(start)

    def introduced_between(self, start: datetime, end: datetime) -> int:
        """Items whose first review falls in ``[start, end]``."""
        return self._introduced.bisect_right(end) - self._introduced.bisect_left(start)


class PartitionStore:
    """Lazily loaded cache of UserSchedules, one load per user at a time.

    A read for a user with no stored items gets a throwaway empty schedule;
    only writers (``for_write=True``) cache a partition that loads empty.
    """

    __slots__ = ("_repository", "_partitions", "_locks")

    def __init__(self, repository: ItemStateRepository):
        self._repository = repository
        self._partitions: dict[str, UserSchedule] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._partitions)

    @property
    def pending_loads(self) -> int:
        return len(self._locks)

    async def get(self, user_id: str, *, for_write: bool = False) -> UserSchedule:
        schedule = self._partitions.get(user_id)
        if schedule is not None:
            return schedule

        lock = self._locks.setdefault(user_id, asyncio.Lock())
        try:
            async with lock:
                schedule = self._partitions.get(user_id)
                if schedule is None:
                    states = await self._repository.load_user(user_id)
                    schedule = UserSchedule(user_id, states)
                    if len(schedule) or for_write:
                        # Another loader may have cached first; everyone shares that one
                        schedule = self._partitions.setdefault(user_id, schedule)
                        log.info("partition_loaded", user_id=user_id, items=len(schedule))
        finally:
            if self._locks.get(user_id) is lock:
                del self._locks[user_id]
        return schedule

    def invalidate(self, user_id: str) -> None:
        """Forget a cached partition so the next access reloads it from storage."""
        if self._partitions.pop(user_id, None) is not None:
            log.info("partition_invalidated", user_id=user_id)
