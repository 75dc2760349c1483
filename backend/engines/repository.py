"""Item State persistence.

The engine talks to storage only through ``ItemStateRepository``. Two
implementations ship: an in-memory one for tests and embedding, and an
async SQLAlchemy one whose updates are conditional on the stored version.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.database import session_scope
from core.logging import db_logger
from engines.item_state import ItemState, ReviewEntry
from engines.ratings import Rating
from models.scheduling import ItemStateRecord, ReviewHistoryRecord

log = db_logger()


class StaleVersionError(Exception):
    """The stored version no longer matches the version the write was based on."""

    def __init__(self, user_id: str, item_id: str, expected_version: int):
        self.user_id = user_id
        self.item_id = item_id
        self.expected_version = expected_version
        super().__init__(f"{user_id}/{item_id} is no longer at version {expected_version}")


class DuplicateItemError(Exception):
    def __init__(self, user_id: str, item_id: str):
        self.user_id = user_id
        self.item_id = item_id
        super().__init__(f"{user_id}/{item_id} is already registered")


class ItemStateRepository(Protocol):
    async def load_user(self, user_id: str) -> list[ItemState]: ...

    async def insert(self, state: ItemState) -> None: ...

    async def save(self, state: ItemState, expected_version: int) -> None: ...

    async def delete(self, user_id: str, item_id: str) -> bool: ...


class InMemoryItemStateRepository:
    """Dictionary-backed repository with the same version check as the SQL one."""

    __slots__ = ("_states",)

    def __init__(self) -> None:
        self._states: dict[str, dict[str, ItemState]] = defaultdict(dict)

    async def load_user(self, user_id: str) -> list[ItemState]:
        return list(self._states.get(user_id, {}).values())

    async def insert(self, state: ItemState) -> None:
        items = self._states[state.user_id]
        if state.item_id in items:
            raise DuplicateItemError(state.user_id, state.item_id)
        items[state.item_id] = state

    async def save(self, state: ItemState, expected_version: int) -> None:
        stored = self._states.get(state.user_id, {}).get(state.item_id)
        if stored is None or stored.version != expected_version:
            raise StaleVersionError(state.user_id, state.item_id, expected_version)
        self._states[state.user_id][state.item_id] = state

    async def delete(self, user_id: str, item_id: str) -> bool:
        return self._states.get(user_id, {}).pop(item_id, None) is not None


def _to_history_row(state: ItemState, sequence: int, entry: ReviewEntry) -> ReviewHistoryRecord:
    return ReviewHistoryRecord(
        user_id=state.user_id,
        item_id=state.item_id,
        sequence=sequence,
        reviewed_at=entry.timestamp,
        rating=int(entry.rating),
        resulting_level=entry.resulting_level,
        submission_id=entry.submission_id,
    )


class SqlItemStateRepository:
    """SQLAlchemy-backed repository.

    ``save`` issues ``UPDATE ... WHERE version = :expected`` and appends only
    the history entries the stored row has not seen yet, inside one
    transaction.
    """

    __slots__ = ("_sessions",)

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def load_user(self, user_id: str) -> list[ItemState]:
        async with session_scope(self._sessions) as session:
            rows = (await session.execute(
                select(ItemStateRecord).where(ItemStateRecord.user_id == user_id)
            )).scalars().all()
            history_rows = (await session.execute(
                select(ReviewHistoryRecord)
                .where(ReviewHistoryRecord.user_id == user_id)
                .order_by(ReviewHistoryRecord.item_id, ReviewHistoryRecord.sequence)
            )).scalars().all()

        history: dict[str, list[ReviewEntry]] = defaultdict(list)
        for h in history_rows:
            history[h.item_id].append(ReviewEntry(
                timestamp=h.reviewed_at,
                rating=Rating(h.rating),
                resulting_level=h.resulting_level,
                submission_id=h.submission_id,
            ))

        states = [
            ItemState(
                user_id=r.user_id,
                item_id=r.item_id,
                created_at=r.created_at,
                next_review=r.next_review,
                level=r.level,
                difficulty_factor=r.difficulty_factor,
                consecutive_correct=r.consecutive_correct,
                last_reviewed=r.last_reviewed,
                review_history=tuple(history.get(r.item_id, ())),
                version=r.version,
                last_submission_id=r.last_submission_id,
            )
            for r in rows
        ]
        log.debug("user_states_loaded", user_id=user_id, items=len(states))
        return states

    async def insert(self, state: ItemState) -> None:
        async with session_scope(self._sessions) as session:
            existing = await session.get(ItemStateRecord, (state.user_id, state.item_id))
            if existing is not None:
                raise DuplicateItemError(state.user_id, state.item_id)
            session.add(ItemStateRecord(
                user_id=state.user_id,
                item_id=state.item_id,
                level=state.level,
                difficulty_factor=state.difficulty_factor,
                consecutive_correct=state.consecutive_correct,
                last_reviewed=state.last_reviewed,
                next_review=state.next_review,
                created_at=state.created_at,
                version=state.version,
                last_submission_id=state.last_submission_id,
            ))
            for seq, entry in enumerate(state.review_history):
                session.add(_to_history_row(state, seq, entry))

    async def save(self, state: ItemState, expected_version: int) -> None:
        async with session_scope(self._sessions) as session:
            result = await session.execute(
                update(ItemStateRecord)
                .where(
                    ItemStateRecord.user_id == state.user_id,
                    ItemStateRecord.item_id == state.item_id,
                    ItemStateRecord.version == expected_version,
                )
                .values(
                    level=state.level,
                    difficulty_factor=state.difficulty_factor,
                    consecutive_correct=state.consecutive_correct,
                    last_reviewed=state.last_reviewed,
                    next_review=state.next_review,
                    version=state.version,
                    last_submission_id=state.last_submission_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise StaleVersionError(state.user_id, state.item_id, expected_version)

            for seq in range(expected_version, len(state.review_history)):
                session.add(_to_history_row(state, seq, state.review_history[seq]))

        log.debug("item_state_saved", user_id=state.user_id, item_id=state.item_id, version=state.version)

    async def delete(self, user_id: str, item_id: str) -> bool:
        async with session_scope(self._sessions) as session:
            await session.execute(
                delete(ReviewHistoryRecord).where(
                    ReviewHistoryRecord.user_id == user_id,
                    ReviewHistoryRecord.item_id == item_id,
                )
            )
            result = await session.execute(
                delete(ItemStateRecord).where(
                    ItemStateRecord.user_id == user_id,
                    ItemStateRecord.item_id == item_id,
                )
            )
            return result.rowcount == 1
