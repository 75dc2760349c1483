"""Session Coordinator

Builds review batches in three phases:

    overdue     next_review before the start of as_of's day, most overdue first
    due today   start of day <= next_review <= as_of, earliest first
    new         never-reviewed items in registration order (include_new only),
                limited by the daily new-item cap

Batches are deterministic for identical inputs. The returned cursor records
the last key served in each phase, so a resumed session continues strictly
after it and never serves an item twice.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from itertools import chain, islice
from typing import Iterator

from core.errors import (
    AppError,
    EngineErrorMapper,
    Err,
    Ok,
    Result,
    invalid_format,
    out_of_range,
    validation_error,
)
from core.logging import srs_logger
from engines.clock import Clock
from engines.item_state import ItemState
from engines.partition import PartitionStore, UserSchedule

log = srs_logger()

ORIGIN = "engine.sessions"

Key = tuple[datetime, str]


class SessionMode(str, Enum):
    REVIEW_ONLY = "review_only"
    INCLUDE_NEW = "include_new"


class SessionPhase(str, Enum):
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    NEW = "new"


def parse_mode(value: object) -> Result[SessionMode, AppError]:
    """Accept a SessionMode or its name in snake_case or camelCase."""
    if isinstance(value, SessionMode):
        return Ok(value)
    if isinstance(value, str):
        normalized = value.strip().replace("_", "").replace("-", "").lower()
        for mode in SessionMode:
            if mode.value.replace("_", "") == normalized:
                return Ok(mode)
    return validation_error(
        f"Unknown session mode '{value}'",
        field="mode",
        value=str(value),
        allowed=[m.value for m in SessionMode],
        origin=ORIGIN,
    )


def _key_to_json(key: Key | None) -> list | None:
    return None if key is None else [key[0].isoformat(), key[1]]


def _key_from_json(raw) -> Key | None:
    if raw is None:
        return None
    instant, item_id = raw
    parsed = datetime.fromisoformat(instant)
    if parsed.tzinfo is None or not isinstance(item_id, str):
        raise ValueError("cursor keys need an aware timestamp and a string id")
    return parsed, item_id


@dataclass(frozen=True, slots=True)
class SessionCursor:
    """Resume position: last key served per phase plus the new items served so far."""
    overdue_after: Key | None = None
    due_today_after: Key | None = None
    new_after: Key | None = None
    served: dict[str, int] = field(default_factory=dict)
    new_served_ids: tuple[str, ...] = ()

    def encode(self) -> str:
        payload = {
            "o": _key_to_json(self.overdue_after),
            "d": _key_to_json(self.due_today_after),
            "n": _key_to_json(self.new_after),
            "s": self.served,
            "ni": list(self.new_served_ids),
        }
        raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    @classmethod
    def decode(cls, token: str) -> Result[SessionCursor, AppError]:
        try:
            padded = token + "=" * (-len(token) % 4)
            payload = json.loads(base64.urlsafe_b64decode(padded.encode()))
            return Ok(cls(
                overdue_after=_key_from_json(payload.get("o")),
                due_today_after=_key_from_json(payload.get("d")),
                new_after=_key_from_json(payload.get("n")),
                served={str(k): int(v) for k, v in payload.get("s", {}).items()},
                new_served_ids=tuple(str(i) for i in payload.get("ni", [])),
            ))
        except (binascii.Error, ValueError, TypeError, AttributeError) as exc:
            log.info("cursor_rejected", error=str(exc))
            return invalid_format("cursor", "token returned by a previous session call", origin=ORIGIN)


@dataclass(frozen=True, slots=True)
class SessionItem:
    item_id: str
    phase: SessionPhase
    state: ItemState


@dataclass(frozen=True, slots=True)
class SessionBatch:
    items: tuple[SessionItem, ...]
    next_cursor: str | None

    @property
    def item_ids(self) -> list[str]:
        return [i.item_id for i in self.items]


class SessionCoordinator:
    """Composes Due Index range scans into ordered, de-duplicated batches."""

    __slots__ = ("_partitions", "_clock", "_new_items_per_day", "_mapper")

    def __init__(self, partitions: PartitionStore, clock: Clock, new_items_per_day: int = 20):
        self._partitions = partitions
        self._clock = clock
        self._new_items_per_day = new_items_per_day
        self._mapper = EngineErrorMapper("sessions")

    async def get_session(
        self,
        user_id: str,
        limit: int,
        mode: SessionMode | str,
        as_of: datetime,
        cursor: str | None = None,
    ) -> Result[SessionBatch, AppError]:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            return out_of_range("limit", limit, min_val=1, origin=ORIGIN)
        parsed_mode = parse_mode(mode)
        if parsed_mode.is_err():
            return parsed_mode
        mode = parsed_mode.unwrap()
        if as_of.tzinfo is None:
            return invalid_format("as_of", "timezone-aware datetime", as_of.isoformat(), origin=ORIGIN)

        position = SessionCursor()
        if cursor:
            decoded = SessionCursor.decode(cursor)
            if decoded.is_err():
                return decoded
            position = decoded.unwrap()

        try:
            schedule = await self._partitions.get(user_id)
        except Exception as exc:
            log.exception("partition_load_failed", user_id=user_id)
            return Err(self._mapper.map_exception(exc))

        candidates = chain(
            self._due_phase(schedule, None, self._clock.day_start(as_of), position.overdue_after,
                            SessionPhase.OVERDUE, include_end=False),
            self._due_phase(schedule, self._clock.day_start(as_of), as_of, position.due_today_after,
                            SessionPhase.DUE_TODAY, include_end=True),
            self._new_phase(schedule, as_of, position) if mode is SessionMode.INCLUDE_NEW else iter(()),
        )

        taken = list(islice(candidates, limit))
        has_more = next(candidates, None) is not None

        items = tuple(SessionItem(state.item_id, phase, state) for phase, _, state in taken)
        next_cursor = self._advance(position, taken).encode() if has_more else None

        log.info(
            "session_built",
            user_id=user_id,
            mode=mode.value,
            limit=limit,
            served=len(items),
            has_more=has_more,
        )
        return Ok(SessionBatch(items=items, next_cursor=next_cursor))

    def _due_phase(
        self,
        schedule: UserSchedule,
        start: datetime | None,
        end: datetime,
        after: Key | None,
        phase: SessionPhase,
        *,
        include_end: bool,
    ) -> Iterator[tuple[SessionPhase, Key, ItemState]]:
        for key in schedule.index.range_between(start, end, after=after, include_end=include_end):
            state = schedule.get(key[1])
            # Never-reviewed items are only offered through the new phase
            if state is None or state.is_new:
                continue
            yield phase, key, state

    def _new_phase(
        self,
        schedule: UserSchedule,
        as_of: datetime,
        position: SessionCursor,
    ) -> Iterator[tuple[SessionPhase, Key, ItemState]]:
        introduced_today = schedule.introduced_between(self._clock.day_start(as_of), as_of)
        # Served earlier in this session but not reviewed yet
        pending = sum(
            1 for item_id in position.new_served_ids
            if (s := schedule.get(item_id)) is not None and s.is_new
        )
        allowance = self._new_items_per_day - introduced_today - pending

        for key in schedule.unseen_after(position.new_after):
            if allowance <= 0:
                return
            state = schedule.get(key[1])
            if state is None:
                continue
            allowance -= 1
            yield SessionPhase.NEW, key, state

    @staticmethod
    def _advance(
        position: SessionCursor,
        taken: list[tuple[SessionPhase, Key, ItemState]],
    ) -> SessionCursor:
        served = dict(position.served)
        overdue_after = position.overdue_after
        due_today_after = position.due_today_after
        new_after = position.new_after
        new_ids = list(position.new_served_ids)

        for phase, key, state in taken:
            served[phase.value] = served.get(phase.value, 0) + 1
            if phase is SessionPhase.OVERDUE:
                overdue_after = key
            elif phase is SessionPhase.DUE_TODAY:
                due_today_after = key
            else:
                new_after = key
                new_ids.append(state.item_id)

        return replace(
            position,
            overdue_after=overdue_after,
            due_today_after=due_today_after,
            new_after=new_after,
            served=served,
            new_served_ids=tuple(new_ids),
        )
