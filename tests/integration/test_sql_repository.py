"""SqlItemStateRepository against a throwaway SQLite database."""
from datetime import timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import T0, USER, reviewed_state
from core.config import Settings
from core.database import create_engine_from_settings, create_session_factory, create_tables
from engines.clock import FixedClock
from engines.interval_policy import Transition
from engines.item_state import ItemState
from engines.ratings import Rating
from engines.repository import DuplicateItemError, SqlItemStateRepository, StaleVersionError
from engines.scheduler import SchedulingEngine


@pytest.fixture
async def repository(tmp_path):
    import models  # noqa: F401

    db = create_engine_from_settings(Settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"))
    await create_tables(db)
    yield SqlItemStateRepository(create_session_factory(db))
    await db.dispose()


def reviewed(state: ItemState, rating: Rating, submission_id: str, days: int) -> ItemState:
    now = state.next_review
    return state.apply_review(Transition(state.level + 1, 2.5, days, False), rating, submission_id, now)


async def test_insert_and_load(repository):
    state = ItemState.new(USER, "card", T0)
    await repository.insert(state)

    [loaded] = await repository.load_user(USER)
    assert loaded == state
    assert loaded.next_review.tzinfo is not None


async def test_other_users_are_not_loaded(repository):
    await repository.insert(ItemState.new(USER, "card", T0))
    await repository.insert(ItemState.new("someone-else", "card", T0))
    assert [s.user_id for s in await repository.load_user(USER)] == [USER]


async def test_duplicate_insert(repository):
    await repository.insert(ItemState.new(USER, "card", T0))
    with pytest.raises(DuplicateItemError):
        await repository.insert(ItemState.new(USER, "card", T0))


async def test_save_is_conditional_on_version(repository):
    state = ItemState.new(USER, "card", T0)
    await repository.insert(state)

    first = reviewed(state, Rating.GOOD, "a", 3)
    await repository.save(first, expected_version=0)

    competing = reviewed(state, Rating.EASY, "b", 5)
    with pytest.raises(StaleVersionError):
        await repository.save(competing, expected_version=0)

    [loaded] = await repository.load_user(USER)
    assert loaded == first


async def test_history_is_appended(repository):
    state = ItemState.new(USER, "card", T0)
    await repository.insert(state)
    one = reviewed(state, Rating.GOOD, "a", 3)
    await repository.save(one, expected_version=0)
    two = reviewed(one, Rating.HARD, "b", 4)
    await repository.save(two, expected_version=1)

    [loaded] = await repository.load_user(USER)
    assert [e.rating for e in loaded.review_history] == [Rating.GOOD, Rating.HARD]
    assert [e.submission_id for e in loaded.review_history] == ["a", "b"]
    assert loaded.version == 2
    assert loaded.check_invariants().is_ok()


async def test_insert_with_history(repository):
    state = reviewed_state("card", T0, reviews=3)
    await repository.insert(state)
    [loaded] = await repository.load_user(USER)
    assert loaded == state


async def test_offsets_are_normalised_to_utc(repository):
    local = T0.astimezone(ZoneInfo("Europe/Berlin"))
    await repository.insert(ItemState.new(USER, "card", local))

    [loaded] = await repository.load_user(USER)
    assert loaded.created_at == T0
    assert loaded.created_at.tzinfo == timezone.utc


async def test_delete(repository):
    state = ItemState.new(USER, "card", T0)
    await repository.insert(state)
    await repository.save(reviewed(state, Rating.GOOD, "a", 3), expected_version=0)

    assert await repository.delete(USER, "card") is True
    assert await repository.delete(USER, "card") is False
    assert await repository.load_user(USER) == []
    # Re-registering starts a clean history
    await repository.insert(ItemState.new(USER, "card", T0))
    [loaded] = await repository.load_user(USER)
    assert loaded.review_history == ()


async def test_engine_state_survives_restart(repository):
    clock = FixedClock(T0)
    engine = SchedulingEngine(repository, clock=clock)
    await engine.register_item(USER, "card")
    await engine.submit_review(USER, "card", Rating.GOOD, "s1")

    restarted = SchedulingEngine(repository, clock=clock)
    state = (await restarted.get_item(USER, "card")).unwrap()
    assert state.version == 1
    assert state.next_review == T0 + timedelta(days=3)

    replay = await restarted.submit_review(USER, "card", Rating.GOOD, "s1")
    assert replay.unwrap().version == 1


async def test_two_engines_conflict_through_storage(repository):
    clock = FixedClock(T0)
    first = SchedulingEngine(repository, clock=clock)
    second = SchedulingEngine(repository, clock=clock)
    await first.register_item(USER, "card")
    await second.get_item(USER, "card")

    assert (await first.submit_review(USER, "card", Rating.GOOD, "a")).is_ok()
    result = await second.submit_review(USER, "card", Rating.GOOD, "b")
    assert result.unwrap_err().code.category == "conflict"

    reloaded = (await second.get_item(USER, "card")).unwrap()
    assert reloaded.version == 1
    assert reloaded.last_submission_id == "a"
