"""Per-user partitions: lazy loading, caching and the first-review order."""
import asyncio
from datetime import timedelta

from conftest import T0, USER, reviewed_state
from engines.item_state import ItemState
from engines.partition import PartitionStore, UserSchedule
from engines.repository import InMemoryItemStateRepository


class TestPartitionStore:
    async def test_read_for_unknown_user_is_not_cached(self):
        store = PartitionStore(InMemoryItemStateRepository())

        for user in ("ghost-1", "ghost-2", "ghost-3"):
            schedule = await store.get(user)
            assert len(schedule) == 0

        assert len(store) == 0
        assert store.pending_loads == 0

    async def test_writer_caches_empty_partition(self):
        store = PartitionStore(InMemoryItemStateRepository())

        first = await store.get(USER, for_write=True)
        assert len(store) == 1
        assert await store.get(USER) is first

    async def test_loaded_partition_is_cached(self, repository):
        await repository.insert(ItemState.new(USER, "card", T0))
        store = PartitionStore(repository)

        first = await store.get(USER)
        assert len(first) == 1
        assert await store.get(USER) is first
        assert store.pending_loads == 0

    async def test_concurrent_loads_share_one_partition(self, repository):
        await repository.insert(ItemState.new(USER, "card", T0))
        store = PartitionStore(repository)

        schedules = await asyncio.gather(*(store.get(USER) for _ in range(5)))

        assert all(s is schedules[0] for s in schedules)
        assert store.pending_loads == 0

    async def test_invalidate_forces_reload(self, repository):
        await repository.insert(ItemState.new(USER, "card", T0))
        store = PartitionStore(repository)
        first = await store.get(USER)

        store.invalidate(USER)

        assert await store.get(USER) is not first

    async def test_engine_reads_leave_nothing_behind(self, engine):
        for user in ("a", "b", "c"):
            assert (await engine.get_summary(user)).unwrap().total == 0
            assert (await engine.get_performance(user)).unwrap().total_reviews == 0
        assert len(engine._partitions) == 0


class TestIntroducedBetween:
    def test_counts_first_reviews_in_range(self):
        schedule = UserSchedule(USER, [
            reviewed_state("today", T0 + timedelta(days=1)),
            reviewed_state("yesterday", T0, reviews=1),
            reviewed_state("older", T0 + timedelta(days=1), reviews=3),
            ItemState.new(USER, "unseen", T0),
        ])
        day_start = T0.replace(hour=0)

        assert schedule.introduced_between(day_start, T0) == 1
        assert schedule.introduced_between(day_start - timedelta(days=1), T0) == 2

    def test_follows_reviews_and_removals(self):
        fresh = ItemState.new(USER, "card", T0 - timedelta(hours=2))
        schedule = UserSchedule(USER, [fresh])
        day_start = T0.replace(hour=0)
        assert schedule.introduced_between(day_start, T0) == 0

        reviewed = reviewed_state("card", T0 + timedelta(days=1))
        schedule.put(reviewed)
        assert schedule.introduced_between(day_start, T0) == 1
        assert list(schedule.unseen_after()) == []

        # A later review keeps the first-review instant
        schedule.put(reviewed_state("card", T0 + timedelta(days=4), reviews=4))
        assert schedule.introduced_between(day_start, T0) == 1

        schedule.drop("card")
        assert schedule.introduced_between(day_start, T0) == 0
