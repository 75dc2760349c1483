"""
Pytest Configuration and Fixtures.

Shared clock, repository and engine fixtures for the scheduler tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add backend/ to path
BACKEND_ROOT = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(BACKEND_ROOT))

from engines.clock import FixedClock  # noqa: E402
from engines.events import EventBus, EventRecorder  # noqa: E402
from engines.item_state import ItemState, ReviewEntry  # noqa: E402
from engines.ratings import Rating  # noqa: E402
from engines.repository import InMemoryItemStateRepository  # noqa: E402
from engines.scheduler import SchedulerConfig, SchedulingEngine  # noqa: E402

# A Monday, midday UTC
T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)
USER = "user-1"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (database or HTTP)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def reviewed_state(
    item_id: str,
    next_review: datetime,
    *,
    user_id: str = USER,
    level: int = 3,
    reviews: int = 1,
    difficulty_factor: float = 2.5,
) -> ItemState:
    """State that has been reviewed ``reviews`` times, the last one a day before next_review."""
    last = next_review - timedelta(days=1)
    history = tuple(
        ReviewEntry(
            timestamp=last - timedelta(days=reviews - 1 - i),
            rating=Rating.GOOD,
            resulting_level=level,
            submission_id=f"{item_id}-seed-{i}",
        )
        for i in range(reviews)
    )
    return ItemState(
        user_id=user_id,
        item_id=item_id,
        created_at=history[0].timestamp - timedelta(days=1),
        next_review=next_review,
        level=level,
        difficulty_factor=difficulty_factor,
        consecutive_correct=reviews,
        last_reviewed=last,
        review_history=history,
        version=reviews,
        last_submission_id=history[-1].submission_id,
    )


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def repository():
    return InMemoryItemStateRepository()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def events(recorder):
    bus = EventBus()
    bus.subscribe(recorder)
    return bus


@pytest.fixture
def scheduler_config():
    return SchedulerConfig()


@pytest.fixture
def engine(repository, clock, events, scheduler_config):
    return SchedulingEngine(repository, clock=clock, events=events, config=scheduler_config)


@pytest.fixture
def seed(repository):
    """Store states directly, bypassing the engine."""

    async def _seed(*states: ItemState) -> None:
        for state in states:
            await repository.insert(state)

    return _seed
