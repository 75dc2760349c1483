from engines.ratings import Rating, parse_rating
from engines.interval_policy import DefaultIntervalPolicy, IntervalPolicy, PolicyConfig, Transition
from engines.item_state import ItemState, ReviewEntry
from engines.due_index import BucketCounts, DueIndex
from engines.clock import Clock, FixedClock, SystemClock
from engines.events import EventBus, EventRecorder, ReviewCompleted
from engines.repository import (
    InMemoryItemStateRepository,
    ItemStateRepository,
    SqlItemStateRepository,
    StaleVersionError,
)
from engines.sessions import SessionBatch, SessionCursor, SessionMode, SessionPhase
from engines.summary import ReviewPerformance, ScheduleSummary, days_until_review
from engines.scheduler import SchedulerConfig, SchedulingEngine

__all__ = [
    "Rating",
    "parse_rating",
    "DefaultIntervalPolicy",
    "IntervalPolicy",
    "PolicyConfig",
    "Transition",
    "ItemState",
    "ReviewEntry",
    "BucketCounts",
    "DueIndex",
    "Clock",
    "FixedClock",
    "SystemClock",
    "EventBus",
    "EventRecorder",
    "ReviewCompleted",
    "InMemoryItemStateRepository",
    "ItemStateRepository",
    "SqlItemStateRepository",
    "StaleVersionError",
    "SessionBatch",
    "SessionCursor",
    "SessionMode",
    "SessionPhase",
    "ReviewPerformance",
    "ScheduleSummary",
    "days_until_review",
    "SchedulerConfig",
    "SchedulingEngine",
]
