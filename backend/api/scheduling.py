"""Scheduling API

Thin HTTP layer over SchedulingEngine. Engine results are Result values;
``raise_result`` turns an Err into a structured error response.
"""
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import AwareDatetime, BaseModel, Field

from core.errors import raise_result
from engines.item_state import ItemState
from engines.scheduler import SchedulingEngine

router = APIRouter()


def get_engine(request: Request) -> SchedulingEngine:
    return request.app.state.engine


class ItemRegistration(BaseModel):
    item_id: str = Field(min_length=1, max_length=128)
    created_at: AwareDatetime | None = None


class ReviewSubmission(BaseModel):
    rating: int | str
    submission_id: str = Field(min_length=1, max_length=128)
    expected_version: int | None = Field(default=None, ge=0)


class ReviewEntryResponse(BaseModel):
    timestamp: datetime
    rating: str
    resulting_level: int


class ItemStateResponse(BaseModel):
    user_id: str
    item_id: str
    level: int
    difficulty_factor: float
    consecutive_correct: int
    last_reviewed: datetime | None
    next_review: datetime
    interval_days: int | None
    days_until_review: int
    version: int
    mastered: bool
    review_history: list[ReviewEntryResponse]


class SessionItemResponse(BaseModel):
    item_id: str
    phase: str
    next_review: datetime
    level: int
    version: int


class SessionResponse(BaseModel):
    items: list[SessionItemResponse]
    next_cursor: str | None


class SummaryResponse(BaseModel):
    as_of: datetime
    overdue: int
    due_today: int
    due_tomorrow: int
    due_this_week: int
    due_next_week: int
    not_due_later: int
    total: int
    due_by_date: dict[date, int]


class PerformanceResponse(BaseModel):
    total_reviews: int
    correct_reviews: int
    accuracy: float
    streak_days: int
    mastered_items: int
    mastery_distribution: dict[str, int]


def _to_response(state: ItemState, engine: SchedulingEngine) -> ItemStateResponse:
    return ItemStateResponse(
        user_id=state.user_id,
        item_id=state.item_id,
        level=state.level,
        difficulty_factor=state.difficulty_factor,
        consecutive_correct=state.consecutive_correct,
        last_reviewed=state.last_reviewed,
        next_review=state.next_review,
        interval_days=state.interval_days,
        days_until_review=engine.days_until_review(state),
        version=state.version,
        mastered=state.is_mastered(engine.config.mastery_threshold),
        review_history=[
            ReviewEntryResponse(
                timestamp=e.timestamp,
                rating=e.rating.name.lower(),
                resulting_level=e.resulting_level,
            )
            for e in state.review_history
        ],
    )


@router.post("/users/{user_id}/items", response_model=ItemStateResponse, status_code=201)
async def register_item(
    user_id: str,
    payload: ItemRegistration,
    engine: SchedulingEngine = Depends(get_engine),
):
    """Register a new item for scheduling; it is due immediately."""
    result = await engine.register_item(user_id, payload.item_id, payload.created_at)
    raise_result(result)
    return _to_response(result.unwrap(), engine)


@router.get("/users/{user_id}/items/{item_id}", response_model=ItemStateResponse)
async def get_item(user_id: str, item_id: str, engine: SchedulingEngine = Depends(get_engine)):
    result = await engine.get_item(user_id, item_id)
    raise_result(result)
    return _to_response(result.unwrap(), engine)


@router.delete("/users/{user_id}/items/{item_id}", status_code=204)
async def remove_item(user_id: str, item_id: str, engine: SchedulingEngine = Depends(get_engine)):
    raise_result(await engine.remove_item(user_id, item_id))


@router.post("/users/{user_id}/items/{item_id}/reviews", response_model=ItemStateResponse)
async def submit_review(
    user_id: str,
    item_id: str,
    payload: ReviewSubmission,
    engine: SchedulingEngine = Depends(get_engine),
):
    """Apply a rating. Resubmitting the same submission_id returns the current state."""
    result = await engine.submit_review(
        user_id,
        item_id,
        payload.rating,
        payload.submission_id,
        payload.expected_version,
    )
    raise_result(result)
    return _to_response(result.unwrap(), engine)


@router.get("/users/{user_id}/session", response_model=SessionResponse)
async def get_session(
    user_id: str,
    limit: int = Query(20, ge=1, le=200),
    mode: str = Query("review_only"),
    as_of: datetime | None = Query(None),
    cursor: str | None = Query(None),
    engine: SchedulingEngine = Depends(get_engine),
):
    result = await engine.get_session(user_id, limit, mode, as_of, cursor)
    raise_result(result)
    batch = result.unwrap()
    return SessionResponse(
        items=[
            SessionItemResponse(
                item_id=i.item_id,
                phase=i.phase.value,
                next_review=i.state.next_review,
                level=i.state.level,
                version=i.state.version,
            )
            for i in batch.items
        ],
        next_cursor=batch.next_cursor,
    )


@router.get("/users/{user_id}/summary", response_model=SummaryResponse)
async def get_summary(
    user_id: str,
    as_of: datetime | None = Query(None),
    engine: SchedulingEngine = Depends(get_engine),
):
    result = await engine.get_summary(user_id, as_of)
    raise_result(result)
    s = result.unwrap()
    return SummaryResponse(
        as_of=s.as_of,
        overdue=s.overdue,
        due_today=s.due_today,
        due_tomorrow=s.due_tomorrow,
        due_this_week=s.due_this_week,
        due_next_week=s.due_next_week,
        not_due_later=s.not_due_later,
        total=s.total,
        due_by_date=s.due_by_date,
    )


@router.get("/users/{user_id}/performance", response_model=PerformanceResponse)
async def get_performance(
    user_id: str,
    as_of: datetime | None = Query(None),
    engine: SchedulingEngine = Depends(get_engine),
):
    result = await engine.get_performance(user_id, as_of)
    raise_result(result)
    p = result.unwrap()
    return PerformanceResponse(
        total_reviews=p.total_reviews,
        correct_reviews=p.correct_reviews,
        accuracy=p.accuracy,
        streak_days=p.streak_days,
        mastered_items=p.mastered_items,
        mastery_distribution=p.mastery_distribution,
    )
