from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from core.database import Base


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored as naive UTC.

    SQLite drops offsets, so values are normalised to UTC on the way in and
    re-tagged as UTC on the way out.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            raise ValueError("naive datetimes are not accepted")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return value.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ItemStateRecord(Base):
    """Scheduling metadata for one (user, item) pair"""
    __tablename__ = "item_states"

    user_id = Column(String(64), primary_key=True)
    item_id = Column(String(128), primary_key=True)
    level = Column(Integer, nullable=False, default=0)
    difficulty_factor = Column(Float, nullable=False, default=2.5)
    consecutive_correct = Column(Integer, nullable=False, default=0)
    last_reviewed = Column(UTCDateTime)
    next_review = Column(UTCDateTime, nullable=False)
    created_at = Column(UTCDateTime, nullable=False)
    version = Column(Integer, nullable=False, default=0)  # Optimistic-concurrency token
    last_submission_id = Column(String(128))
    updated_at = Column(UTCDateTime, default=_utcnow, onupdate=_utcnow)

    history = relationship(
        "ReviewHistoryRecord",
        back_populates="item_state",
        cascade="all, delete-orphan",
        order_by="ReviewHistoryRecord.sequence",
    )

    __table_args__ = (
        Index("ix_item_states_user_next_review", "user_id", "next_review"),
    )


class ReviewHistoryRecord(Base):
    """Append-only review log; sequence is the entry's position in the history"""
    __tablename__ = "review_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    item_id = Column(String(128), nullable=False)
    sequence = Column(Integer, nullable=False)
    reviewed_at = Column(UTCDateTime, nullable=False)
    rating = Column(Integer, nullable=False)  # 1=again, 2=hard, 3=good, 4=easy
    resulting_level = Column(Integer, nullable=False)
    submission_id = Column(String(128), nullable=False)

    item_state = relationship("ItemStateRecord", back_populates="history")

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id", "item_id"],
            ["item_states.user_id", "item_states.item_id"],
            ondelete="CASCADE",
        ),
        UniqueConstraint("user_id", "item_id", "sequence", name="uq_review_history_position"),
    )
