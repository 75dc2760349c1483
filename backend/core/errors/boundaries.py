"""Exception-to-AppError mapping at engine and storage boundaries.

Engines catch whatever their collaborators raise and pass it through a
mapper, so callers above the boundary only see the taxonomy.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from .builders import (
    db_connection_failed,
    duplicate_key,
    internal_error,
    transaction_failed,
)
from .types import AppError, ErrorCode, ErrorContext


def _driver_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class ErrorMapper(ABC):
    origin: str

    @abstractmethod
    def map_exception(self, exc: Exception, *, during_write: bool = False) -> AppError: ...


class DatabaseErrorMapper(ErrorMapper):
    """SQLAlchemy failures to 4xxx codes.

    With ``during_write`` integrity violations also map to a failed
    transaction instead of a duplicate or constraint error.
    """

    def __init__(self, origin: str = "database"):
        self.origin = origin

    def map_exception(self, exc: Exception, *, during_write: bool = False) -> AppError:
        if not isinstance(exc, SQLAlchemyError):
            return internal_error(f"Database error: {exc}", origin=self.origin, cause=exc).error

        message = _driver_message(exc)
        lowered = message.lower()
        if isinstance(exc, IntegrityError) and not during_write:
            if "unique" in lowered or "duplicate key" in lowered:
                return duplicate_key("ItemState", "item_id", "unknown", origin=self.origin).error
            return AppError(
                code=ErrorCode.E4013_CHECK_CONSTRAINT,
                message=f"Constraint violation: {message}",
                context=ErrorContext(origin=self.origin),
                cause=exc,
            )
        if isinstance(exc, OperationalError) and "connect" in lowered:
            return db_connection_failed(message, origin=self.origin).error
        return transaction_failed(message, origin=self.origin, cause=exc).error


class EngineErrorMapper(ErrorMapper):
    """Collaborator failures inside an engine: storage errors keep their 4xxx
    code, anything else becomes an unexpected internal error."""

    def __init__(self, engine_name: str):
        self.engine_name = engine_name
        self.origin = f"engine.{engine_name}"
        self._database = DatabaseErrorMapper(self.origin)

    def map_exception(self, exc: Exception, *, during_write: bool = False) -> AppError:
        if isinstance(exc, SQLAlchemyError):
            return self._database.map_exception(exc, during_write=during_write)
        return internal_error(
            f"{self.engine_name} failed: {exc}",
            origin=self.origin,
            cause=exc,
        ).error
