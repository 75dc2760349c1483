"""Result values and the scheduler's error taxonomy.

Engine operations return ``Ok(value)`` or ``Err(AppError)``; only the HTTP
boundary turns an ``Err`` into an exception (see ``handlers.raise_result``).
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Generic, NoReturn, TypeVar, Union, final
from uuid import uuid4

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E", bound="AppError")

# (first code, last code, http status, category); first match wins
_CODE_RANGES: tuple[tuple[int, int, int, str], ...] = (
    (2000, 2999, 400, "validation"),
    (4010, 4010, 404, "not_found"),
    (4011, 4019, 409, "database"),
    (4000, 4999, 503, "database"),
    (5004, 5004, 500, "business"),
    (5006, 5006, 409, "conflict"),
    (5000, 5999, 409, "business"),
)


class ErrorCode(Enum):
    """Numeric error codes grouped by thousand.

    2xxx request/argument validation, 4xxx storage, 5xxx scheduling rules,
    9xxx unexpected failures.
    """
    E2000_VALIDATION_GENERIC = 2000
    E2001_REQUIRED_FIELD_MISSING = 2001
    E2002_INVALID_FORMAT = 2002
    E2003_OUT_OF_RANGE = 2003

    E4000_DATABASE_GENERIC = 4000
    E4001_CONNECTION_FAILED = 4001
    E4003_TRANSACTION_FAILED = 4003
    E4010_NOT_FOUND = 4010
    E4011_DUPLICATE_KEY = 4011
    E4013_CHECK_CONSTRAINT = 4013

    E5000_BUSINESS_GENERIC = 5000
    E5004_INVARIANT_VIOLATED = 5004
    E5006_VERSION_CONFLICT = 5006

    E9000_INTERNAL_GENERIC = 9000
    E9001_UNEXPECTED_ERROR = 9001

    def _classify(self) -> tuple[int, str]:
        for low, high, status, category in _CODE_RANGES:
            if low <= self.value <= high:
                return status, category
        return 500, "internal"

    @property
    def http_status(self) -> int:
        return self._classify()[0]

    @property
    def category(self) -> str:
        return self._classify()[1]


def _short_id() -> str:
    return uuid4().hex[:8]


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Where and when an error was raised, for correlating logs with responses."""
    correlation_id: str = field(default_factory=_short_id)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    origin: str = ""
    request_id: str | None = None


@dataclass(frozen=True, slots=True)
class AppError:
    code: ErrorCode
    message: str
    context: ErrorContext = field(default_factory=ErrorContext)
    metadata: dict = field(default_factory=dict)
    cause: Exception | None = None

    def with_context(
        self,
        *,
        correlation_id: str | None = None,
        origin: str | None = None,
        request_id: str | None = None,
    ) -> AppError:
        """Copy with context fields overridden; None keeps the current value."""
        ctx = self.context
        return replace(self, context=replace(
            ctx,
            correlation_id=correlation_id or ctx.correlation_id,
            origin=ctx.origin if origin is None else origin,
            request_id=ctx.request_id if request_id is None else request_id,
        ))

    def to_dict(self) -> dict:
        """JSON body returned to HTTP clients."""
        return {
            "error": {
                "code": self.code.name,
                "code_num": self.code.value,
                "message": self.message,
                "category": self.code.category,
                "correlation_id": self.context.correlation_id,
                "timestamp": self.context.timestamp.isoformat(),
                "metadata": self.metadata,
            }
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (correlation_id={self.context.correlation_id})"


@final
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Ok[U]:
        return Ok(f(self.value))

    def and_then(self, f: Callable[[T], Result[U, AppError]]) -> Result[U, AppError]:
        return f(self.value)


@final
@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        raise ValueError(f"unwrap() on an error result: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def unwrap_err(self) -> E:
        return self.error

    def map(self, f: Callable) -> Err[E]:
        return self

    def and_then(self, f: Callable) -> Err[E]:
        return self


Result = Union[Ok[T], Err[E]]
