"""Constructors for the errors the scheduler reports.

Each returns ``Err(AppError)`` so engine code can ``return`` it directly.
"""
from .types import AppError, ErrorCode, ErrorContext, Err


def _err(
    code: ErrorCode,
    message: str,
    origin: str = "",
    cause: Exception | None = None,
    **metadata,
) -> Err[AppError]:
    return Err(AppError(
        code=code,
        message=message,
        context=ErrorContext(origin=origin),
        metadata={k: v for k, v in metadata.items() if v is not None},
        cause=cause,
    ))


# -- validation (2xxx) ---------------------------------------------------------

def validation_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E2000_VALIDATION_GENERIC,
    field: str | None = None,
    value: str | None = None,
    origin: str = "",
    **metadata,
) -> Err[AppError]:
    return _err(code, message, origin, field=field, value=value, **metadata)


def required_field(field: str, origin: str = "") -> Err[AppError]:
    return validation_error(
        f"'{field}' is required",
        code=ErrorCode.E2001_REQUIRED_FIELD_MISSING,
        field=field,
        origin=origin,
    )


def invalid_format(
    field: str, expected: str, got: str | None = None, origin: str = ""
) -> Err[AppError]:
    message = f"'{field}' must be {expected}"
    if got:
        message += f" (got '{got}')"
    return validation_error(
        message,
        code=ErrorCode.E2002_INVALID_FORMAT,
        field=field,
        value=got,
        expected=expected,
        origin=origin,
    )


def out_of_range(
    field: str,
    value: object,
    min_val: int | float | None = None,
    max_val: int | float | None = None,
    origin: str = "",
) -> Err[AppError]:
    bounds = [
        f">= {min_val}" if min_val is not None else None,
        f"<= {max_val}" if max_val is not None else None,
    ]
    message = f"'{field}' must be {' and '.join(b for b in bounds if b)}, got {value!r}"
    return validation_error(
        message,
        code=ErrorCode.E2003_OUT_OF_RANGE,
        field=field,
        value=str(value),
        min=min_val,
        max=max_val,
        origin=origin,
    )


# -- storage (4xxx) ------------------------------------------------------------

def not_found(entity: str, identifier: str | None = None, origin: str = "") -> Err[AppError]:
    label = entity if identifier is None else f"{entity} '{identifier}'"
    return _err(
        ErrorCode.E4010_NOT_FOUND,
        f"{label} not found",
        origin,
        entity=entity,
        identifier=identifier,
    )


def duplicate_key(entity: str, field: str, value: str, origin: str = "") -> Err[AppError]:
    return _err(
        ErrorCode.E4011_DUPLICATE_KEY,
        f"{entity} with {field}='{value}' already exists",
        origin,
        entity=entity,
        field=field,
        value=value,
    )


def db_connection_failed(reason: str = "", origin: str = "") -> Err[AppError]:
    return _err(
        ErrorCode.E4001_CONNECTION_FAILED,
        f"Database unreachable: {reason}" if reason else "Database unreachable",
        origin,
    )


def transaction_failed(
    reason: str = "", origin: str = "", cause: Exception | None = None
) -> Err[AppError]:
    return _err(
        ErrorCode.E4003_TRANSACTION_FAILED,
        f"Database write failed: {reason}" if reason else "Database write failed",
        origin,
        cause,
    )


# -- scheduling rules (5xxx) ---------------------------------------------------

def version_conflict(
    entity: str,
    identifier: str,
    expected: int | None,
    actual: int,
    origin: str = "",
) -> Err[AppError]:
    """Optimistic-concurrency failure; the caller must refetch and retry.

    ``expected`` is None when the conflict is another write still in flight.
    """
    if expected is None:
        message = f"{entity} '{identifier}' has a write in progress"
    else:
        message = f"{entity} '{identifier}' is at version {actual}, expected {expected}"
    return _err(
        ErrorCode.E5006_VERSION_CONFLICT,
        message,
        origin,
        entity=entity,
        identifier=identifier,
        actual_version=actual,
        expected_version=expected,
    )


def invariant_violated(invariant: str, identifier: str, origin: str = "", **metadata) -> Err[AppError]:
    return _err(
        ErrorCode.E5004_INVARIANT_VIOLATED,
        f"Invariant '{invariant}' violated for '{identifier}'",
        origin,
        invariant=invariant,
        identifier=identifier,
        **metadata,
    )


# -- internal (9xxx) -----------------------------------------------------------

def internal_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E9001_UNEXPECTED_ERROR,
    origin: str = "",
    cause: Exception | None = None,
    **metadata,
) -> Err[AppError]:
    return _err(code, message, origin, cause, **metadata)
