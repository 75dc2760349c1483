"""Error handling for the scheduler.

Engines return ``Result`` values (``Ok``/``Err``) carrying an ``AppError``
with an ``ErrorCode``; the HTTP layer calls ``raise_result`` and the
registered handlers render the error as JSON:

    result = await engine.submit_review(user_id, item_id, "good", submission_id)
    match result:
        case Ok(state):
            ...
        case Err(error) if error.code is ErrorCode.E5006_VERSION_CONFLICT:
            ...  # refetch and retry with a fresh expected_version
"""
from .types import AppError, Err, ErrorCode, ErrorContext, Ok, Result
from .builders import (
    db_connection_failed,
    duplicate_key,
    internal_error,
    invalid_format,
    invariant_violated,
    not_found,
    out_of_range,
    required_field,
    transaction_failed,
    validation_error,
    version_conflict,
)
from .boundaries import DatabaseErrorMapper, EngineErrorMapper, ErrorMapper
from .handlers import AppErrorException, raise_result, register_error_handlers, result_to_response

__all__ = [
    "AppError",
    "Err",
    "ErrorCode",
    "ErrorContext",
    "Ok",
    "Result",
    "db_connection_failed",
    "duplicate_key",
    "internal_error",
    "invalid_format",
    "invariant_violated",
    "not_found",
    "out_of_range",
    "required_field",
    "transaction_failed",
    "validation_error",
    "version_conflict",
    "DatabaseErrorMapper",
    "EngineErrorMapper",
    "ErrorMapper",
    "AppErrorException",
    "raise_result",
    "register_error_handlers",
    "result_to_response",
]
