"""HTTP boundary: AppErrors and framework exceptions rendered as JSON."""
from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logging import api_logger

from .types import AppError, ErrorCode, ErrorContext, Result

log = api_logger()

_STATUS_CODES = {
    400: ErrorCode.E2000_VALIDATION_GENERIC,
    404: ErrorCode.E4010_NOT_FOUND,
    405: ErrorCode.E2000_VALIDATION_GENERIC,
    409: ErrorCode.E5006_VERSION_CONFLICT,
    422: ErrorCode.E2000_VALIDATION_GENERIC,
}


class AppErrorException(Exception):
    """Carries an AppError out of a route handler."""

    def __init__(self, error: AppError):
        self.error = error
        super().__init__(str(error))


def _correlation_id(request: Request) -> str | None:
    # RequestLoggingMiddleware binds the id into the log context
    return (
        request.headers.get("X-Correlation-ID")
        or structlog.contextvars.get_contextvars().get("correlation_id")
    )


def _request_context(request: Request, origin: str) -> ErrorContext:
    fields = {"origin": origin, "request_id": request.headers.get("X-Request-ID")}
    correlation_id = _correlation_id(request)
    if correlation_id:
        fields["correlation_id"] = correlation_id
    return ErrorContext(**fields)


def result_to_response(error: AppError) -> JSONResponse:
    status_code = error.code.http_status
    emit = log.warning if status_code < 500 else log.error
    emit(
        "error_response",
        error_code=error.code.name,
        status=status_code,
        message=error.message,
        origin=error.context.origin,
        correlation_id=error.context.correlation_id,
        metadata=error.metadata,
    )
    return JSONResponse(status_code=status_code, content=error.to_dict())


async def app_error_handler(request: Request, exc: AppErrorException) -> JSONResponse:
    return result_to_response(exc.error.with_context(
        correlation_id=_correlation_id(request),
        request_id=request.headers.get("X-Request-ID"),
    ))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, ErrorCode.E9000_INTERNAL_GENERIC)
    return result_to_response(AppError(
        code=code,
        message=str(exc.detail) if exc.detail else f"HTTP {exc.status_code}",
        context=_request_context(request, "http"),
    ))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and query parameters, with one entry per field."""
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", "invalid value"),
            "type": err.get("type", "value_error"),
        }
        for err in exc.errors()
    ]
    return result_to_response(AppError(
        code=ErrorCode.E2000_VALIDATION_GENERIC,
        message="Request validation failed",
        context=_request_context(request, "request_validation"),
        metadata={"details": details},
    ))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error = AppError(
        code=ErrorCode.E9001_UNEXPECTED_ERROR,
        message="An unexpected error occurred",
        context=_request_context(request, "unhandled"),
        cause=exc,
    )
    log.exception("unhandled_exception", error_type=type(exc).__name__)
    return result_to_response(error)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppErrorException, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


def raise_result(result: Result) -> None:
    """Raise the Err of an engine result as AppErrorException; Ok passes through."""
    if result.is_err():
        raise AppErrorException(result.unwrap_err())
