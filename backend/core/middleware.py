"""Per-request log context and access logging."""
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from core.logging import api_logger, bind_context, clear_context, generate_correlation_id

CORRELATION_HEADER = "X-Correlation-ID"

log = api_logger()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id for the request and echoes it in the response.

    A client-supplied ``X-Correlation-ID`` is reused so retries of the same
    review submission can be followed across requests.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        clear_context()
        bind_context(correlation_id=correlation_id, method=request.method, path=request.url.path)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("request_failed", duration_ms=_elapsed_ms(started))
            raise
        else:
            response.headers[CORRELATION_HEADER] = correlation_id
            if response.status_code >= 500:
                emit = log.error
            elif response.status_code >= 400:
                emit = log.warning
            else:
                emit = log.info
            emit("request_completed", status=response.status_code, duration_ms=_elapsed_ms(started))
            return response
        finally:
            clear_context()
