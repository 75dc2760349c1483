"""structlog setup for the scheduler.

Console rendering in development, JSON lines in production. Request
middleware binds a correlation id through contextvars so every line
logged while serving a request carries it, including lines emitted by the
engines and the repository.
"""
import logging
import sys
from datetime import date, datetime
from enum import Enum
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = "cadence-scheduler"
SERVICE_VERSION = "0.1.0"

# stdlib loggers that are chatty at INFO
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def _stamp_service(_logger, _method: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", SERVICE_VERSION)
    return event_dict


def _plain_values(_logger, _method: str, event_dict: EventDict) -> EventDict:
    """Ratings, instants and dates as strings so both renderers print them alike."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.name.lower()
        elif isinstance(value, (datetime, date)):
            event_dict[key] = value.isoformat()
    return event_dict


def _processor_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        _stamp_service,
        _plain_values,
    ]


def configure_logging(level: str = "INFO", json_logs: bool = False, log_sql: bool = False) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    ``log_sql`` turns on SQLAlchemy statement echo at DEBUG.
    """
    chain = _processor_chain()
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info if json_logs else _passthrough,
            renderer,
        ],
    ))

    root = logging.getLogger()
    root.handlers = [handler]
    resolved = logging.getLevelName(level.upper())
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)

    # uvicorn installs its own handlers; let records propagate to root instead
    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).handlers = []
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.DEBUG if log_sql else logging.WARNING)


def _passthrough(_logger, _method: str, event_dict: EventDict) -> EventDict:
    # ConsoleRenderer formats exc_info itself
    return event_dict


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def generate_correlation_id() -> str:
    return uuid4().hex[:8]


def bind_context(**values) -> None:
    """Attach values to every line logged from the current task."""
    structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LoggerRegistry:
    """One named logger per subsystem, created on first use."""

    _loggers: dict[str, structlog.stdlib.BoundLogger] = {}

    @classmethod
    def get(cls, subsystem: str) -> structlog.stdlib.BoundLogger:
        logger = cls._loggers.get(subsystem)
        if logger is None:
            logger = cls._loggers[subsystem] = get_logger(f"cadence.{subsystem}")
        return logger


def api_logger() -> structlog.stdlib.BoundLogger:
    return LoggerRegistry.get("api")


def db_logger() -> structlog.stdlib.BoundLogger:
    return LoggerRegistry.get("db")


def srs_logger() -> structlog.stdlib.BoundLogger:
    """Scheduling decisions: reviews applied, sessions built, conflicts."""
    return LoggerRegistry.get("srs")
