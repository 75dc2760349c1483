from contextlib import asynccontextmanager

from fastapi import FastAPI

from api import scheduling
from core.config import Settings, get_settings
from core.database import create_engine_from_settings, create_session_factory, create_tables
from core.errors import register_error_handlers
from core.logging import SERVICE_VERSION, configure_logging, get_logger
from core.middleware import RequestLoggingMiddleware
from engines.repository import SqlItemStateRepository
from engines.scheduler import SchedulingEngine

log = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("startup", message="Cadence scheduler starting up")

        import models  # noqa: F401  registers the tables on Base.metadata

        db_engine = create_engine_from_settings(settings)
        await create_tables(db_engine)
        log.info("database_connected", message="Database tables initialized")

        repository = SqlItemStateRepository(create_session_factory(db_engine))
        app.state.engine = SchedulingEngine.from_settings(settings, repository)

        yield

        log.info("shutdown", message="Cadence scheduler shutting down")
        await db_engine.dispose()
        log.debug("database_disposed", message="Database connections closed")

    app = FastAPI(
        title="Cadence Scheduler API",
        description="Spaced-repetition scheduling: review sessions, outcomes and due summaries",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(scheduling.router, prefix="/api/schedule", tags=["schedule"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": SERVICE_VERSION}

    return app


_settings = get_settings()

# Initialize logging before anything else
configure_logging(
    level=_settings.LOG_LEVEL,
    json_logs=_settings.LOG_JSON,
    log_sql=_settings.LOG_SQL,
)

app = create_app(_settings)


if __name__ == "__main__":
    import uvicorn

    log.info("server_config", host=_settings.BACKEND_HOST, port=_settings.BACKEND_PORT, debug=_settings.APP_DEBUG)
    uvicorn.run(
        "main:app",
        host=_settings.BACKEND_HOST,
        port=_settings.BACKEND_PORT,
        reload=_settings.APP_DEBUG,
        log_config=None,  # Disable uvicorn's default logging, we handle it
    )
