from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./cadence.db"

    # Backend
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000
    APP_DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False  # True for production (structured JSON), False for dev (colored)
    LOG_SQL: bool = False   # Enable SQLAlchemy query logging

    # Scheduling policy
    SCHEDULE_TIMEZONE: str = "UTC"  # Calendar used for day boundaries
    MASTERY_THRESHOLD: int = 12
    NEW_ITEMS_PER_DAY: int = 20
    DEFAULT_DIFFICULTY_FACTOR: float = 2.5
    MIN_DIFFICULTY_FACTOR: float = 1.3
    MAX_INTERVAL_DAYS: int = 365

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
