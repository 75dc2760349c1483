"""Ambient infrastructure shared by the engines and the HTTP layer."""
from core.config import Settings, get_settings
from core.database import Base, create_engine_from_settings, create_session_factory, create_tables
from core.logging import api_logger, configure_logging, db_logger, get_logger, srs_logger

__all__ = [
    "Base",
    "Settings",
    "api_logger",
    "configure_logging",
    "create_engine_from_settings",
    "create_session_factory",
    "create_tables",
    "db_logger",
    "get_logger",
    "get_settings",
    "srs_logger",
]
