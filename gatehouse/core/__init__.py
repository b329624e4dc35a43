"""Core app configuration, database session, password/token hashing and the error taxonomy."""

from gatehouse.core.config import Settings, get_settings, settings
from gatehouse.core.database import SessionLocal, get_db
from gatehouse.core.errors import ApiError

__all__ = ["ApiError", "SessionLocal", "Settings", "get_settings", "get_db", "settings"]
