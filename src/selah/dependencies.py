"""Shared FastAPI dependencies."""

from selah.config import Settings, get_settings
from selah.database import get_session as _get_session

get_db = _get_session


def get_settings_dep() -> Settings:
    """Return application settings as a FastAPI dependency."""
    return get_settings()
