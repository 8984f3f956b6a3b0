"""Database module.

This module provides database session management and engine configuration.
"""

from storytime.db.session import async_session, engine, get_db

__all__ = [
    "async_session",
    "engine",
    "get_db",
]
