"""Core application configuration and utilities.

This package contains:
- Configuration management (config.py)
- Error taxonomy (exceptions.py)
- Logging setup (logging.py)
- Password hashing (security.py)
- Token issuing and validation (tokens.py)
"""

from storytime.core.config import Settings, get_settings, settings

__all__ = [
    "Settings",
    "get_settings",
    "settings",
]
