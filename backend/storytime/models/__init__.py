"""SQLAlchemy models.

Import models from here so every table is registered on ``Base.metadata``.
"""

from storytime.models.base import GUID, Base, TimestampMixin, UTCDateTime, UUIDMixin
from storytime.models.user import User

__all__ = [
    "GUID",
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDMixin",
    "User",
]
