"""User model: identity, credentials, lifecycle tokens and library.

All three token kinds live on the user row; there is no separate token
table. Verify and reset tokens are stored together with their absolute
expiry so they can be revoked by clearing or overwriting the columns.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from storytime.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin


class User(UUIDMixin, TimestampMixin, Base):
    """Registered account.

    Attributes:
        id: UUID primary key (from UUIDMixin)
        first_name: Given name
        last_name: Family name
        email: Unique address, matched exactly as stored
        hashed_password: Bcrypt hash of the password
        verified: Whether the email address has been confirmed
        verify_token: Pending email-verification token
        verify_token_expires: Absolute expiry of ``verify_token``
        reset_password_token: Pending password-reset token
        reset_password_expires: Absolute expiry of ``reset_password_token``
        token: Last issued session token (informational only)
        languages: Preferred language ids, in the order given
        saved_stories: Saved external story ids, insertion ordered, unique
        created_at: Timestamp of creation (from TimestampMixin)
        updated_at: Timestamp of last update (from TimestampMixin)
    """

    __tablename__ = "users"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # Email verification
    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )
    verify_token: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    verify_token_expires: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Password recovery
    reset_password_token: Mapped[str | None] = mapped_column(
        Text, nullable=True, index=True
    )
    reset_password_expires: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Session
    token: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Profile and library. Lists are replaced, never mutated in place.
    languages: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    saved_stories: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )

    def __repr__(self) -> str:
        """Return string representation of the user."""
        return f"<User(id={self.id}, email='{self.email}', verified={self.verified})>"


__all__ = ["User"]
