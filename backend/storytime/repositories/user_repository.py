"""Repository for User persistence.

Token consumption goes through conditional UPDATE/DELETE statements whose
WHERE clause re-checks the stored token. Two requests racing on the same
token cannot both win: the loser sees zero affected rows.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storytime.models.user import User


class UserRepository:
    """Stateless repository for users table operations.

    All methods are static. Pass an AsyncSession for every call so the
    caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.
            for_update: Lock the row until the transaction ends.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.id == user_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by exact email address."""
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_verify_token(db: AsyncSession, token: str) -> User | None:
        """Fetch the user whose stored verification token equals ``token``."""
        result = await db.execute(select(User).where(User.verify_token == token))
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_verified(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token: str,
    ) -> bool:
        """Flip ``verified`` if the row still holds ``token`` and is unverified.

        Returns:
            True if this call verified the user.
        """
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.verify_token == token,
                User.verified.is_(False),
            )
            .values(verified=True)
            .execution_options(synchronize_session="evaluate")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def delete_unverified(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token: str,
    ) -> bool:
        """Delete an abandoned registration still holding ``token``.

        Returns:
            True if the row was deleted.
        """
        stmt = (
            delete(User)
            .where(
                User.id == user_id,
                User.verify_token == token,
                User.verified.is_(False),
            )
            .execution_options(synchronize_session="evaluate")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def set_session_token(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token: str,
    ) -> None:
        """Cache the most recently issued session token."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(token=token)
            .execution_options(synchronize_session="evaluate")
        )
        await db.execute(stmt)

    @staticmethod
    async def set_reset_token(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token: str,
        expires: datetime,
    ) -> None:
        """Store a reset token, replacing any pending one."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(reset_password_token=token, reset_password_expires=expires)
            .execution_options(synchronize_session="evaluate")
        )
        await db.execute(stmt)

    @staticmethod
    async def consume_reset_token(
        db: AsyncSession,
        *,
        token: str,
        hashed_password: str,
        now: datetime,
    ) -> bool:
        """Set a new password if ``token`` is stored and unexpired.

        Matching, password change and clearing of both reset columns
        happen in one statement.

        Returns:
            True if a row matched and was updated.
        """
        stmt = (
            update(User)
            .where(
                User.reset_password_token == token,
                User.reset_password_expires > now,
            )
            .values(
                hashed_password=hashed_password,
                reset_password_token=None,
                reset_password_expires=None,
            )
            .execution_options(synchronize_session="evaluate")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]


__all__ = ["UserRepository"]
