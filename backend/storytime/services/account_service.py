"""Account lifecycle service.

This module drives registration, email verification, login, password
recovery and the authenticated profile/library operations. Lifecycle
states of a user row:

    UNREGISTERED --register--> PENDING_VERIFICATION
    PENDING_VERIFICATION --verify--> VERIFIED
    PENDING_VERIFICATION --verify after expiry--> UNREGISTERED (row deleted)
    VERIFIED --forgot-password--> VERIFIED + reset pending
    VERIFIED + reset pending --reset--> VERIFIED

Every domain failure is raised as an ``AppError`` subclass. Unexpected
database errors are logged and surfaced as ``ServerError``.
"""

from __future__ import annotations

import functools
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Concatenate, ParamSpec, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from storytime.core.exceptions import (
    AppError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    ServerError,
    UnauthorizedError,
)
from storytime.core.logging import get_logger
from storytime.core.security import hash_password, verify_password
from storytime.core.tokens import (
    TokenCodec,
    TokenError,
    TokenExpiredError,
    TokenPurpose,
)
from storytime.models.user import User
from storytime.repositories.user_repository import UserRepository
from storytime.services.notifier import DeliveryError, NotificationKind
from storytime.utils.email import is_valid_email_format

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from storytime.schemas.user import ProfileUpdate
    from storytime.services.notifier import Notifier

logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")
_Method = Callable[Concatenate["AccountService", P], Awaitable[R]]

# Shared by unknown-email and wrong-password so login can't enumerate accounts
INVALID_CREDENTIALS = "Invalid email or password."
INVALID_EMAIL_FORMAT = "Invalid Email format."
INVALID_VERIFY_TOKEN = "Invalid token"
INVALID_RESET_TOKEN = "Password reset link is invalid or expired, please try again"
GENERIC_FAILURE = "Something went wrong, please try again later"


class VerificationOutcome(str, Enum):
    """Successful results of an email verification attempt."""

    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"


@functools.cache
def _dummy_password_hash() -> str:
    # Compared against when the email is unknown so both failures cost a bcrypt check
    return hash_password(uuid.uuid4().hex)


def _store_guard(
    action: str,
) -> Callable[[_Method[P, R]], _Method[P, R]]:
    """Map unexpected database failures in a service method to ServerError."""

    def decorator(func: _Method[P, R]) -> _Method[P, R]:
        @functools.wraps(func)
        async def wrapper(self: AccountService, *args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(self, *args, **kwargs)
            except AppError:
                raise
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.exception(
                    "Database error during account operation",
                    extra={
                        "context": {
                            "action": action,
                            "error_type": type(e).__name__,
                            "status": "failed",
                        }
                    },
                )
                raise ServerError(GENERIC_FAILURE) from e

        return wrapper

    return decorator


class AccountService:
    """Service layer for the account lifecycle.

    Args:
        session: Request-scoped async SQLAlchemy session
        tokens: Token codec built once from settings
        notifier: Outbound email delivery

    Logging:
        - Logs every lifecycle transition with user id and outcome
        - Logs failure reasons for audit, never passwords or tokens
    """

    def __init__(
        self,
        session: AsyncSession,
        tokens: TokenCodec,
        notifier: Notifier,
    ) -> None:
        self.session = session
        self.tokens = tokens
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    @_store_guard("register")
    async def register(
        self,
        first_name: str | None,
        last_name: str | None,
        email: str | None,
        password: str | None,
    ) -> User:
        """Create an unverified account and email its verification link.

        Token generation, email delivery and persistence form one unit:
        the row is flushed but only committed after the notifier accepted
        the email.

        Returns:
            The new, unverified user

        Raises:
            BadRequestError: Missing field or malformed email
            ConflictError: Email already registered
            ServerError: Verification email could not be sent
        """
        if not first_name or not last_name or not email or not password:
            raise BadRequestError(
                "Firstname, Lastname, Email, and Password are required."
            )
        if not is_valid_email_format(email):
            raise BadRequestError(INVALID_EMAIL_FORMAT)

        logger.info(
            "Registration attempt",
            extra={"context": {"email": email, "action": "register"}},
        )

        if await UserRepository.get_by_email(self.session, email) is not None:
            logger.warning(
                "Registration rejected: email already registered",
                extra={
                    "context": {
                        "email": email,
                        "action": "register",
                        "status": "failed",
                        "reason": "duplicate_email",
                    }
                },
            )
            raise ConflictError("User with this email already exists.")

        token = self.tokens.issue(TokenPurpose.VERIFY_EMAIL, {"email": email})
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            hashed_password=hash_password(password),
            verified=False,
            verify_token=token,
            verify_token_expires=datetime.now(UTC)
            + self.tokens.ttl(TokenPurpose.VERIFY_EMAIL),
            reset_password_token=None,
            reset_password_expires=None,
            token=None,
            languages=[],
            saved_stories=[],
        )
        self.session.add(user)

        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("User with this email already exists.") from e

        try:
            await self.notifier.send(
                NotificationKind.VERIFY, email, token, first_name
            )
        except DeliveryError as e:
            await self.session.rollback()
            logger.error(
                "Registration rolled back: verification email not sent",
                extra={
                    "context": {
                        "email": email,
                        "action": "register",
                        "status": "failed",
                        "reason": "delivery_failed",
                    }
                },
            )
            raise ServerError(
                "Failed to send verification email, please try again later"
            ) from e

        await self.session.commit()

        logger.info(
            "User registered",
            extra={
                "context": {
                    "user_id": str(user.id),
                    "action": "register",
                    "status": "success",
                }
            },
        )
        return user

    @_store_guard("verify_email")
    async def verify_email(self, token: str) -> VerificationOutcome:
        """Consume a verification token.

        The stored ``verify_token`` decides which account the token
        applies to; the signature and the stored expiry must both still
        be valid.

        Raises:
            ConflictError: Unknown token, or expired on an unverified
                account (which is deleted)
            BadRequestError: Expired on an already verified account
        """
        user = (
            await UserRepository.get_by_verify_token(self.session, token)
            if token
            else None
        )
        if user is None:
            logger.warning(
                "Verification failed: unknown token",
                extra={
                    "context": {
                        "action": "verify_email",
                        "status": "failed",
                        "reason": "unknown_token",
                    }
                },
            )
            raise ConflictError(INVALID_VERIFY_TOKEN)

        signature_expired = False
        try:
            self.tokens.validate(token, TokenPurpose.VERIFY_EMAIL)
        except TokenExpiredError:
            signature_expired = True
        except TokenError as e:
            raise ConflictError(INVALID_VERIFY_TOKEN) from e

        expires = user.verify_token_expires
        if signature_expired or expires is None or expires <= datetime.now(UTC):
            if user.verified:
                raise BadRequestError("Please log in to continue.")

            user_id = user.id
            await UserRepository.delete_unverified(
                self.session, user_id=user_id, token=token
            )
            await self.session.commit()
            logger.info(
                "Expired registration deleted",
                extra={
                    "context": {
                        "user_id": str(user_id),
                        "action": "verify_email",
                        "status": "expired",
                    }
                },
            )
            raise ConflictError(
                "Verification link has expired. Please register again."
            )

        if user.verified:
            return VerificationOutcome.ALREADY_VERIFIED

        changed = await UserRepository.mark_verified(
            self.session, user_id=user.id, token=token
        )
        await self.session.commit()

        if not changed:
            return VerificationOutcome.ALREADY_VERIFIED

        logger.info(
            "Email verified",
            extra={
                "context": {
                    "user_id": str(user.id),
                    "action": "verify_email",
                    "status": "success",
                }
            },
        )
        return VerificationOutcome.VERIFIED

    # ------------------------------------------------------------------
    # Login and password recovery
    # ------------------------------------------------------------------

    @_store_guard("login")
    async def login(self, email: str | None, password: str | None) -> str:
        """Check credentials and issue a session token.

        Returns:
            Session token (also cached on the user row)

        Raises:
            BadRequestError: Missing field or malformed email
            UnauthorizedError: Unknown email or wrong password
            ConflictError: Account not verified yet

        Security:
            Unknown email and wrong password produce the same error and
            both run one bcrypt comparison.
        """
        if not email or not password:
            raise BadRequestError("Email and Password are required.")
        if not is_valid_email_format(email):
            raise BadRequestError(INVALID_EMAIL_FORMAT)

        user = await UserRepository.get_by_email(self.session, email)

        if user is None:
            verify_password(password, _dummy_password_hash())
            logger.warning(
                "Login failed: user not found",
                extra={
                    "context": {
                        "email": email,
                        "action": "login",
                        "status": "failed",
                        "reason": "user_not_found",
                    }
                },
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not user.verified:
            logger.warning(
                "Login failed: account not verified",
                extra={
                    "context": {
                        "user_id": str(user.id),
                        "action": "login",
                        "status": "failed",
                        "reason": "unverified",
                    }
                },
            )
            raise ConflictError(
                "Account verification pending. Please check your email."
            )

        if not verify_password(password, user.hashed_password):
            logger.warning(
                "Login failed: invalid password",
                extra={
                    "context": {
                        "user_id": str(user.id),
                        "action": "login",
                        "status": "failed",
                        "reason": "invalid_password",
                    }
                },
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        token = self.tokens.issue(
            TokenPurpose.SESSION, {"sub": str(user.id), "email": user.email}
        )
        await UserRepository.set_session_token(
            self.session, user_id=user.id, token=token
        )
        await self.session.commit()

        logger.info(
            "Login successful",
            extra={
                "context": {
                    "user_id": str(user.id),
                    "action": "login",
                    "status": "success",
                }
            },
        )
        return token

    @_store_guard("forgot_password")
    async def forgot_password(self, email: str | None) -> None:
        """Store a fresh reset token and email it.

        The token is committed before delivery; a delivery failure is
        reported but the stored token stays usable.

        Raises:
            BadRequestError: Missing or unknown email
            ServerError: Reset email could not be sent
        """
        if not email:
            raise BadRequestError("Email Is Required!")

        user = await UserRepository.get_by_email(self.session, email)
        if user is None:
            logger.warning(
                "Password reset requested for unknown email",
                extra={
                    "context": {
                        "email": email,
                        "action": "forgot_password",
                        "status": "failed",
                        "reason": "user_not_found",
                    }
                },
            )
            raise BadRequestError("Invalid Email or Email Not Found!")

        token = self.tokens.issue(
            TokenPurpose.RESET_PASSWORD, {"sub": str(user.id), "email": email}
        )
        await UserRepository.set_reset_token(
            self.session,
            user_id=user.id,
            token=token,
            expires=datetime.now(UTC) + self.tokens.ttl(TokenPurpose.RESET_PASSWORD),
        )
        await self.session.commit()

        try:
            await self.notifier.send(
                NotificationKind.RESET, email, token, user.first_name
            )
        except DeliveryError as e:
            logger.error(
                "Password reset email not sent",
                extra={
                    "context": {
                        "user_id": str(user.id),
                        "action": "forgot_password",
                        "status": "failed",
                        "reason": "delivery_failed",
                    }
                },
            )
            raise ServerError(
                "Failed to send password reset link, please try again later!"
            ) from e

        logger.info(
            "Password reset link sent",
            extra={
                "context": {
                    "user_id": str(user.id),
                    "action": "forgot_password",
                    "status": "success",
                }
            },
        )

    @_store_guard("reset_password")
    async def reset_password(self, token: str | None, password: str | None) -> None:
        """Set a new password with a stored, unexpired reset token.

        Raises:
            BadRequestError: Missing input, or the token is invalid,
                expired or already used
        """
        if not token:
            raise BadRequestError("Token is required!")
        if not password:
            raise BadRequestError("Password is required!")

        try:
            self.tokens.validate(token, TokenPurpose.RESET_PASSWORD)
        except TokenError as e:
            raise BadRequestError(INVALID_RESET_TOKEN) from e

        consumed = await UserRepository.consume_reset_token(
            self.session,
            token=token,
            hashed_password=hash_password(password),
            now=datetime.now(UTC),
        )
        if not consumed:
            logger.warning(
                "Password reset failed: token not stored or expired",
                extra={
                    "context": {
                        "action": "reset_password",
                        "status": "failed",
                        "reason": "invalid_token",
                    }
                },
            )
            raise BadRequestError(INVALID_RESET_TOKEN)

        await self.session.commit()
        logger.info(
            "Password reset completed",
            extra={"context": {"action": "reset_password", "status": "success"}},
        )

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def _require_user(self, user_id: uuid.UUID, *, for_update: bool = False) -> User:
        user = await UserRepository.get_by_id(
            self.session, user_id, for_update=for_update
        )
        if user is None:
            raise NotFoundError("User Not Found")
        return user

    @_store_guard("get_profile")
    async def get_profile(self, user_id: uuid.UUID) -> User:
        """Return the user row backing the profile view."""
        return await self._require_user(user_id)

    @_store_guard("update_profile")
    async def update_profile(self, user_id: uuid.UUID, changes: ProfileUpdate) -> User:
        """Apply the profile fields present in ``changes``.

        Presence is what counts: a name sent as ``""`` clears it, a field
        left out of the request is untouched.

        Raises:
            NotFoundError: User no longer exists
            BadRequestError: Malformed new email
            ConflictError: New email belongs to another user
        """
        user = await self._require_user(user_id, for_update=True)
        provided = {
            field for field in changes.model_fields_set
            if getattr(changes, field) is not None
        }

        new_email = changes.email if "email" in provided else None
        if new_email is not None and new_email != user.email:
            if not is_valid_email_format(new_email):
                raise BadRequestError(INVALID_EMAIL_FORMAT)
            other = await UserRepository.get_by_email(self.session, new_email)
            if other is not None and other.id != user.id:
                raise ConflictError(
                    f"{new_email} is already in use, please choose a different one"
                )
            user.email = new_email

        if "first_name" in provided:
            user.first_name = changes.first_name
        if "last_name" in provided:
            user.last_name = changes.last_name

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                f"{changes.email} is already in use, please choose a different one"
            ) from e

        logger.info(
            "Profile updated",
            extra={
                "context": {
                    "user_id": str(user_id),
                    "action": "update_profile",
                    "fields": sorted(provided),
                    "status": "success",
                }
            },
        )
        return user

    @_store_guard("update_preferred_languages")
    async def update_preferred_languages(
        self, user_id: uuid.UUID, language_ids: list[str] | None
    ) -> list[str]:
        """Replace the preferred language list wholesale."""
        if language_ids is None:
            raise BadRequestError("languageIds is required!")

        user = await self._require_user(user_id, for_update=True)
        user.languages = list(language_ids)
        await self.session.commit()
        return user.languages

    @_store_guard("update_password")
    async def update_password(
        self,
        user_id: uuid.UUID,
        password: str | None,
        current_password: str | None = None,
    ) -> None:
        """Rehash and store a new password for an authenticated user.

        The session token is sufficient; ``current_password`` is checked
        only when the client sends it.

        Raises:
            BadRequestError: Missing password
            UnauthorizedError: ``current_password`` given and wrong
        """
        if not password:
            raise BadRequestError("Password is Required!")

        user = await self._require_user(user_id, for_update=True)

        if current_password is not None and not verify_password(
            current_password, user.hashed_password
        ):
            logger.warning(
                "Password change failed: invalid current password",
                extra={
                    "context": {
                        "user_id": str(user_id),
                        "action": "update_password",
                        "status": "failed",
                        "reason": "invalid_current_password",
                    }
                },
            )
            raise UnauthorizedError("Current password is incorrect.")

        user.hashed_password = hash_password(password)
        await self.session.commit()

        logger.info(
            "Password changed",
            extra={
                "context": {
                    "user_id": str(user_id),
                    "action": "update_password",
                    "status": "success",
                }
            },
        )

    # ------------------------------------------------------------------
    # Library
    # ------------------------------------------------------------------

    @_store_guard("save_story")
    async def save_story(self, user_id: uuid.UUID, story_id: str | None) -> list[str]:
        """Append ``story_id`` to the library.

        Raises:
            BadRequestError: Missing story id
            ConflictError: Story already saved
        """
        if not story_id:
            raise BadRequestError("StoryId is required!")

        user = await self._require_user(user_id, for_update=True)
        if story_id in user.saved_stories:
            raise ConflictError("Story already saved")

        user.saved_stories = [*user.saved_stories, story_id]
        await self.session.commit()
        return user.saved_stories

    @_store_guard("remove_story")
    async def remove_story(self, user_id: uuid.UUID, story_id: str | None) -> list[str]:
        """Remove ``story_id``, keeping the order of the remaining entries.

        Raises:
            BadRequestError: Missing story id
            NotFoundError: Story not in the library
        """
        if not story_id:
            raise BadRequestError("StoryId is required!")

        user = await self._require_user(user_id, for_update=True)
        if story_id not in user.saved_stories:
            raise NotFoundError("Invalid StoryId")

        user.saved_stories = [s for s in user.saved_stories if s != story_id]
        await self.session.commit()
        return user.saved_stories

    @_store_guard("list_stories")
    async def list_stories(self, user_id: uuid.UUID) -> list[str]:
        """Return the saved story ids in insertion order."""
        user = await self._require_user(user_id)
        return list(user.saved_stories)


__all__ = [
    "AccountService",
    "GENERIC_FAILURE",
    "INVALID_CREDENTIALS",
    "INVALID_RESET_TOKEN",
    "VerificationOutcome",
]
