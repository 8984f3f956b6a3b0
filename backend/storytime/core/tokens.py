"""Signed, time-bounded tokens for account lifecycle actions.

Three purposes share one signing secret:

- ``verify-email``: proves control of the mailbox given at registration
- ``reset-password``: authorizes a single password reset
- ``session``: bearer credential issued at login

Tokens are JWTs (python-jose). Each carries its purpose so one kind can
never be replayed as another, and a random ``jti`` so that two tokens
with the same claims never compare equal; verify and reset tokens are
also stored on the user row and looked up by value.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from storytime.core.config import Settings


class TokenPurpose(str, Enum):
    """Lifecycle action a token authorizes."""

    VERIFY_EMAIL = "verify-email"
    RESET_PASSWORD = "reset-password"
    SESSION = "session"


class TokenError(Exception):
    """Base class for token validation failures."""


class TokenExpiredError(TokenError):
    """Signature is valid but the token is past its expiry."""


class TokenMalformedError(TokenError):
    """Bad structure or signature, or a token minted for another purpose."""


class TokenUnknownSubjectError(TokenError):
    """The subject claim is missing or cannot be parsed."""


class TokenCodec:
    """Issues and validates tokens with a symmetric secret.

    One codec is built from settings at process start and injected
    wherever tokens are minted or checked.

    Examples:
        >>> codec = TokenCodec("secret", ttls={TokenPurpose.SESSION: timedelta(days=30)})
        >>> token = codec.issue(TokenPurpose.SESSION, {"email": "ann@x.com", "sub": "..."})
        >>> codec.validate(token, TokenPurpose.SESSION)["email"]
        'ann@x.com'
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        ttls: dict[TokenPurpose, timedelta] | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._ttls = dict(ttls or {})

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenCodec:
        """Build a codec with the secret and TTLs from ``settings``."""
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            ttls={
                TokenPurpose.VERIFY_EMAIL: timedelta(
                    hours=settings.VERIFY_TOKEN_EXPIRE_HOURS
                ),
                TokenPurpose.RESET_PASSWORD: timedelta(
                    hours=settings.RESET_TOKEN_EXPIRE_HOURS
                ),
                TokenPurpose.SESSION: timedelta(
                    days=settings.SESSION_TOKEN_EXPIRE_DAYS
                ),
            },
        )

    def ttl(self, purpose: TokenPurpose) -> timedelta:
        """Return the configured lifetime for ``purpose``."""
        try:
            return self._ttls[purpose]
        except KeyError:
            raise ValueError(f"No TTL configured for {purpose.value} tokens") from None

    def issue(
        self,
        purpose: TokenPurpose,
        claims: dict[str, Any],
        ttl: timedelta | None = None,
    ) -> str:
        """Sign a token for ``purpose``.

        Args:
            purpose: Lifecycle action the token authorizes
            claims: Identity claims; must include ``email``
            ttl: Lifetime override, defaults to the configured TTL

        Returns:
            Encoded JWT string

        Raises:
            ValueError: If ``email`` is missing from the claims
        """
        if not claims.get("email"):
            raise ValueError("Token claims must include an email")

        now = datetime.now(UTC)
        payload = {
            **claims,
            "purpose": purpose.value,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + (ttl if ttl is not None else self.ttl(purpose)),
        }
        token: str = jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        return token

    def validate(self, token: str, purpose: TokenPurpose) -> dict[str, Any]:
        """Check signature, expiry, purpose and subject of ``token``.

        Returns:
            Decoded claims

        Raises:
            TokenExpiredError: Signature valid, ``exp`` passed
            TokenMalformedError: Undecodable, bad signature, wrong purpose
            TokenUnknownSubjectError: Missing ``email`` or, for sessions,
                a ``sub`` that is not a UUID
        """
        try:
            claims: dict[str, Any] = jwt.decode(
                token, self._secret_key, algorithms=[self._algorithm]
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JWTError as e:
            raise TokenMalformedError("Token could not be decoded") from e

        if claims.get("purpose") != purpose.value:
            raise TokenMalformedError("Token was issued for a different purpose")

        if not isinstance(claims.get("email"), str) or not claims["email"]:
            raise TokenUnknownSubjectError("Token has no email claim")

        if purpose is TokenPurpose.SESSION:
            try:
                uuid.UUID(str(claims.get("sub")))
            except ValueError as e:
                raise TokenUnknownSubjectError("Token subject is not a user id") from e

        return claims


__all__ = [
    "TokenCodec",
    "TokenError",
    "TokenExpiredError",
    "TokenMalformedError",
    "TokenPurpose",
    "TokenUnknownSubjectError",
]
