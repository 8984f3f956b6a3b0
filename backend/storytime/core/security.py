"""Password hashing and verification utilities.

Passwords are hashed with bcrypt (cost factor 12) and a fresh salt per
hash. Only hashes are persisted; the plain password lives for the
duration of a single request.

Logging:
    - Logs hashing and verification operations (never the password)
    - Logs verification errors caused by malformed stored hashes
"""

from __future__ import annotations

import bcrypt

from storytime.core.logging import get_logger

logger = get_logger(__name__)

# Each increment doubles the hashing time
BCRYPT_ROUNDS = 12

# bcrypt ignores everything past 72 bytes
BCRYPT_MAX_BYTES = 72


def _prepare_password(password: str) -> bytes:
    """Encode a password for bcrypt, truncated to 72 bytes.

    Args:
        password: Plain text password to prepare

    Returns:
        Password bytes truncated to 72 bytes if necessary
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
    return password_bytes


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12.

    The same password produces a different hash on every call because a
    new salt is generated each time.

    Args:
        password: Plain text password to hash

    Returns:
        Bcrypt hash string (60 characters, starts with $2b$12$)

    Examples:
        >>> hashed = hash_password("Secret123")
        >>> hashed.startswith("$2b$12$")
        True
    """
    logger.debug(
        "Password hashing operation",
        extra={
            "context": {
                "action": "hash_password",
                "truncated": len(password.encode("utf-8")) > BCRYPT_MAX_BYTES,
            }
        },
    )

    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed: str = bcrypt.hashpw(_prepare_password(password), salt).decode("utf-8")
    return hashed


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash.

    Uses bcrypt's constant-time comparison. An unusable stored hash is
    treated as a mismatch rather than an error.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Stored bcrypt hash to compare against

    Returns:
        True if password matches, False otherwise

    Examples:
        >>> hashed = hash_password("Secret123")
        >>> verify_password("Secret123", hashed)
        True
        >>> verify_password("wrong", hashed)
        False
    """
    if not hashed_password:
        return False

    try:
        result: bool = bcrypt.checkpw(
            _prepare_password(plain_password),
            hashed_password.encode("utf-8"),
        )
    except ValueError as e:
        logger.warning(
            "Password verification failed with exception",
            extra={
                "context": {
                    "action": "verify_password",
                    "error_type": type(e).__name__,
                    "status": "failed",
                }
            },
        )
        return False

    return result


__all__ = [
    "BCRYPT_ROUNDS",
    "hash_password",
    "verify_password",
]
