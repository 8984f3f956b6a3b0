"""Application error taxonomy.

Every domain failure raised by the service layer is an ``AppError``
carrying the HTTP status it maps to. The API layer turns these into
``{"message": ...}`` responses; nothing else about the failure is exposed.
"""

from __future__ import annotations

from fastapi import status


class AppError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class BadRequestError(AppError):
    """Missing or malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AppError):
    """Bad credentials or an invalid/expired session."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(AppError):
    """Referenced resource does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    """Duplicate resource or a state mismatch.

    Raised for an already-registered email, a login before verification,
    an unknown verification token and a story that is already saved.
    """

    status_code = status.HTTP_409_CONFLICT


class ServerError(AppError):
    """Downstream failure (database, mail delivery, external service)."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "AppError",
    "BadRequestError",
    "ConflictError",
    "NotFoundError",
    "ServerError",
    "UnauthorizedError",
]
