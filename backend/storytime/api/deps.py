"""API dependencies.

Shared dependencies for API routes: database session, the process-wide
token codec, notifier and catalog client, the account service, and the
authenticated-user gate.
"""

from functools import lru_cache
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from storytime.core.config import get_settings
from storytime.core.logging import get_logger
from storytime.core.tokens import TokenCodec, TokenError, TokenPurpose
from storytime.db.session import get_db
from storytime.models.user import User
from storytime.repositories.user_repository import UserRepository
from storytime.services.account_service import AccountService
from storytime.services.catalog_client import CatalogCredentialClient
from storytime.services.notifier import Notifier, ResendNotifier

logger = get_logger(__name__)

# =============================================================================
# Database Session Dependency
# =============================================================================

DBSession = Annotated[AsyncSession, Depends(get_db)]
"""Type alias for database session dependency injection."""


# =============================================================================
# Process-wide collaborators (built once from settings)
# =============================================================================


@lru_cache
def get_token_codec() -> TokenCodec:
    """Token codec configured from settings."""
    return TokenCodec.from_settings(get_settings())


@lru_cache
def get_notifier() -> Notifier:
    """Email notifier configured from settings."""
    return ResendNotifier.from_settings(get_settings())


@lru_cache
def get_catalog_client() -> CatalogCredentialClient:
    """Catalog credential client configured from settings."""
    return CatalogCredentialClient.from_settings(get_settings())


Tokens = Annotated[TokenCodec, Depends(get_token_codec)]
CatalogClient = Annotated[CatalogCredentialClient, Depends(get_catalog_client)]


def get_account_service(
    db: DBSession,
    tokens: Tokens,
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> AccountService:
    """Request-scoped account service."""
    return AccountService(db, tokens, notifier)


Accounts = Annotated[AccountService, Depends(get_account_service)]
"""Type alias for account service dependency injection.

Usage:
    @router.post("/login")
    async def login(accounts: Accounts, body: LoginRequest):
        token = await accounts.login(body.email, body.password)
"""


# =============================================================================
# Authentication Dependencies
# =============================================================================


def _unauthorized(detail: str = "Not authorized, invalid or expired token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    db: DBSession,
    tokens: Tokens,
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the user behind a bearer session token.

    The token is checked by signature and expiry only; the cached
    ``User.token`` column is not consulted, so any unexpired session
    token issued to the user is accepted.

    Raises:
        HTTPException: 401 if the header is missing, the token is
            invalid or expired, or the user no longer exists.
    """
    if authorization is None:
        raise _unauthorized("Not authorized, no token")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized()

    try:
        claims = tokens.validate(token, TokenPurpose.SESSION)
    except TokenError as e:
        logger.info(
            "Rejected session token",
            extra={
                "context": {
                    "action": "authenticate_request",
                    "reason": type(e).__name__,
                    "status": "failed",
                }
            },
        )
        raise _unauthorized() from e

    user = await UserRepository.get_by_id(db, UUID(claims["sub"]))
    if user is None:
        raise _unauthorized()

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
"""Type alias for required current user dependency.

Usage:
    @router.get("/library")
    async def library(current_user: CurrentUser):
        ...
"""


__all__ = [
    "Accounts",
    "CatalogClient",
    "CurrentUser",
    "DBSession",
    "Tokens",
    "get_account_service",
    "get_catalog_client",
    "get_current_user",
    "get_db",
    "get_notifier",
    "get_token_codec",
]
