"""User account API router.

Registration, verification, login and password recovery are public;
profile, library and catalog-credential routes require a bearer session
token. Service errors propagate as ``AppError`` and are rendered by the
application's exception handlers.
"""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from storytime.api.deps import (  # noqa: TC001 - Needed at runtime for FastAPI DI
    Accounts,
    CatalogClient,
    CurrentUser,
)
from storytime.schemas.user import (
    CatalogTokenResponse,
    ForgotPasswordRequest,
    LibraryResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordUpdate,
    PreferredLanguagesUpdate,
    ProfileData,
    ProfileResponse,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
    StoryRequest,
)
from storytime.services.account_service import VerificationOutcome

router = APIRouter()


# =============================================================================
# Registration and verification
# =============================================================================


@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create an unverified account and email a verification link.",
)
async def register(accounts: Accounts, body: RegisterRequest) -> MessageResponse:
    await accounts.register(
        body.first_name, body.last_name, body.email, body.password
    )
    return MessageResponse(
        message="Registered successfully. Please check your mail to verify the account"
    )


@router.get(
    "/verifyEmail/{token}",
    response_model=MessageResponse,
    summary="Verify email",
    responses={201: {"model": MessageResponse}},
)
async def verify_email(
    accounts: Accounts, token: str, response: Response
) -> MessageResponse:
    """Confirm an email address.

    Returns 201 on first verification and 200 when already verified.
    """
    outcome = await accounts.verify_email(token)
    if outcome is VerificationOutcome.VERIFIED:
        response.status_code = status.HTTP_201_CREATED
        return MessageResponse(message="Email is verified. Please log in.")
    return MessageResponse(message="Email is already verified. Please log in.")


# =============================================================================
# Login and password recovery
# =============================================================================


@router.post("/login", response_model=LoginResponse, summary="Log in")
async def login(accounts: Accounts, body: LoginRequest) -> LoginResponse:
    token = await accounts.login(body.email, body.password)
    return LoginResponse(message="Login successful", token=token)


@router.post(
    "/forgotpassword",
    response_model=MessageResponse,
    summary="Request password reset",
)
async def forgot_password(
    accounts: Accounts, body: ForgotPasswordRequest
) -> MessageResponse:
    await accounts.forgot_password(body.email)
    return MessageResponse(
        message="password reset link sent successfully, please check your email"
    )


@router.post(
    "/resetpassword/{token}",
    response_model=MessageResponse,
    summary="Reset password",
)
async def reset_password(
    accounts: Accounts, token: str, body: ResetPasswordRequest
) -> MessageResponse:
    await accounts.reset_password(token, body.password)
    return MessageResponse(message="Password updated successfully, please login")


# =============================================================================
# Authenticated routes
# =============================================================================


@router.get(
    "/refreshToken",
    response_model=CatalogTokenResponse,
    summary="Get catalog client credentials",
)
async def refresh_catalog_token(
    current_user: CurrentUser,  # noqa: ARG001 - Route is gated on a session
    catalog: CatalogClient,
) -> CatalogTokenResponse:
    credential = await catalog.fetch_client_token()
    return CatalogTokenResponse(catalog_token=credential)


@router.get("/profile", response_model=ProfileResponse, summary="Get profile")
async def get_profile(accounts: Accounts, current_user: CurrentUser) -> ProfileResponse:
    user = await accounts.get_profile(current_user.id)
    return ProfileResponse(profile_data=ProfileData.model_validate(user))


@router.put("/profile", response_model=MessageResponse, summary="Update profile")
async def update_profile(
    accounts: Accounts, current_user: CurrentUser, body: ProfileUpdate
) -> MessageResponse:
    await accounts.update_profile(current_user.id, body)
    return MessageResponse(message="updated successfully")


@router.put(
    "/preferredlanguage",
    response_model=MessageResponse,
    summary="Replace preferred languages",
)
async def update_preferred_language(
    accounts: Accounts, current_user: CurrentUser, body: PreferredLanguagesUpdate
) -> MessageResponse:
    await accounts.update_preferred_languages(current_user.id, body.language_ids)
    return MessageResponse(message="Preferred Language updated Successfully")


@router.put(
    "/updatepassword",
    response_model=MessageResponse,
    summary="Change password",
)
async def update_password(
    accounts: Accounts, current_user: CurrentUser, body: PasswordUpdate
) -> MessageResponse:
    await accounts.update_password(
        current_user.id, body.password, body.current_password
    )
    return MessageResponse(message="password updated successfully!")


@router.post("/savestory", response_model=MessageResponse, summary="Save story")
async def save_story(
    accounts: Accounts, current_user: CurrentUser, body: StoryRequest
) -> MessageResponse:
    await accounts.save_story(current_user.id, body.story_id)
    return MessageResponse(message="Story saved successfully")


@router.delete(
    "/removestory",
    response_model=MessageResponse,
    summary="Remove saved story",
)
async def remove_story(
    accounts: Accounts, current_user: CurrentUser, body: StoryRequest
) -> MessageResponse:
    await accounts.remove_story(current_user.id, body.story_id)
    return MessageResponse(message="Story Deleted Successfully!")


@router.get("/library", response_model=LibraryResponse, summary="List saved stories")
async def get_library(accounts: Accounts, current_user: CurrentUser) -> LibraryResponse:
    stories = await accounts.list_stories(current_user.id)
    return LibraryResponse(stories=stories)
