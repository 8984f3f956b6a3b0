"""Pydantic schemas for account requests and responses.

Request fields are optional at the schema level. Presence and shape
checks happen in the service, which reports each missing input as a 400
with its own message.
"""

from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Body of ``POST /register``.

    Lengths match the user columns so oversized values are rejected as
    a 400 instead of failing at insert.
    """

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: str | None = Field(None, max_length=255)
    password: str | None = None


class LoginRequest(BaseModel):
    """Body of ``POST /login``."""

    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    """Body of ``POST /forgotpassword``."""

    email: str | None = None


class ResetPasswordRequest(BaseModel):
    """Body of ``POST /resetpassword/{token}``."""

    password: str | None = None


class ProfileUpdate(BaseModel):
    """Body of ``PUT /profile``.

    Only the fields present in the request are applied.
    """

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: str | None = Field(None, max_length=255)


class PreferredLanguagesUpdate(BaseModel):
    """Body of ``PUT /preferredlanguage``."""

    model_config = ConfigDict(populate_by_name=True)

    language_ids: list[str] | None = Field(None, alias="languageIds")


class PasswordUpdate(BaseModel):
    """Body of ``PUT /updatepassword``."""

    model_config = ConfigDict(populate_by_name=True)

    password: str | None = None
    current_password: str | None = Field(None, alias="currentPassword")


class StoryRequest(BaseModel):
    """Body of ``POST /savestory`` and ``DELETE /removestory``."""

    model_config = ConfigDict(populate_by_name=True)

    story_id: str | None = Field(None, alias="storyId")


class MessageResponse(BaseModel):
    """Plain confirmation message."""

    message: str


class LoginResponse(MessageResponse):
    """Successful login with the issued session token."""

    token: str


class ProfileData(BaseModel):
    """Public profile fields of a user."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(
        ...,
        validation_alias=AliasChoices("id", "_id"),
        serialization_alias="_id",
    )
    first_name: str
    last_name: str
    email: str
    languages: list[str]


class ProfileResponse(BaseModel):
    """Response of ``GET /profile``."""

    model_config = ConfigDict(populate_by_name=True)

    profile_data: ProfileData = Field(..., alias="profileData")


class LibraryResponse(BaseModel):
    """Response of ``GET /library``."""

    stories: list[str]


class CatalogTokenResponse(BaseModel):
    """Response of ``GET /refreshToken``."""

    model_config = ConfigDict(populate_by_name=True)

    catalog_token: dict[str, Any] = Field(..., alias="catalogToken")


__all__ = [
    "CatalogTokenResponse",
    "ForgotPasswordRequest",
    "LibraryResponse",
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "PasswordUpdate",
    "PreferredLanguagesUpdate",
    "ProfileData",
    "ProfileResponse",
    "ProfileUpdate",
    "RegisterRequest",
    "ResetPasswordRequest",
    "StoryRequest",
]
