"""Application configuration using Pydantic Settings.

Environment variables are loaded from .env files and system environment.
All sensitive values should be provided via environment variables.
"""

from functools import lru_cache
from typing import Any

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "StoryTime API"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # CORS
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Any) -> list[str]:
        """Parse ALLOWED_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, list):
            return v
        return ["http://localhost:3000"]

    # Database
    DATABASE_URL: str | None = None
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 30

    # Security
    SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    VERIFY_TOKEN_EXPIRE_HOURS: int = 2
    RESET_TOKEN_EXPIRE_HOURS: int = 2
    SESSION_TOKEN_EXPIRE_DAYS: int = 30

    # Outbound email (Resend)
    RESEND_API_URL: str = "https://api.resend.com/emails"
    RESEND_API_KEY: SecretStr = SecretStr("")
    EMAIL_FROM: str = "noreply@storytime.app"
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # Story catalog client credentials
    CATALOG_TOKEN_URL: str = "https://accounts.spotify.com/api/token"
    CATALOG_CLIENT_ID: str = ""
    CATALOG_CLIENT_SECRET: SecretStr = SecretStr("")
    CATALOG_TIMEOUT_SECONDS: float = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None  # Defaults to logs/app.log
    LOG_JSON_FORMAT: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are built once per process and shared by every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
