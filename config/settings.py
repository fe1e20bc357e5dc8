"""
Application Configuration Module

Centralizes all application settings using Pydantic Settings.
Environment variables are loaded from .env file automatically.

Usage:
    from config.settings import settings

    print(settings.DATABASE_URL)
    print(settings.DEBUG)
"""

from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Variable names are case-insensitive.
    """

    # ==========================================================================
    # Database Configuration
    # ==========================================================================
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./formforge.db",
        description="Primary store connection string (PostgreSQL or SQLite)"
    )
    FALLBACK_DATABASE_URL: Optional[str] = Field(
        default=None,
        description="Store used once all primary connection attempts fail"
    )
    DB_CONNECT_MAX_ATTEMPTS: int = Field(
        default=3,
        description="Connection attempts against the primary store at startup"
    )
    DB_CONNECT_INITIAL_DELAY: float = Field(
        default=1.0,
        description="Delay before the second connection attempt (seconds)"
    )
    DB_CONNECT_MAX_DELAY: float = Field(
        default=10.0,
        description="Upper bound for the delay between attempts (seconds)"
    )
    DB_CONNECT_BACKOFF_BASE: float = Field(
        default=2.0,
        description="Multiplier applied to the delay after each failed attempt"
    )
    DB_ECHO: bool = Field(
        default=False,
        description="Echo SQL statements to the log"
    )

    # ==========================================================================
    # Authentication & Security
    # ==========================================================================
    SECRET_KEY: str = Field(
        default="formforge-dev-secret-change-me",
        description="JWT signing key; must be overridden outside development"
    )
    ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=60 * 24 * 7,
        description="JWT token expiration time in minutes"
    )
    AUTH_COOKIE_NAME: str = Field(
        default="token",
        description="Name of the httpOnly cookie carrying the session token"
    )
    AUTH_COOKIE_SECURE: bool = Field(
        default=False,
        description="Only send the session cookie over HTTPS"
    )
    MIN_PASSWORD_LENGTH: int = Field(
        default=6,
        description="Minimum accepted password length"
    )

    # ==========================================================================
    # Submission Validation
    # ==========================================================================
    STRICT_SUBMISSION_VALIDATION: bool = Field(
        default=False,
        description="Reject answers that do not match the form's field schema"
    )

    # ==========================================================================
    # Rate Limiting
    # ==========================================================================
    RATE_LIMIT_ENABLED: bool = Field(
        default=True,
        description="Enable per-client request rate limiting"
    )
    REDIS_URL: Optional[str] = Field(
        default=None,
        description="Redis connection URL for rate limit storage"
    )

    # ==========================================================================
    # CORS Configuration
    # ==========================================================================
    CORS_ORIGINS: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    @property
    def cors_origins_list(self) -> list:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    DEBUG: bool = Field(
        default=False,
        description="Development mode: verbose logging and internal error details"
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit logs as JSON objects"
    )
    APP_NAME: str = Field(
        default="FormForge",
        description="Application name for OpenAPI docs"
    )
    APP_VERSION: str = Field(
        default="1.0.0",
        description="Application version"
    )

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Singleton instance for easy import
settings = get_settings()
