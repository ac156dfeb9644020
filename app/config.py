# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with every option the server recognizes.
#
# Usage:
#   from app.config import get_settings
#   settings = get_settings()
#   print(settings.port)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# Field names are the Python-side option names; the alias on each field is the
# environment variable that feeds it (DATABASE, PORT, SECRET_KEY_ONE, ...).
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Server settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development

    Build one instance at startup and pass it to ``start()``.
    """

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------
    # Required - the server has nothing to connect to without it

    database_uri: str = Field(
        ...,
        alias="DATABASE",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017/app)"
    )

    database_timeout_ms: int = Field(
        default=5000,
        ge=1,
        alias="DATABASE_TIMEOUT_MS",
        description="Server selection timeout used when probing the database"
    )

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    port: int = Field(
        default=3000,
        ge=0,
        le=65535,
        alias="PORT",
        description="Port for the HTTP listener (0 picks a free port)"
    )

    hostname: str = Field(
        default="127.0.0.1",
        alias="HOST",
        description="Address the HTTP listener binds to"
    )

    trust_proxy: int = Field(
        default=1,
        ge=0,
        alias="TRUST_PROXY",
        description="Number of upstream proxy hops whose X-Forwarded-* headers are trusted"
    )

    static_dir: str = Field(
        default="public",
        alias="STATIC_DIR",
        description="Directory whose files are served verbatim"
    )

    body_limit: int = Field(
        default=100 * 1024,
        ge=1,
        alias="BODY_LIMIT",
        description="Maximum accepted request body size in bytes"
    )

    shutdown_timeout: int = Field(
        default=10,
        ge=0,
        alias="SHUTDOWN_TIMEOUT",
        description="Seconds open requests get to finish before shutdown cancels them"
    )

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    session_secret: str = Field(
        ...,
        min_length=1,
        alias="SECRET_KEY_ONE",
        description="Secret used to sign session and cookie values"
    )

    # Avoid a framework-default cookie name that fingerprints the server
    session_cookie_name: str = Field(
        default="sid",
        min_length=1,
        alias="SESSION_NAME",
        description="Name of the session cookie"
    )

    session_max_age: int | None = Field(
        default=None,
        ge=1,
        alias="SESSION_MAX_AGE",
        description="Session cookie lifetime in seconds (unset = browser session)"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    environment: Literal["development", "production"] = Field(
        default="development",
        alias="NODE_ENV",
        description="Current environment"
    )

    debug: bool = Field(
        default=False,
        alias="DEBUG",
        description="Enable debug logging"
    )

    # CORS origins (comma-separated string that gets parsed)
    cors_origins: str = Field(
        default="*",
        alias="CORS_ORIGINS",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        # Allow Settings(port=0, ...) in code and tests
        populate_by_name=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()
