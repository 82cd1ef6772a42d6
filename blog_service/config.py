"""Configuration management and validation using Pydantic."""

import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    """Blog service settings loaded from environment variables or .env files."""

    @staticmethod
    def get_env_file() -> str | None:
        """Pick the .env file for the current APP_ENV.

        Returns:
            None if SKIP_ENV_FILE is set (Docker/direct env vars)
            .env.{APP_ENV} file path otherwise (defaults to .env.dev)
        """
        if os.getenv("SKIP_ENV_FILE"):
            return None
        env = os.getenv("APP_ENV", "dev")
        env_file = f".env.{env}"
        if not os.path.exists(env_file):
            raise FileNotFoundError(
                f"Environment file '{env_file}' not found. "
                f"Create it, set APP_ENV, or set SKIP_ENV_FILE to read the process environment only."
            )
        return env_file

    model_config = SettingsConfigDict(
        env_file=get_env_file.__func__(),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # ==================== Application Settings ====================
    APP_NAME: str = "Blog Service"
    APP_ENV: str = "dev"
    DB_URL: str  # Required, defined in .env files

    # ==================== Database Connection Pooling ====================
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for available connection
    DB_POOL_RECYCLE: int = 3600
    DB_QUERY_TIMEOUT: int = 60  # asyncpg only
    DB_CONNECT_TIMEOUT: int = 10

    # ==================== CORS Settings ====================
    CORS_ORIGINS: str = "http://localhost:3000"  # Comma-separated allowed origins

    # ==================== Pagination ====================
    DEFAULT_PAGE: int = 1
    DEFAULT_LIMIT: int = 10
    MAX_LIMIT: int = 100
    RECENT_POSTS_LIMIT: int = 6

    # ==================== Field Validation ====================
    USER_NAME_MIN_LENGTH: int = 2
    USER_NAME_MAX_LENGTH: int = 100
    USERNAME_MIN_LENGTH: int = 3
    USERNAME_MAX_LENGTH: int = 50
    USER_EMAIL_MAX_LENGTH: int = 255
    POST_TITLE_MIN_LENGTH: int = 3
    POST_TITLE_MAX_LENGTH: int = 200
    POST_BODY_MIN_LENGTH: int = 10

    # ==================== JWT Sessions ====================
    JWT_SECRET_KEY: str  # Required, defined in .env files
    JWT_ALGORITHM: str = "HS256"
    SESSION_EXPIRATION_DAYS: int = 7
    SESSION_COOKIE_NAME: str = "auth-token"

    # ==================== Rate Limiting ====================
    RATE_LIMIT_AUTH: str = "20/minute"
    RATE_LIMIT_WRITE: str = "60/minute"
    RATE_LIMIT_READ: str = "100/minute"

    # ==================== Logging ====================
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_FILE: str | None = None  # Path to enable file logging
    LOG_FORMAT: str = "console"  # "console" for dev, "json" for production

    @field_validator('DB_URL')
    @classmethod
    def validate_db_url(cls, v: str) -> str:
        """Validate that DB_URL points at a supported async driver."""
        if not v:
            raise ValueError("DB_URL is required but not provided in environment variables")
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError(
                "DB_URL must be a postgresql+asyncpg:// or sqlite+aiosqlite:// connection string"
            )
        return v

    @field_validator('JWT_SECRET_KEY')
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Validate that JWT_SECRET_KEY is provided and sufficiently long."""
        if not v:
            raise ValueError("JWT_SECRET_KEY is required but not provided in environment variables")
        if len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long for security")
        return v

    @property
    def is_local(self) -> bool:
        """True for local development and test runs (cookies are sent without Secure)."""
        return self.APP_ENV in ("dev", "test")

    def get_cors_origins(self) -> list[str]:
        """Parse CORS_ORIGINS into a list of allowed origins."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

settings = Settings()
