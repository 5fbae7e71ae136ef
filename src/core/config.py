"""Application configuration using pydantic-settings."""
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    # Session cookie
    session_cookie_name: str = Field(default="sid", validation_alias="SESSION_COOKIE_NAME")
    session_cookie_secure: bool = Field(default=True, validation_alias="SESSION_COOKIE_SECURE")
    session_max_age_days: int = Field(default=7, validation_alias="SESSION_MAX_AGE_DAYS")

    # Account rules - shared with frontend (VITE_ prefix for Vite exposure)
    username_min_length: int = Field(default=3, validation_alias="VITE_USERNAME_MIN_LENGTH")
    username_max_length: int = Field(default=30, validation_alias="VITE_USERNAME_MAX_LENGTH")
    password_min_length: int = Field(default=8, validation_alias="VITE_PASSWORD_MIN_LENGTH")

    # Single-use token lifetimes
    reset_token_ttl_minutes: int = Field(default=60, validation_alias="RESET_TOKEN_TTL_MINUTES")
    verification_token_ttl_hours: int = Field(
        default=24, validation_alias="VERIFICATION_TOKEN_TTL_HOURS",
    )

    # Argon2 cost parameters (defaults land around 100ms per hash on commodity hardware)
    password_hash_time_cost: int = Field(default=3, validation_alias="PASSWORD_HASH_TIME_COST")
    password_hash_memory_cost: int = Field(
        default=65536, validation_alias="PASSWORD_HASH_MEMORY_COST",
    )

    # Remote favicon fetching
    image_fetch_timeout: float = Field(default=10.0, validation_alias="IMAGE_FETCH_TIMEOUT")
    image_max_bytes: int = Field(default=5 * 1024 * 1024, validation_alias="IMAGE_MAX_BYTES")

    # Outbound email (Resend)
    resend_api_key: str = Field(default="", validation_alias="RESEND_API_KEY")
    email_from: str = Field(default="onboarding@resend.dev", validation_alias="EMAIL_FROM")
    frontend_url: str = Field(
        default="http://localhost:5173",
        validation_alias="VITE_FRONTEND_URL",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @model_validator(mode="after")
    def validate_cookie_security(self) -> "Settings":
        """
        Prevent insecure session cookies from being used with a production database.

        Session cookies carry the whole authentication state, so sending them over
        plain HTTP is only acceptable for local development databases.
        """
        if self.session_cookie_secure:
            return self

        try:
            parsed = urlparse(self.database_url)
            hostname = parsed.hostname or ""
        except ValueError:
            hostname = ""

        # sqlite URLs have no host component
        if self.database_url.startswith("sqlite"):
            return self

        local_hosts = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}
        if hostname.lower() not in local_hosts:
            raise ValueError(
                f"SESSION_COOKIE_SECURE cannot be disabled with a non-local database. "
                f"Database host '{hostname}' appears to be a production database.",
            )

        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def session_max_age_seconds(self) -> int:
        """Session lifetime in seconds, used for the cookie Max-Age."""
        return self.session_max_age_days * 24 * 60 * 60

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite (local runs and tests)."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
