"""Application settings and configuration.

This module defines all configuration options for the billing core service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Billing Core", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    enable_guest_login: bool = Field(default=False, alias="ENABLE_GUEST_LOGIN")

    # Database configuration
    database_url: str = Field(default="sqlite:///./billing.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Shared ephemeral state (rate-limit counters, replay map)
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    rate_limit_backend: Literal["memory", "redis"] = Field(
        default="memory", alias="RATE_LIMIT_BACKEND"
    )
    replay_backend: Literal["memory", "redis"] = Field(default="memory", alias="REPLAY_BACKEND")
    replay_ttl_seconds: int = Field(default=60, alias="REPLAY_TTL_SECONDS")
    replay_cookie_name: str = Field(default="cb_replay", alias="REPLAY_COOKIE_NAME")
    oauth_redirect_path: str = Field(default="/", alias="OAUTH_REDIRECT_PATH")

    # Payment gateway (Razorpay-compatible REST API)
    razorpay_key_id: str | None = Field(default=None, alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str | None = Field(default=None, alias="RAZORPAY_KEY_SECRET")
    razorpay_base_url: str = Field(
        default="https://api.razorpay.com/v1",
        alias="RAZORPAY_BASE_URL",
    )
    razorpay_timeout_seconds: float = Field(default=10.0, alias="RAZORPAY_TIMEOUT_SECONDS")

    # A processing claim older than this may be reclaimed; 0 disables reclaim.
    payment_processing_lease_seconds: int = Field(
        default=300,
        alias="PAYMENT_PROCESSING_LEASE_SECONDS",
    )

    # Per-endpoint rate limits
    guest_signin_limit: int = Field(default=10, alias="GUEST_SIGNIN_LIMIT")
    guest_signin_window_ms: int = Field(default=10 * 60 * 1000, alias="GUEST_SIGNIN_WINDOW_MS")
    heartbeat_limit: int = Field(default=90, alias="HEARTBEAT_LIMIT")
    heartbeat_window_ms: int = Field(default=60 * 1000, alias="HEARTBEAT_WINDOW_MS")
    admin_listing_limit: int = Field(default=60, alias="ADMIN_LISTING_LIMIT")
    admin_listing_window_ms: int = Field(default=60 * 1000, alias="ADMIN_LISTING_WINDOW_MS")
    status_probe_limit: int = Field(default=30, alias="STATUS_PROBE_LIMIT")
    status_probe_window_ms: int = Field(default=60 * 1000, alias="STATUS_PROBE_WINDOW_MS")
    payment_verify_limit: int = Field(default=20, alias="PAYMENT_VERIFY_LIMIT")
    payment_verify_window_ms: int = Field(default=60 * 1000, alias="PAYMENT_VERIFY_WINDOW_MS")
    checkout_limit: int = Field(default=20, alias="CHECKOUT_LIMIT")
    checkout_window_ms: int = Field(default=60 * 1000, alias="CHECKOUT_WINDOW_MS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def replay_ttl_ms(self) -> int:
        return self.replay_ttl_seconds * 1000


settings = Settings()  # type: ignore[call-arg]
