"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

The defaults run the API against a local SQLite file, which is enough
for development. Production sets DATABASE_URL to PostgreSQL and a real
JWT_SECRET.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_JWT_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Super Sheets Admin API"
    api_version: str = "v1"
    environment: str = Field(
        default="development",
        description="development, test or production. Error details are only returned in development."
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./supersheets.db",
        description="SQLAlchemy database URL. PostgreSQL in production, SQLite for development and tests."
    )
    database_echo: bool = Field(
        default=False,
        description="Log every SQL statement. Noisy; development only."
    )
    database_pool_size: int = Field(
        default=5,
        description="Connections kept open per process (ignored for SQLite)"
    )
    database_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed beyond the pool size under load"
    )
    database_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a pooled connection before failing"
    )
    database_pool_recycle: int = Field(
        default=1800,
        description="Recycle connections after this many seconds"
    )
    database_auto_create: bool = Field(
        default=True,
        description="Create missing tables at startup. Disable when the schema is managed externally."
    )
    coach_lock_timeout_seconds: float = Field(
        default=30.0,
        description="How long a write waits for another transaction on the same coach (non-PostgreSQL only)"
    )

    # Authentication
    jwt_secret: str = Field(
        default=DEFAULT_JWT_SECRET,
        description="HS256 signing secret for access tokens. Must be overridden outside development."
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    jwt_expire_days: int = Field(
        default=30,
        description="Access token lifetime in days"
    )
    bcrypt_rounds: int = Field(
        default=10,
        description="bcrypt cost factor. Each +1 doubles hashing time."
    )

    # Pagination
    default_page_size: int = Field(
        default=10,
        description="Page size when the request doesn't send limit"
    )
    max_page_size: int = Field(
        default=100,
        description="Upper bound for the limit query parameter"
    )

    # Notifications
    expiring_subscription_days: int = Field(
        default=7,
        description="Default look-ahead window for expiring subscriptions until settings are saved"
    )
    recently_expired_days: int = Field(
        default=7,
        description="Look-back window for the recently expired list"
    )
    notification_sender_name: str = Field(
        default="Super Sheets Team",
        description="Sender name attached to outbound notifications"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def validate_required_fields(self) -> list[str]:
        """
        Report configuration that is unsafe for the current environment.

        Returns a list of problems. This is separate from Pydantic
        validation because what's acceptable depends on the environment.
        """
        problems = []

        if self.is_production:
            if self.jwt_secret == DEFAULT_JWT_SECRET:
                problems.append("JWT_SECRET")
            elif len(self.jwt_secret) < 32:
                problems.append("JWT_SECRET (must be at least 32 characters)")
            if self.database_url.startswith("sqlite"):
                problems.append("DATABASE_URL (SQLite is not supported in production)")
            if self.cors_origins == "*":
                problems.append("CORS_ORIGINS (wildcard not allowed in production)")

        if self.default_page_size < 1 or self.max_page_size < self.default_page_size:
            problems.append("DEFAULT_PAGE_SIZE / MAX_PAGE_SIZE")

        return problems


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
