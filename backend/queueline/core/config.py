"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. This ensures:
1. Type validation at startup
2. Centralized configuration
3. Documentation of available settings
4. Proper defaults
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # ==========================================================================
    # Realtime store (queue partitions, stats, settings/config)
    # ==========================================================================
    store_backend: Literal["memory", "firebase"] = "memory"
    firebase_credentials_path: Optional[str] = None
    firebase_database_url: Optional[str] = None
    store_timeout_seconds: float = 10.0

    # Database - saved entry lists per client
    database_url: str = "sqlite:///./data/queueline.db"

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # one service day
    staff_password: str = "admin123"

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # ==========================================================================
    # Queue behaviour
    # ==========================================================================
    default_average_serving_minutes: int = 5
    notify_threshold: int = 2  # "up soon" notice when this many or fewer are ahead
    stats_timezone: str = "UTC"
    archive_retention_days: int = 30
    archive_cleanup_interval_seconds: int = 3600
    history_default_limit: int = 20

    # Client cookie used to key saved entry lists
    client_cookie_name: str = "client_id"
    client_cookie_max_age: int = 60 * 60 * 24 * 30  # 30 days

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True
    join_rate_limit: str = "10/minute"
    search_rate_limit: str = "30/minute"

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v == "change-me-in-production":
            import warnings
            warnings.warn(
                "Using default SECRET_KEY is insecure! Set SECRET_KEY environment variable.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production safety."""
        if not self.debug:
            if self.secret_key == "change-me-in-production" or len(self.secret_key) < 32:
                raise ValueError(
                    "FATAL: SECRET_KEY must be set to at least 32 characters in production mode."
                )
            if self.staff_password == "admin123":
                raise ValueError(
                    "FATAL: Cannot start in production mode with the default STAFF_PASSWORD."
                )
        if self.store_backend == "firebase" and not self.firebase_database_url:
            raise ValueError("FIREBASE_DATABASE_URL is required when STORE_BACKEND=firebase")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
