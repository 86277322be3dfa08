"""Application configuration using pydantic-settings."""

import warnings

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Stripe Sync"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"  # development, staging, production
    log_level: str = "INFO"

    # Database (PostgreSQL). Empty leaves the store unconfigured.
    database_url: str = ""

    # Stripe
    stripe_webhook_signing_secret: str = ""
    stripe_webhook_tolerance: int = 300  # seconds

    # Subscription projection
    subscription_quantity_from_payload: bool = False
    subscription_default_quantity: int = 1

    @model_validator(mode="after")
    def _validate_signing_secret(self) -> "Settings":
        """Reject a missing webhook signing secret in production and warn elsewhere."""
        if not self.stripe_webhook_signing_secret:
            if self.environment == "production":
                raise ValueError(
                    "STRIPE_WEBHOOK_SIGNING_SECRET must be set in production."
                )
            warnings.warn(
                "STRIPE_WEBHOOK_SIGNING_SECRET is not set, every webhook will be rejected.",
                UserWarning,
                stacklevel=1,
            )
        return self

    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses the asyncpg driver."""
        url = self.database_url
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url


settings = Settings()
