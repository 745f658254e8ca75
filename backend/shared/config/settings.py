"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Database
    # SQLite works out of the box; production points this at PostgreSQL
    database_url: str = "sqlite:///./dinein.db"
    db_pool_timeout: int = 30  # Wait max N seconds for a pooled connection
    db_busy_timeout_seconds: int = 15  # SQLite: wait for the write lock instead of failing

    # Server
    rest_api_port: int = 8000

    # Comma-separated list of allowed origins (empty uses default localhost list)
    allowed_origins: str = ""

    # Environment
    environment: str = "development"
    debug: bool = True

    # Billing
    tax_rate: Decimal = Decimal("0.06")

    # Table occupancy
    max_pax: int = 20

    # Timeout sweepers
    cart_timeout_minutes: int = 30
    table_timeout_minutes: int = 30
    sweep_interval_seconds: float = 300.0  # 5 minutes between sweeps
    sweepers_enabled: bool = True

    # Menu
    default_image_path: str = "/Images/default-food.jpg"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_production_secrets(self) -> list[str]:
        """
        Validate that the configuration is safe for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if self.database_url.startswith("sqlite"):
                errors.append(
                    "DATABASE_URL must point to a server database in production (SQLite has no row locking)"
                )

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS must be set in production (comma-separated list of allowed domains)"
                )

        if not Decimal("0") <= self.tax_rate < Decimal("1"):
            errors.append("TAX_RATE must be between 0 and 1")

        if self.sweep_interval_seconds <= 0:
            errors.append("SWEEP_INTERVAL_SECONDS must be positive")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()

# Direct access to commonly used settings
DATABASE_URL = settings.database_url
