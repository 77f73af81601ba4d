"""Configuration management for siteops."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database Configuration
    sqlite_db_path: str = Field(default="./data/siteops.db", description="Path to the SQLite database file")

    # Runtime Environment
    environment: str = Field(default="development", description="Deployment environment name")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Access Tokens
    secret_key: str = Field(default="dev-secret-change-me", description="Secret used to sign worker access tokens")
    access_token_max_age_seconds: int = Field(default=86400, description="Lifetime of a worker access token")

    # Location Gating
    require_checkin: bool = Field(
        default=True, description="Require an active check-in at the task's site to claim, upload, or complete"
    )
    enforce_geofence: bool | None = Field(
        default=None,
        description="Enforce geofence checks (unset means enforce only in production)",
    )
    default_geofence_radius_m: float = Field(
        default=100.0, description="Geofence radius used when a site has coordinates but no radius"
    )
    checkin_session_hours: int = Field(default=12, description="Hours before a check-in session expires")

    # Scheduler
    enable_scheduler: bool = Field(default=True, description="Start background jobs with the application")

    @property
    def is_production(self) -> bool:
        """Return True when running in the production environment."""
        return self.environment.lower() == "production"

    @property
    def geofence_enforced(self) -> bool:
        """Resolve the geofence toggle, falling back to the environment default."""
        if self.enforce_geofence is None:
            return self.is_production
        return self.enforce_geofence


# Application Constants
class Constants:
    """Application-wide constants."""

    # Geometry
    EARTH_RADIUS_METERS: float = 6_371_000.0

    # Recurrence
    MAX_RECURRENCE_OCCURRENCES: int = 366

    # Photos
    DEFAULT_PHOTO_COUNT: int = 1

    # Scheduler Configuration
    OVERDUE_SWEEP_CRON: str = "*/5 * * * *"  # every 5 minutes
    ENSURE_TODAY_CRON: str = "5 0 * * *"  # 00:05 daily

    # Upper bound for unpaginated listings
    LIST_LIMIT: int = 1000


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
