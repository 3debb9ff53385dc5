"""Service configuration settings."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service configuration
    service_name: str = "practice-lifecycle-service"
    environment: str = "development"
    port: int = 8003

    # Authoritative store: inmemory | sql | http
    storage_type: str = "inmemory"
    database_url: str = "sqlite+aiosqlite:///./practice.db"
    practice_api_url: str = "http://practice-api:8000"
    http_timeout: float = 30.0

    # CORS configuration
    cors_origins: str = "*"

    # Logging
    log_level: str = "INFO"

    # Confirming a lead as CLIENT requires an assignee from this roster
    closer_roster: str = "Kejdi,Albert"

    # Dismissal cache
    dismissal_ttl_days: int = 7
    dismissal_store_path: str = "./.dismissed-alerts.json"

    # Alert engine
    alert_poll_interval_seconds: float = 60.0
    alert_timezone: str = "UTC"
    deadline_warning_hours: float = 48.0
    case_waiting_tiers: str = "48:warn,72:critical,96:critical"
    case_respond_hours: float = 12.0
    customer_waiting_tiers: str = "48:warn,72:critical"
    customer_intake_follow_hours: float = 24.0
    customer_respond_hours: float = 24.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def closer_roster_list(self) -> List[str]:
        """Parse the closer roster from comma-separated string."""
        return [name.strip() for name in self.closer_roster.split(",") if name.strip()]


# Global settings instance
settings = Settings()
