from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./rental_engine.db"
    db_echo: bool = False

    # Logging
    log_level: str = "INFO"

    # Notifications (rental confirmed / return reminder)
    notifications_enabled: bool = False  # Safety: disabled by default
    notification_webhook_url: Optional[str] = None
    notification_timeout_seconds: float = 10.0
    reminder_dedupe_hours: int = 24

    # Reservation queries
    upcoming_returns_days: int = 7
    maintenance_lookahead_days: int = 7

    # Paged listings
    default_page_size: int = 25
    max_page_size: int = 100

    # Auth (structure only)
    secret_key: str = "change-me-in-production"

    # Flask environment
    flask_env: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    def is_dev(self) -> bool:
        """True when running in development mode."""
        return (self.flask_env or "").strip().lower() == "development"

    def notifications_configured(self) -> bool:
        return bool(self.notifications_enabled and self.notification_webhook_url)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Optional[str]) -> str:
        raw = (value or "INFO").strip().upper()
        return raw or "INFO"

    @field_validator("notification_webhook_url", mode="before")
    @classmethod
    def blank_url_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        stripped = str(value).strip()
        return stripped or None


settings = Settings()
