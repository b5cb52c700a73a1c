from functools import lru_cache
from typing import List, Literal

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = Field(default="Manager Schedule Service")
    cors_origins: List[AnyHttpUrl] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:8080",
        ]
    )
    supabase_url: AnyHttpUrl | None = Field(
        default=None
    )
    supabase_key: str | None = Field(
        default=None
    )
    supabase_timeout: float = Field(
        default=10.0
    )
    use_mock_data: bool = Field(
        default=True
    )
    notification_webhook_url: AnyHttpUrl | None = Field(
        default=None
    )
    notification_token: str | None = Field(
        default=None
    )
    notifications_enabled: bool = Field(
        default=True
    )
    notification_timeout: float = Field(
        default=5.0
    )
    min_appointment_minutes: int = Field(
        default=15, ge=1
    )
    # The salon variant currently ships with the waitlist switched off.
    waitlist_source: Literal["disabled", "store"] = Field(
        default="disabled"
    )

    model_config = SettingsConfigDict(env_prefix="SCHEDULE_", case_sensitive=False)

    @field_validator("cors_origins", mode="before")
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
