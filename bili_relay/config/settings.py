"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bili_relay.config.accounts import parse_uids


class Settings(BaseSettings):
    """
    Central configuration for the bili-relay application.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., LOG_LEVEL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Tracked accounts (comma-separated Bilibili uids)
    live_uids: str | None = None
    dynamic_uids: str | None = None

    # Polling and dispatch
    poll_interval_seconds: int = Field(default=10, ge=1)
    queue_capacity: int = Field(default=100, ge=1)

    # HTTP configuration
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_http_retries: int = Field(default=2, ge=0, le=10)
    max_backoff_seconds: float = Field(default=30.0, ge=1.0, le=300.0)
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    )

    # Output channels
    console_output: bool = False
    webhook_url: str | None = None
    webhook_headers: dict[str, str] = Field(default_factory=dict)
    slack_webhook_url: str | None = None
    slack_channel: str | None = None
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None
    output_timeout_seconds: float = Field(default=10.0, gt=0.0)

    # Observability
    metrics_port: int = 8000

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def live_uid_list(self) -> list[int]:
        """Accounts whose live-room status is watched."""
        return parse_uids(self.live_uids)

    @property
    def dynamic_uid_list(self) -> list[int]:
        """Accounts whose feed (dynamics) is watched."""
        return parse_uids(self.dynamic_uids)

    @property
    def webhook_configured(self) -> bool:
        return bool(self.webhook_url)

    @property
    def slack_configured(self) -> bool:
        return bool(self.slack_webhook_url)

    @property
    def telegram_configured(self) -> bool:
        """Check if the Telegram bot output is configured."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
