"""Application configuration using pydantic-settings."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=("../.env", ".env"),  # Load root .env first, then backend/.env (overrides)
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storefront REST API
    api_url: str = "http://localhost:5000/api"
    api_token: str = ""
    request_timeout: float = 5.0
    request_max_attempts: int = Field(default=2, ge=1)

    # Mercure hub (order sync channel)
    mercure_url: str = "http://localhost:3000/.well-known/mercure"
    mercure_subscriber_jwt_key: str = "change-me-subscriber-secret-key"
    mercure_publisher_jwt_key: str = "change-me-publisher-secret-key"

    # Sync channel reconnect policy (fixed delay, not exponential)
    sync_reconnect_delay: float = 1.0
    sync_warn_after_attempts: int = Field(default=2, ge=1)
    sync_max_reconnect_attempts: int = Field(default=5, ge=1)

    # Reconciler
    strict_status_transitions: bool = False

    # Application
    log_level: str = "info"
    log_format: Literal["console", "json"] = "console"


settings = Settings()
