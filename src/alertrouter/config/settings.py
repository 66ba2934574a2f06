"""
Application settings using Pydantic.

Provides environment-based configuration loading with ALERTROUTER_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ALERTROUTER_",
    )

    # Routing configuration (Alertmanager-style YAML)
    config_file: str = "alertrouter.yml"

    # Firing alerts without endsAt resolve after this long without an update.
    # A `global.resolve_timeout` in the routing config takes precedence.
    resolve_timeout_seconds: float = 300.0

    # Upper bound on how long the dispatch loop sleeps between evaluations
    tick_interval_seconds: float = 1.0

    # Alerts lacking any of these labels are rejected at ingestion
    required_labels: list[str] = ["alertname"]

    # API
    api_prefix: str = "/api/v2"
    cors_origins: list[str] = []

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Notification transport (logs jobs when no webhook is configured)
    webhook_url: str | None = None
    webhook_timeout: float = 10.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
