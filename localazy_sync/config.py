"""
Application configuration.

Loads settings from environment variables with sensible defaults.
Per-project sync settings (languages, enabled fields, tokens) live in
Directus and are read per invocation; see ``core.models.Configuration``.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # Webhook API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8055

    # ==========================================================================
    # Directus
    # ==========================================================================

    directus_url: str = "http://localhost:8055"
    directus_token: str = ""
    directus_timeout: float = 30.0
    directus_max_retries: int = 3

    # ==========================================================================
    # Localazy
    # ==========================================================================

    localazy_url: str = "https://api.localazy.com"
    localazy_token: str = ""  # Overrides the token stored in Directus
    localazy_timeout: float = 60.0

    # Hard API caps enforced by the request throttler
    localazy_max_requests_per_second: int = 10
    localazy_max_requests_per_minute: int = 100
    localazy_throttle_interval: float = 0.05

    # ==========================================================================
    # Batching
    # ==========================================================================

    # Pacing between queued jobs, in seconds
    export_delay_between: float = 0.15
    import_delay_between: float = 0.15
    deprecation_delay_between: float = 0.1
    collections_delay_between: float = 0.05

    # Value entries per uploaded chunk
    export_chunk_size: int = 1000

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def use_directus_rest(self) -> bool:
        """Whether a Directus instance is configured for the REST client."""
        return bool(self.directus_url and self.directus_token)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO, including auth-bearing URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)
