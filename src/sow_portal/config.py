"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # SOW backend REST API
    API_BASE_URL: str = "http://localhost:3001"
    API_TIMEOUT: float = 30.0
    API_MAX_RETRIES: int = 1  # single automatic retry at the transport layer
    API_RETRY_WAIT: float = 0.5

    # Push notification channel
    WEBSOCKET_ENDPOINT: str = ""
    WS_RECONNECT_DELAY: float = 3.0
    WS_MAX_RECONNECT_ATTEMPTS: int = 5

    # Step Functions execution polling
    EXECUTION_POLL_INTERVAL: float = 3.0

    # Local auth cache (persisted user + authenticated flag only)
    AUTH_STATE_PATH: str = ".sow_portal/auth.json"

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    def cors_origins(self) -> list[str]:
        """Split CORS_ALLOWED_ORIGINS into a list, ignoring blanks."""
        return [o.strip() for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
