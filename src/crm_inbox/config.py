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
    """Inbox settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Suggestion rules
    INBOX_UPSELL_AFTER_DAYS: int = 30  # Won deal untouched longer than this
    INBOX_STALLED_AFTER_DAYS: int = 7  # Open deal untouched longer than this

    # Effects
    INBOX_SNOOZE_DAYS: int = 1
    INBOX_UPSELL_VALUE_MULTIPLIER: float = 1.2
    INBOX_UPSELL_PROBABILITY: int = 30

    # Focus queue banding
    INBOX_BAND_WIDTH: int = 100

    # External store calls
    INBOX_DISPATCH_MAX_ATTEMPTS: int = 3
    INBOX_DISPATCH_RETRY_WAIT_SECONDS: float = 0.5

    # LLM Providers (daily briefing)
    ANTHROPIC_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    LLM_TIMEOUT: int = 30
    LLM_MAX_RETRIES: int = 3

    def has_llm_provider(self) -> bool:
        """Return True if at least one LLM API key is configured."""
        return bool(self.ANTHROPIC_API_KEY or self.OPENAI_API_KEY)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
