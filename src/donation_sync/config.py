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

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Redis (work queue, dead letters, outcome stream, stores)
    REDIS_URL: str = "redis://localhost:6379/0"
    KEY_PREFIX: str = "donation_sync"

    # Work queue
    QUEUE_NAME: str = "salesforce_queue"
    CONSUMER_GROUP: str = "exporters"
    CONSUMER_NAME: str = "worker-1"
    QUEUE_MAX_RETRIES: int = 3
    QUEUE_RETRY_DELAYS: list[int] = [1, 4, 16]
    QUEUE_RECLAIM_IDLE_MS: int = 60000

    # Salesforce
    SALESFORCE_INSTANCE_URL: str = ""
    SALESFORCE_CLIENT_ID: str = ""
    SALESFORCE_CLIENT_SECRET: str = ""
    SALESFORCE_ACCESS_TOKEN: str = ""  # Static token; skips the OAuth exchange when set
    SALESFORCE_DATA_PATH: str = "/services/apexrest/gcis/v1/data"
    SALESFORCE_TIMEOUT: float = 30.0
    SALESFORCE_GIFT_CAMPAIGN: str = ""

    # Mapping
    CURRENCY_CODE: str = "SEK"
    PHONE_COUNTRY_CODE: str = "46"
    EXPORT_MISSING_BANK_INTEREST: bool = True
    CONTINUATION_URL_TEMPLATE: str = ""  # e.g. https://example.org/sign/{submission_id}/{uuid}


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
