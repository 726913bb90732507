from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./rewards.db"
    redis_url: str = "redis://localhost:6379/0"

    # Internal API security
    internal_api_key: str = ""

    # Live UI sync events
    sync_events_enabled: bool = False
    sync_events_channel_prefix: str = "rewards:sync"

    # Loyalty card listing cache
    card_cache_backend: Literal["memory", "redis"] = "memory"
    card_cache_ttl_seconds: int = 300
    card_cache_key_prefix: str = "loyalty_cards"

    # Card issuance
    card_number_prefix: str = "GC"
    card_number_max_attempts: int = Field(default=3, ge=1)
    default_card_tier: str = "STANDARD"

    @field_validator("card_number_prefix", "default_card_tier", mode="before")
    @classmethod
    def _normalize_upper(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip().upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
