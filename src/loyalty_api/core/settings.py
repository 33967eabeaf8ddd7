from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./loyalty.db"
    log_level: str = "INFO"

    # Redemption transaction
    redemption_lock_timeout_seconds: float = 5.0
    redemption_lock_reward: bool = False

    # Identity resolution (development fallback when no user header resolves)
    identity_fallback: Literal["first_user", "none"] = "first_user"

    # Reward catalog paging
    rewards_default_limit: int = 20
    rewards_max_limit: int = 100

    @field_validator("identity_fallback", mode="before")
    @classmethod
    def _normalize_fallback(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower() or "none"
        if value is None:
            return "none"
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
