from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///moneybox.db"
    log_level: str = "INFO"

    max_attempts: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=0.05, ge=0)
    funds_low_threshold: Decimal = Decimal("500")
    pay_in_limit_warning: Decimal = Decimal("500")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="MONEYBOX_",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
