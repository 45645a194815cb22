"""
Application settings.

Values come from environment variables (or a local .env file) and are read
once per process through get_settings().
"""

import logging
from functools import lru_cache
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "pos"
    database_timeout_ms: int = 5000

    # Billing
    invoice_sequence_start: int = 1001
    bill_history_limit: int = Field(50, ge=1)

    # Analytics
    analytics_strategy: str = "native"  # "native" (MongoDB pipelines) or "memory"
    analytics_window_days: int = 7
    analytics_top_n: int = 5
    analytics_timezone: str = "UTC"

    # Server
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    port: int = 8000

    @field_validator("analytics_strategy")
    @classmethod
    def validate_strategy(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("native", "memory"):
            raise ValueError("analytics_strategy must be 'native' or 'memory'")
        return v

    @field_validator("analytics_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        v = v.strip()
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone '{v}'") from e
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.strip().upper()


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
