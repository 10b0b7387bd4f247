"""Application settings, read from the environment and an optional .env file."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = "sqlite:///./stocky.db"
    database_echo: bool = False

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// URLs; we talk to it through psycopg 3."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    # Rewards
    fee_rate: Decimal = Decimal("0.01")
    auto_provision_users: bool = True
    issue_timeout_seconds: float = 10.0

    # Prices
    price_source: Literal["random", "store"] = "random"
    price_symbols: list[str] = ["RELIANCE", "TCS", "INFY", "HDFCBANK"]
    price_feed_enabled: bool = True
    price_update_interval_seconds: int = 3600

    # Valuation
    history_window_days: int = 30

    # API
    cors_origins: list[str] = ["*"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
