"""Environment-driven configuration for the rental ledger.

Every setting the service reads lives on ``AppSettings`` so nobody has to hunt
for ``os.getenv`` calls. Values come from the process environment first and
then from ``.env`` / ``.env.local`` files when present.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Rental Ledger"
    TZ: str = "Asia/Ho_Chi_Minh"
    LOG_LEVEL: str = "INFO"

    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2] / "data")
    DB_URL: str = Field(
        default="sqlite:///data/ledger.db",
        validation_alias=AliasChoices("DB_URL", "DATABASE_URL"),
    )

    # ``sql`` talks to DB_URL, ``memory`` keeps everything in-process,
    # ``rest`` forwards storage calls to another ledger instance.
    REPOSITORY_BACKEND: Literal["sql", "memory", "rest"] = "sql"
    REMOTE_LEDGER_URL: str = "http://localhost:8089"
    REMOTE_LEDGER_API_KEY: str = ""
    REMOTE_TIMEOUT_SECONDS: float = 10.0

    # X-API-Key must match this (if set)
    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))

    MUTATION_RETRIES: int = Field(default=3, ge=1)
    FORECAST_DEFAULT_DAYS: int = Field(default=14, ge=1, le=366)
    LOW_STOCK_THRESHOLD: int = Field(default=5, ge=0)

    HOST: str = "0.0.0.0"
    PORT: int = 8089

    @field_validator("REPOSITORY_BACKEND", mode="before")
    @classmethod
    def normalize_backend(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("REMOTE_LEDGER_URL")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def is_sqlite(self) -> bool:
        return self.DB_URL.startswith("sqlite")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    if settings.REPOSITORY_BACKEND == "sql" and settings.is_sqlite:
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings
