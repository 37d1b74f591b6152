"""Application settings loaded from the environment (and an optional .env file)."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class JournalSettings(BaseSettings):
    """Settings for the data reconciler and the position ledger.

    Every field can be overridden with a ``TRADEJOURNAL_``-prefixed
    environment variable, e.g. ``TRADEJOURNAL_REQUEST_TIMEOUT_S=5``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRADEJOURNAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote providers
    request_timeout_s: float = Field(default=10.0, gt=0)
    binance_base_url: str = "https://fapi.binance.com"
    binance_request_cap: int = Field(default=1000, ge=1)
    okx_base_url: str = "https://www.okx.com"
    okx_request_cap: int = Field(default=300, ge=1)

    # Cache
    cache_sufficiency_ratio: float = Field(default=0.9, gt=0, le=1)
    cache_dir: Optional[str] = None

    # Ledger
    default_leverage: int = Field(default=1, ge=1, le=125)

    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> JournalSettings:
    """Return the process-wide settings instance."""
    return JournalSettings()
