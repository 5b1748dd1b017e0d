"""Storefront Core Configuration"""

from decimal import Decimal
from typing import Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file="config/.env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote API
    api_base_url: str = "http://localhost:3002"
    request_timeout: float = 30.0

    # Pricing
    tax_rate: Decimal = Decimal("0.075")
    total_mismatch_tolerance: Decimal = Decimal("0.01")

    # Checkout
    reservation_duration: int = 1800  # seconds

    # Local persistence (None keeps everything in memory)
    storage_path: Optional[str] = None

    debug: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
