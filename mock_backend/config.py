"""Mock Backend Configuration"""

import os
from decimal import Decimal
from typing import Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Backend settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_prefix="MOCK_BACKEND_",
        env_file="config/.env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Storefront Mock Backend"
    host: str = "0.0.0.0"
    port: int = 3002
    reload: bool = False

    # Pricing
    tax_rate: Decimal = Decimal("0.075")

    # Session tokens
    guest_session_ttl: int = 7 * 24 * 3600  # seconds
    user_token_ttl: int = 24 * 3600  # seconds
    signing_key_path: Optional[str] = "config/keys/session_signing.pem"
    signing_key: Optional[str] = None  # Can also be inline

    def get_signing_key(self) -> Optional[bytes]:
        """Get the session signing key from inline PEM or file"""
        if self.signing_key:
            return self.signing_key.encode()

        if self.signing_key_path and os.path.exists(self.signing_key_path):
            with open(self.signing_key_path, "rb") as f:
                return f.read()

        return None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
