"""
Configuration management for the storefront backend.

Loads settings from .env via pydantic-settings.

Notes:
    - merchant_config() builds the immutable merchant identity once at startup;
      the payment-code codec only ever receives that value.
    - validate_production_settings() enforces strict CORS and a real
      merchant key in production.
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/storefront.db"

    # ── Merchant (PIX) ──────────────────────────────────────────────
    merchant_key: str = ""
    merchant_name: str = ""
    merchant_city: str = ""
    merchant_description: str = ""  # optional sub-field of merchant account info

    # ── Orders ──────────────────────────────────────────────────────
    default_order_status: str = "pending"

    # ── Relay channel (Telegram) ────────────────────────────────────
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    relay_timeout_seconds: float = 10.0

    # ── Push channel (Web Push / VAPID) ─────────────────────────────
    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_subject: str = "mailto:support@example.com"
    push_ttl_seconds: int = 3600
    push_timeout_seconds: float = 10.0

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    executor_max_workers: int = 4

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def relay_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def push_configured(self) -> bool:
        return bool(self.vapid_public_key and self.vapid_private_key)

    def merchant_config(self):
        """
        Build the immutable merchant identity handed to the payment-code codec.

        Called once during app startup; nothing downstream reads these
        fields from settings directly.
        """
        from services.pix_codec import MerchantConfig

        return MerchantConfig(
            key=self.merchant_key,
            name=self.merchant_name,
            city=self.merchant_city,
            description=self.merchant_description or None,
        )

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.merchant_key.strip():
                raise ValueError(
                    "MERCHANT_KEY must be set in production. "
                    "Without it no order can carry a payment code."
                )
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if not self.merchant_key.strip():
                warnings.append("MERCHANT_KEY empty (orders will have no payment code)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")

        if not self.relay_configured:
            logger.warning("TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID not set — relay notifications disabled")
        if not self.push_configured:
            logger.warning("VAPID_PUBLIC_KEY/VAPID_PRIVATE_KEY not set — web push disabled")


# Global settings instance
settings = Settings()
