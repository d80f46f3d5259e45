"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str = "medium"
    openai_store: bool = False
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    history_limit: int = 50
    free_tier_credits: int = 3
    pro_tier_credits: int = 999999
    report_media_types: str = "image/*,application/pdf"
    food_media_types: str = "image/*"
    paypal_link: str = "https://paypal.me/yourprofile"
    upi_id: str = "yourname@paytm"
    usd_to_inr_rate: float = 83.5
    pro_price_usd: float = 19.99
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def uses_supabase(self) -> bool:
        """Return True when remote persistence is configured."""
        return bool(self.supabase_url and self.supabase_service_key)


def parse_media_patterns(raw: str | None) -> tuple[str, ...]:
    """Parse a comma-separated list of media type patterns."""
    if raw is None:
        return ()
    patterns: list[str] = []
    for chunk in raw.split(","):
        value = chunk.strip().lower()
        if value and value not in patterns:
            patterns.append(value)
    return tuple(patterns)
