"""Configuration settings for the Gift Room backend."""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    environment: str = "local"
    log_level: str = "INFO"

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_key: str = ""

    # "supabase" in deployments, "memory" for local runs and tests
    store_backend: str = "supabase"

    # AI
    gemini_api_key: str = ""
    ai_timeout_seconds: float = 10.0

    # HTTP
    share_base_url: str = "http://localhost:3000"
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Business Logic
    min_gift_amount: int = 50
    max_gift_amount: int = 50000
    max_message_length: int = 500
    default_expiration_hours: int = 48
    allowed_expiration_hours: List[int] = [24, 48, 72, 168]
    max_rooms_per_hour: int = 10
    high_value_threshold: int = 5000
    referral_bonus_amount: int = 100

    # Store calls
    store_timeout_seconds: float = 10.0
    store_retry_attempts: int = 3
    store_retry_backoff_seconds: float = 0.2

    # Expiration sweep (ARQ worker)
    redis_url: str = "redis://localhost:6379/0"
    sweep_every_minutes: int = 5
    auto_refund_on_expiry: bool = False
    cron_secret: str = ""

    # Rate limiting
    rate_limit_enabled: bool = True
    join_rate_limit: str = "30/minute"
    rate_limit_storage_uri: str = "memory://"
    # Peers allowed to set X-Forwarded-For
    trusted_proxies: List[str] = []

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
