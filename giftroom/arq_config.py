"""ARQ (Async Redis Queue) connection settings for the gift room worker."""

from urllib.parse import urlparse

from arq.connections import RedisSettings

from giftroom.config import get_settings


def get_redis_settings() -> RedisSettings:
    """Parse ``redis_url`` from the application settings."""
    settings = get_settings()
    parsed = urlparse(settings.redis_url)

    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or "0"),
        password=parsed.password,
    )
