"""Bounded, retried calls into the store."""

import asyncio
from typing import Callable, TypeVar

from giftroom.config import get_settings
from giftroom.errors import NetworkError
from giftroom.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def call_store(fn: Callable[..., T], *args, **kwargs) -> T:
    """
    Run a blocking store call off the event loop.

    Each attempt is capped at ``store_timeout_seconds``. Timeouts and
    ``NetworkError`` are retried with exponential backoff up to
    ``store_retry_attempts``; any other error propagates immediately.
    Only use this for calls that are safe to repeat: every store primitive
    is keyed by a caller-generated id or an idempotency key.
    """
    settings = get_settings()
    attempts = max(1, settings.store_retry_attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs),
                timeout=settings.store_timeout_seconds,
            )
        except (asyncio.TimeoutError, NetworkError) as exc:
            if attempt == attempts:
                logger.error(
                    "Store call %s failed after %d attempts: %s",
                    fn.__name__, attempts, exc or "timeout",
                )
                raise NetworkError() from exc

            delay = settings.store_retry_backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                "Store call %s failed (attempt %d/%d), retrying in %.2fs: %s",
                fn.__name__, attempt, attempts, delay, exc or "timeout",
            )
            await asyncio.sleep(delay)
