"""ARQ worker for the gift room expiration sweep.

Run with: arq giftroom.worker.WorkerSettings

One worker per deployment; API instances never sweep on their own.
``POST /gift-rooms/cleanup`` remains for external cron triggers.
"""

from arq import cron

from giftroom.arq_config import get_redis_settings
from giftroom.config import get_settings
from giftroom.database import create_store
from giftroom.logging import configure_logging, get_logger
from giftroom.services.sweeper import run_expiration_sweep

logger = get_logger(__name__)


def sweep_minutes() -> set:
    """Minutes of the hour at which the sweep runs."""
    every = max(1, min(60, get_settings().sweep_every_minutes))
    return set(range(0, 60, every))


async def startup(ctx: dict):
    configure_logging()
    ctx["store"] = create_store()
    logger.info("Gift room worker started")


async def task_expire_gift_rooms(ctx: dict) -> dict:
    """Expire overdue rooms and, when configured, refund them."""
    logger.info("Running: expire_gift_rooms")
    result = await run_expiration_sweep(ctx["store"])
    return result.model_dump()


class WorkerSettings:
    redis_settings = get_redis_settings()

    on_startup = startup

    functions = [
        task_expire_gift_rooms,
    ]

    cron_jobs = [
        cron(
            task_expire_gift_rooms,
            minute=sweep_minutes(),
            run_at_startup=True,
        ),
    ]
