"""Periodic expiration sweep.

Read paths derive "expired" from the clock, so the sweep only has to make
that state durable: release held reservations and, when configured, hand
the unclaimed escrow back to creators. Scheduled by the ARQ worker in
``giftroom.worker`` and triggerable through ``POST /gift-rooms/cleanup``.
"""

from datetime import datetime
from typing import Optional

from giftroom.config import get_settings
from giftroom.datetime_utils import utc_now
from giftroom.errors import GiftRoomError, NothingToRefund
from giftroom.logging import get_logger
from giftroom.models.gift_room import SweepResult
from giftroom.services.refunds import expire_room, request_refund
from giftroom.services.resilience import call_store
from giftroom.store.base import GiftRoomStore

logger = get_logger(__name__)


async def run_expiration_sweep(
    store: GiftRoomStore,
    now: Optional[datetime] = None,
    auto_refund: Optional[bool] = None,
    batch_size: int = 100,
) -> SweepResult:
    """Expire every overdue room; optionally refund each one as well."""
    settings = get_settings()
    now = now or utc_now()
    if auto_refund is None:
        auto_refund = settings.auto_refund_on_expiry

    result = SweepResult()
    rooms = await call_store(store.list_overdue_rooms, now, batch_size)

    for room in rooms:
        try:
            result.expired_reservations += await expire_room(store, room["id"], now=now)
            result.expired_rooms += 1

            if auto_refund:
                refund = await request_refund(store, room["id"], room["creator_id"], now=now)
                result.refunded_rooms += 1
                result.refunded_amount += refund.refund_amount
        except NothingToRefund:
            continue
        except GiftRoomError as exc:
            logger.error(
                "Sweep failed for room %s: %s", room["id"], exc.message,
                extra={"room_id": room["id"]},
            )
            result.errors.append(f"{room['id']}: {exc.message}")

    if rooms:
        logger.info(
            "Expiration sweep: %d room(s), %d reservation(s) expired, ₦%d refunded",
            result.expired_rooms, result.expired_reservations, result.refunded_amount,
        )
    return result

