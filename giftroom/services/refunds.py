"""Expiration and refund engine."""

from datetime import datetime
from typing import Optional

from giftroom.datetime_utils import utc_now
from giftroom.errors import RoomNotFound, Unauthorized
from giftroom.logging import get_logger
from giftroom.models.gift_room import (
    ActivityType,
    GiftRoom,
    GiftRoomStatus,
    RefundInfo,
    RefundResult,
)
from giftroom.services.activity import log_activity
from giftroom.services.resilience import call_store
from giftroom.store.base import GiftRoomStore

logger = get_logger(__name__)


async def expire_room(
    store: GiftRoomStore, room_id: str, now: Optional[datetime] = None
) -> int:
    """
    Finalize an overdue room: stored status becomes expired and every held
    reservation expires with it. Safe to repeat.

    Returns the number of reservations expired by this call.
    """
    now = now or utc_now()
    before = await call_store(store.get_room, room_id)
    if not before:
        raise RoomNotFound()

    row, expired = await call_store(store.expire_room, room_id, now)
    room = GiftRoom(**row)

    if before["status"] != room.status.value:
        logger.info("Room %s expired with %d held reservation(s) released", room_id, expired)
        await log_activity(
            store,
            ActivityType.EXPIRED,
            room_id,
            details={"expired_reservations": expired},
        )
    return expired


async def _get_owned_room(store: GiftRoomStore, room_id: str, creator_id: str) -> GiftRoom:
    row = await call_store(store.get_room, room_id)
    if not row:
        raise RoomNotFound()
    room = GiftRoom(**row)
    if room.creator_id != creator_id:
        raise Unauthorized("Unauthorized: Only the original creator can manage refunds for this gift room")
    return room


async def get_refund_info(
    store: GiftRoomStore, room_id: str, creator_id: str, now: Optional[datetime] = None
) -> RefundInfo:
    """Refund preview for the room's creator."""
    now = now or utc_now()
    room = await _get_owned_room(store, room_id, creator_id)
    status = room.effective_status(now)
    is_expired = now >= room.expires_at
    refund_amount = room.unclaimed_count * room.amount_per_gift

    return RefundInfo(
        room_id=room.id,
        status=status,
        total_capacity=room.capacity,
        claimed_count=room.claimed_count,
        unclaimed_count=room.unclaimed_count,
        amount_per_gift=room.amount_per_gift,
        potential_refund_amount=refund_amount,
        can_refund=is_expired and status != GiftRoomStatus.CANCELLED and refund_amount > 0,
        is_expired=is_expired,
        created_at=room.created_at,
        expires_at=room.expires_at,
    )


async def request_refund(
    store: GiftRoomStore,
    room_id: str,
    creator_id: str,
    *,
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> RefundResult:
    """
    Return the unclaimed escrow of an expired room to its creator.

    Eligibility is re-checked inside the store primitive under the room
    lock, so two concurrent requests produce one refund and one
    AlreadyRefunded.
    """
    now = now or utc_now()
    await _get_owned_room(store, room_id, creator_id)

    row, refund_amount, unclaimed = await call_store(
        store.refund_room, room_id, creator_id, now
    )

    logger.info(
        "Refunded ₦%d for %d unclaimed gift(s) in room %s to %s",
        refund_amount, unclaimed, room_id, creator_id,
        extra={"room_id": room_id, "user_id": creator_id},
    )
    await log_activity(
        store,
        ActivityType.REFUNDED,
        room_id,
        user_id=creator_id,
        details={"amount": refund_amount, "unclaimed_count": unclaimed},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return RefundResult(
        room_id=row["id"],
        refund_amount=refund_amount,
        unclaimed_count=unclaimed,
        message=f"Successfully refunded ₦{refund_amount:,} for {unclaimed} unclaimed gifts",
    )
