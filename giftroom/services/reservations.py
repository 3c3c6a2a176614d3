"""Reservation manager: taking capacity slots in gift rooms."""

import uuid
from datetime import datetime
from typing import Optional

from giftroom.datetime_utils import utc_now
from giftroom.errors import (
    RoomExpired,
    RoomFull,
    RoomNotFound,
    RoomUnavailable,
    ValidationError,
)
from giftroom.logging import get_logger
from giftroom.models.gift_room import ActivityType, GiftRoom, GiftRoomStatus, JoinResult
from giftroom.models.reservation import (
    ContactInfo,
    DeviceFingerprint,
    HolderType,
    Reservation,
)
from giftroom.models.user import UserProfile
from giftroom.services.activity import log_activity
from giftroom.services.device_identity import is_fallback_identifier, resolve_device_hash
from giftroom.services.resilience import call_store
from giftroom.store.base import GiftRoomStore

logger = get_logger(__name__)


async def join_room(
    store: GiftRoomStore,
    token: str,
    device_fingerprint: Optional[DeviceFingerprint],
    user: Optional[UserProfile] = None,
    contact_info: Optional[ContactInfo] = None,
    *,
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> JoinResult:
    """
    Reserve a slot in the room behind ``token``.

    The holder is the authenticated account when there is one, otherwise
    the device hash. Joining twice returns the first reservation
    (``created=False``) so a client can safely resend after a dropped
    connection. The capacity check and increment happen inside one store
    primitive; the checks here only produce friendlier errors early.
    """
    now = now or utc_now()

    row = await call_store(store.get_room_by_token, token)
    if not row:
        raise RoomNotFound()
    room = GiftRoom(**row)

    if user and user.id == room.creator_id:
        raise ValidationError("You cannot join your own gift room")

    device_hash = resolve_device_hash(device_fingerprint, user_agent)
    if is_fallback_identifier(device_hash):
        logger.warning(
            "Join on room %s without stable device signals; duplicate detection is weakened",
            room.id,
        )

    if user:
        holder_ref, holder_type = user.id, HolderType.ACCOUNT
    else:
        holder_ref, holder_type = device_hash, HolderType.DEVICE

    existing = await call_store(
        store.find_reservation, room.id, holder_ref=holder_ref, device_hash=device_hash
    )
    if not existing:
        status = room.effective_status(now)
        if status == GiftRoomStatus.CANCELLED:
            raise RoomUnavailable()
        if status == GiftRoomStatus.EXPIRED:
            raise RoomExpired()
        if status == GiftRoomStatus.FULL:
            raise RoomFull()

    reservation_data = {
        "id": str(uuid.uuid4()),
        "room_id": room.id,
        "holder_ref": holder_ref,
        "holder_type": holder_type.value,
        "device_fingerprint_hash": device_hash,
        "contact_info": contact_info.model_dump(mode="json") if contact_info else None,
    }
    reservation_row, room_row, created = await call_store(
        store.reserve_slot, reservation_data, now
    )
    reservation = Reservation(**reservation_row)
    room = GiftRoom(**room_row).as_of(now)

    if created:
        logger.info(
            "Reservation %s joined room %s (%d/%d)",
            reservation.id, room.id, room.joined_count, room.capacity,
            extra={"room_id": room.id, "reservation_id": reservation.id},
        )
        await log_activity(
            store,
            ActivityType.JOINED,
            room.id,
            user_id=user.id if user else None,
            details={
                "reservation_id": reservation.id,
                "device_fingerprint": device_hash,
                "contact_info": reservation_data["contact_info"],
            },
            ip_address=ip_address,
            user_agent=user_agent,
        )
    else:
        logger.info("Repeated join on room %s returned reservation %s", room.id, reservation.id)

    return JoinResult(reservation=reservation, room=room, created=created)
