"""Gift room creation and read-side queries."""

import secrets
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from giftroom.config import get_settings
from giftroom.datetime_utils import hours_until, utc_now
from giftroom.errors import RateLimited, RoomNotFound, ValidationError
from giftroom.logging import get_logger
from giftroom.models.claim import GiftClaim, GiftHistory, ReceivedGift
from giftroom.models.gift_room import (
    CAPACITY_LIMITS,
    TYPE_LABELS,
    ActivityType,
    CreatedRoom,
    GiftRoom,
    GiftRoomStatus,
    GiftRoomType,
    RoomDetails,
)
from giftroom.models.reservation import Reservation, ReservationCheck
from giftroom.models.user import CreatorInfo, UserProfile
from giftroom.services.activity import log_activity
from giftroom.services.resilience import call_store
from giftroom.store.base import GiftRoomStore

logger = get_logger(__name__)


def generate_room_token() -> str:
    """Unguessable share token; never derived from the room id."""
    return secrets.token_urlsafe(16)


def build_share_url(token: str) -> str:
    """Public claim link for a room."""
    return f"{get_settings().share_base_url.rstrip('/')}/gift/{token}"


def validate_room_request(
    room_type: GiftRoomType,
    capacity: int,
    amount_per_gift: int,
    message: Optional[str],
    expiration_hours: Optional[int],
) -> int:
    """
    Check a creation request against the room rules.

    Returns the expiration window in hours.
    """
    settings = get_settings()

    min_capacity, max_capacity = CAPACITY_LIMITS[room_type]
    if not min_capacity <= capacity <= max_capacity:
        raise ValidationError(
            f"Invalid capacity for {room_type.value} gift. "
            f"Must be between {min_capacity} and {max_capacity}"
        )

    if not settings.min_gift_amount <= amount_per_gift <= settings.max_gift_amount:
        raise ValidationError(
            f"Gift amount must be between ₦{settings.min_gift_amount:,} "
            f"and ₦{settings.max_gift_amount:,}"
        )

    if message and len(message) > settings.max_message_length:
        raise ValidationError(
            f"Message cannot exceed {settings.max_message_length} characters"
        )

    hours = expiration_hours or settings.default_expiration_hours
    if hours not in settings.allowed_expiration_hours:
        allowed = ", ".join(str(h) for h in settings.allowed_expiration_hours)
        raise ValidationError(f"Expiration hours must be one of: {allowed}")

    return hours


async def create_room(
    store: GiftRoomStore,
    creator_id: str,
    room_type: GiftRoomType,
    capacity: int,
    amount_per_gift: int,
    message: Optional[str] = None,
    expiration_hours: Optional[int] = None,
    *,
    room_id: Optional[str] = None,
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> CreatedRoom:
    """
    Create a gift room and escrow its full value from the creator.

    The whole ``capacity x amount_per_gift`` is debited up front; only the
    unclaimed remainder can come back through a refund.
    """
    settings = get_settings()
    now = now or utc_now()
    hours = validate_room_request(
        room_type, capacity, amount_per_gift, message, expiration_hours
    )

    recent = await call_store(
        store.count_rooms_created_since, creator_id, now - timedelta(hours=1)
    )
    if recent >= settings.max_rooms_per_hour:
        raise RateLimited("Rate limit exceeded. Please wait before creating more gift rooms.")

    total_amount = capacity * amount_per_gift
    if total_amount > settings.high_value_threshold:
        logger.info(
            "High-value gift room creation attempt: ₦%s by user %s",
            total_amount, creator_id,
        )

    room_data = {
        "id": room_id or str(uuid.uuid4()),
        "token": generate_room_token(),
        "creator_id": creator_id,
        "type": room_type.value,
        "capacity": capacity,
        "amount_per_gift": amount_per_gift,
        "total_amount": total_amount,
        "message": message or None,
        "expires_at": now + timedelta(hours=hours),
    }

    row, created = await call_store(store.create_room, room_data, now)
    room = GiftRoom(**row)

    if created:
        logger.info(
            "Created %s gift room %s: %d x ₦%d by %s",
            room.type.value, room.id, room.capacity, room.amount_per_gift, creator_id,
            extra={"room_id": room.id, "user_id": creator_id},
        )
        await log_activity(
            store,
            ActivityType.CREATED,
            room.id,
            user_id=creator_id,
            details={"capacity": capacity, "amount": amount_per_gift, "total": total_amount},
            ip_address=ip_address,
            user_agent=user_agent,
        )

    return CreatedRoom(
        room=room,
        token=room.token,
        share_url=build_share_url(room.token),
        created=created,
    )


async def _get_room_by_token(store: GiftRoomStore, token: str) -> GiftRoom:
    row = await call_store(store.get_room_by_token, token)
    if not row:
        raise RoomNotFound()
    return GiftRoom(**row)


async def get_room_details(
    store: GiftRoomStore,
    token: str,
    device_hash: Optional[str] = None,
    user: Optional[UserProfile] = None,
    now: Optional[datetime] = None,
) -> RoomDetails:
    """Room, creator info and the caller's reservation. No side effects."""
    now = now or utc_now()
    room = (await _get_room_by_token(store, token)).as_of(now)

    creator = await call_store(store.get_profile, room.creator_id) or {}

    reservation_row = None
    if user or device_hash:
        reservation_row = await call_store(
            store.find_reservation,
            room.id,
            holder_ref=user.id if user else None,
            device_hash=device_hash,
        )
    reservation = Reservation(**reservation_row) if reservation_row else None

    can_join = (
        room.status == GiftRoomStatus.ACTIVE
        and room.spots_remaining > 0
        and reservation is None
        and not (user and user.id == room.creator_id)
    )

    return RoomDetails(
        room=room,
        creator=CreatorInfo(
            full_name=creator.get("full_name"),
            referral_code=creator.get("referral_code"),
        ),
        user_reservation=reservation,
        can_join=can_join,
        spots_remaining=room.spots_remaining,
        type_label=TYPE_LABELS[room.type],
        time_remaining_hours=hours_until(room.expires_at, now),
    )


async def get_reservation_for_device(
    store: GiftRoomStore, token: str, device_hash: str
) -> ReservationCheck:
    """Whether this device already holds a slot in the room."""
    room = await _get_room_by_token(store, token)
    row = await call_store(store.find_reservation, room.id, device_hash=device_hash)
    if not row:
        return ReservationCheck(has_reservation=False)
    return ReservationCheck(has_reservation=True, reservation=Reservation(**row))


async def list_my_rooms(
    store: GiftRoomStore, creator_id: str, now: Optional[datetime] = None
) -> List[GiftRoom]:
    """Rooms created by an account, with display status."""
    now = now or utc_now()
    rows = await call_store(store.list_rooms, creator_id)
    return [GiftRoom(**row).as_of(now) for row in rows]


async def get_history(
    store: GiftRoomStore, user_id: str, now: Optional[datetime] = None
) -> GiftHistory:
    """Sent rooms and received gifts for an account."""
    sent = await list_my_rooms(store, user_id, now=now)
    claims = [GiftClaim(**row) for row in await call_store(store.list_claims, user_id)]

    received = []
    for claim in claims:
        room_row = await call_store(store.get_room, claim.room_id)
        received.append(ReceivedGift(
            **claim.model_dump(),
            room=GiftRoom(**room_row) if room_row else None,
        ))

    return GiftHistory(
        sent=sent,
        received=received,
        total_sent=sum(room.total_amount for room in sent),
        total_received=sum(claim.amount for claim in claims),
    )
