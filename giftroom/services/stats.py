"""Gift room statistics."""

from datetime import datetime
from typing import List, Optional

from giftroom.config import get_settings
from giftroom.datetime_utils import utc_now
from giftroom.models.claim import GiftClaim
from giftroom.models.gift_room import GiftRoom, GiftRoomStatus, GiftRoomType
from giftroom.models.reservation import ReservationStatus
from giftroom.models.stats import GiftRoomStats, UserGiftStats
from giftroom.models.user import UserProfile
from giftroom.services.resilience import call_store
from giftroom.store.base import GiftRoomStore


def summarize(
    rooms: List[GiftRoom],
    reservation_statuses: List[str],
    claims: List[GiftClaim],
    now: datetime,
) -> dict:
    """Aggregate counts and totals; statuses are taken as of ``now``."""
    statuses = [room.effective_status(now) for room in rooms]
    bonus = get_settings().referral_bonus_amount

    return {
        "rooms": {
            "total": len(rooms),
            **{s.value: statuses.count(s) for s in GiftRoomStatus},
        },
        "reservations": {
            "total": len(reservation_statuses),
            **{s.value: reservation_statuses.count(s.value) for s in ReservationStatus},
        },
        "financial": {
            "total_gift_value": sum(room.total_amount for room in rooms),
            "claimed_value": sum(claim.amount for claim in claims),
            "refunded_value": sum(room.refunded_amount for room in rooms),
            "referral_bonuses": sum(bonus for c in claims if c.referral_bonus_awarded),
        },
        "engagement": {
            "average_join_rate": (
                sum(r.joined_count / r.capacity for r in rooms) / len(rooms) if rooms else 0
            ),
            "average_claim_rate": (
                sum(r.claimed_count / max(r.joined_count, 1) for r in rooms) / len(rooms)
                if rooms else 0
            ),
        },
        "types": {t.value: sum(1 for r in rooms if r.type == t) for t in GiftRoomType},
    }


async def get_stats(
    store: GiftRoomStore, user: Optional[UserProfile] = None, now: Optional[datetime] = None
) -> GiftRoomStats:
    """Platform-wide statistics, plus the caller's own when authenticated."""
    now = now or utc_now()
    rooms = [GiftRoom(**row) for row in await call_store(store.list_rooms)]
    reservations = await call_store(store.list_reservations)
    claims = [GiftClaim(**row) for row in await call_store(store.list_claims)]

    user_stats = None
    if user:
        sent = [room for room in rooms if room.creator_id == user.id]
        received = [claim for claim in claims if claim.user_id == user.id]
        user_stats = UserGiftStats(
            rooms_sent=len(sent),
            total_sent=sum(room.total_amount for room in sent),
            gifts_received=len(received),
            total_received=sum(claim.amount for claim in received),
        )

    return GiftRoomStats(
        **summarize(rooms, [r["status"] for r in reservations], claims, now),
        user=user_stats,
        timestamp=now,
    )
