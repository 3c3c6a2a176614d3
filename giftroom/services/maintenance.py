"""Administrative repair of denormalized room counters."""

from datetime import datetime
from typing import Optional

from giftroom.datetime_utils import utc_now
from giftroom.logging import get_logger
from giftroom.models.gift_room import CountSyncResult, RoomCountChange
from giftroom.services.resilience import call_store
from giftroom.store.base import GiftRoomStore

logger = get_logger(__name__)


async def sync_room_counts(
    store: GiftRoomStore, admin_id: str, now: Optional[datetime] = None
) -> CountSyncResult:
    """
    Bring every room's joined/claimed counters back in line with its
    reservations. Safe to repeat: a second run finds nothing to change.
    """
    now = now or utc_now()
    changes = [RoomCountChange(**row) for row in await call_store(store.sync_room_counts, now)]

    for change in changes:
        logger.warning(
            "Room counters corrected: joined %d -> %d, claimed %d -> %d, status %s -> %s",
            change.joined_before, change.joined_after,
            change.claimed_before, change.claimed_after,
            change.status_before.value, change.status_after.value,
            extra={"room_id": change.room_id, "user_id": admin_id},
        )
    logger.info("Room counter sync by %s: %d room(s) updated", admin_id, len(changes))

    return CountSyncResult(
        updated_rooms=len(changes),
        changes=changes,
        message=f"Successfully synced {len(changes)} gift rooms",
    )
