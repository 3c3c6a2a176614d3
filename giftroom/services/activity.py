"""Gift room audit trail."""

import uuid
from typing import List, Optional

from giftroom.datetime_utils import utc_now
from giftroom.errors import GiftRoomError, RoomNotFound, Unauthorized
from giftroom.logging import get_logger
from giftroom.models.gift_room import ActivityType, GiftRoomActivity
from giftroom.services.resilience import call_store
from giftroom.store.base import GiftRoomStore

logger = get_logger(__name__)


async def log_activity(
    store: GiftRoomStore,
    activity_type: ActivityType,
    room_id: Optional[str],
    user_id: Optional[str] = None,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    """
    Record an activity entry.

    The money path has already committed when this runs, so a failure here
    is logged and does not fail the request.
    """
    activity = {
        "id": str(uuid.uuid4()),
        "room_id": room_id,
        "user_id": user_id,
        "activity_type": activity_type.value,
        "details": details or {},
        "ip_address": ip_address,
        "user_agent": user_agent,
        "created_at": utc_now(),
    }
    try:
        await call_store(store.record_activity, activity)
    except GiftRoomError as exc:
        logger.warning(
            "Could not record %s activity for room %s: %s",
            activity_type.value, room_id, exc.message,
        )


async def list_room_activity(
    store: GiftRoomStore, room_id: str, creator_id: str
) -> List[GiftRoomActivity]:
    """Activity log for a room, visible to its creator only."""
    room = await call_store(store.get_room, room_id)
    if not room:
        raise RoomNotFound()
    if room["creator_id"] != creator_id:
        raise Unauthorized("Only the creator can view this gift room's activity")

    rows = await call_store(store.list_activities, room_id)
    return [GiftRoomActivity(**row) for row in rows]
