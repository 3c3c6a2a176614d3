"""Builders shared by the test modules."""

from datetime import datetime, timedelta, timezone

from giftroom.models.gift_room import GiftRoomType
from giftroom.models.reservation import DeviceFingerprint
from giftroom.models.user import UserProfile
from giftroom.services.rooms import create_room
from giftroom.store.memory import InMemoryGiftRoomStore

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def hours_after_start(hours: float) -> datetime:
    return T0 + timedelta(hours=hours)


def device(n) -> DeviceFingerprint:
    """Complete client signals for a distinct device."""
    return DeviceFingerprint(
        user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)",
        screen_resolution="390x844",
        timezone="Africa/Lagos",
        language="en-NG",
        platform="iPhone",
        persistent_id=f"device-{n}",
    )


def make_user(store: InMemoryGiftRoomStore, balance: int = 0, **fields) -> UserProfile:
    return UserProfile(**store.add_account(balance=balance, **fields))


def balance_of(store: InMemoryGiftRoomStore, user_id: str) -> int:
    return store.get_profile(user_id)["balance"]


def auth_headers(store: InMemoryGiftRoomStore, user_id: str) -> dict:
    return {"Authorization": f"Bearer {store.issue_session(user_id)}"}


async def make_room(store, creator, room_type=GiftRoomType.GROUP, capacity=3, amount=1000, **kwargs):
    kwargs.setdefault("now", T0)
    return await create_room(store, creator.id, room_type, capacity, amount, **kwargs)
