"""Admin reconciliation of room counters."""

import pytest

from giftroom.models.gift_room import GiftRoomStatus
from giftroom.services.claims import claim_gift
from giftroom.services.maintenance import sync_room_counts
from giftroom.services.reservations import join_room
from tests.factories import device, hours_after_start, make_room, make_user


@pytest.mark.unit
async def test_sync_repairs_drifted_counters(store, creator):
    admin = make_user(store, role="admin")
    guest = make_user(store)
    created = await make_room(store, creator, capacity=2, amount=500)
    joined = await join_room(store, created.token, device(1), user=guest, now=hours_after_start(1))
    await claim_gift(store, joined.reservation.id, guest, now=hours_after_start(2))

    room = store.rooms[created.room.id]
    room.update(joined_count=2, claimed_count=0, status="full")

    result = await sync_room_counts(store, admin.id, now=hours_after_start(3))

    assert result.updated_rooms == 1
    change = result.changes[0]
    assert change.room_id == created.room.id
    assert (change.joined_before, change.joined_after) == (2, 1)
    assert (change.claimed_before, change.claimed_after) == (0, 1)
    assert change.status_before == GiftRoomStatus.FULL
    assert change.status_after == GiftRoomStatus.ACTIVE

    stored = store.get_room(created.room.id)
    assert stored["joined_count"] == 1
    assert stored["claimed_count"] == 1
    assert stored["status"] == "active"
    assert stored["updated_at"] == hours_after_start(3)


@pytest.mark.unit
async def test_sync_marks_room_full_when_slots_are_taken(store, creator):
    created = await make_room(store, creator, capacity=2, amount=500)
    await join_room(store, created.token, device(1), now=hours_after_start(1))
    await join_room(store, created.token, device(2), now=hours_after_start(1))
    store.rooms[created.room.id].update(joined_count=1, status="active")

    result = await sync_room_counts(store, "admin-id", now=hours_after_start(2))

    assert result.updated_rooms == 1
    assert store.get_room(created.room.id)["status"] == "full"


@pytest.mark.unit
async def test_sync_leaves_consistent_and_closed_rooms_alone(store, creator):
    consistent = await make_room(store, creator, capacity=2, amount=500)
    await join_room(store, consistent.token, device(1), now=hours_after_start(1))
    closed = await make_room(store, creator, capacity=2, amount=500)
    store.rooms[closed.room.id]["status"] = "expired"

    result = await sync_room_counts(store, "admin-id", now=hours_after_start(2))
    again = await sync_room_counts(store, "admin-id", now=hours_after_start(3))

    assert result.updated_rooms == 0
    assert again.updated_rooms == 0
    assert store.get_room(closed.room.id)["status"] == "expired"
    assert result.message == "Successfully synced 0 gift rooms"
