"""ARQ worker wiring for the expiration sweep."""

from datetime import timedelta

import pytest

from giftroom import worker
from giftroom.datetime_utils import utc_now
from giftroom.store.memory import InMemoryGiftRoomStore
from giftroom.worker import WorkerSettings, startup, task_expire_gift_rooms
from tests.factories import make_room


@pytest.mark.unit
async def test_startup_attaches_store(monkeypatch):
    monkeypatch.setattr(worker, "configure_logging", lambda: None)
    ctx = {}

    await startup(ctx)

    assert isinstance(ctx["store"], InMemoryGiftRoomStore)


@pytest.mark.unit
async def test_task_expires_overdue_rooms(store, creator):
    created = await make_room(store, creator, capacity=2, amount=500)
    store.rooms[created.room.id]["expires_at"] = utc_now() - timedelta(minutes=1)

    result = await task_expire_gift_rooms({"store": store})

    assert result["expired_rooms"] == 1
    assert result["refunded_rooms"] == 0
    assert store.get_room(created.room.id)["status"] == "expired"


@pytest.mark.unit
def test_sweep_is_scheduled_every_five_minutes():
    assert WorkerSettings.functions == [task_expire_gift_rooms]
    assert len(WorkerSettings.cron_jobs) == 1
    assert WorkerSettings.cron_jobs[0].minute == set(range(0, 60, 5))
    assert WorkerSettings.cron_jobs[0].run_at_startup is True
