import os

os.environ["STORE_BACKEND"] = "memory"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STORE_RETRY_BACKOFF_SECONDS"] = "0"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["GEMINI_API_KEY"] = ""
os.environ["SHARE_BASE_URL"] = "https://tada.test"
os.environ["AUTO_REFUND_ON_EXPIRY"] = "false"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from giftroom.config import get_settings

get_settings.cache_clear()

from giftroom.main import app
from giftroom.models.user import UserProfile
from giftroom.store.memory import InMemoryGiftRoomStore
from tests.factories import make_user


@pytest.fixture
def store() -> InMemoryGiftRoomStore:
    return InMemoryGiftRoomStore()


@pytest.fixture
def creator(store) -> UserProfile:
    return make_user(store, balance=5000, full_name="Ada Creator", email="ada@example.com")


@pytest_asyncio.fixture
async def client(store):
    app.state.store = store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.store = None
