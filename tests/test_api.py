"""HTTP surface: envelopes, auth and the full gift flow."""

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from giftroom.datetime_utils import utc_now
from giftroom.main import app
from giftroom.services.device_identity import fingerprint_hash
from tests.factories import auth_headers, balance_of, device, make_user


def _expire(store, room_id):
    store.rooms[room_id]["expires_at"] = utc_now() - timedelta(minutes=1)


async def _create(client, headers, **overrides):
    body = {"type": "group", "capacity": 5, "amount": 200, "message": "Enjoy!"}
    body.update(overrides)
    return await client.post("/gift-rooms/create", json=body, headers=headers)


@pytest.mark.integration
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["store_backend"] == "memory"


@pytest.mark.integration
async def test_me_requires_a_session(client, store, creator):
    anonymous = await client.get("/auth/me")
    signed_in = await client.get("/auth/me", headers=auth_headers(store, creator.id))

    assert anonymous.status_code == 401
    assert anonymous.json() == {
        "success": False,
        "error": "Authentication required",
        "code": "AUTH_REQUIRED",
    }
    assert signed_in.json()["data"]["balance"] == 5000


@pytest.mark.integration
async def test_create_requires_auth(client):
    response = await _create(client, {})

    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_REQUIRED"


@pytest.mark.integration
async def test_create_returns_share_link(client, store, creator):
    response = await _create(client, auth_headers(store, creator.id))

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    data = payload["data"]
    assert data["share_url"] == f"https://tada.test/gift/{data['token']}"
    assert data["room"]["total_amount"] == 1000
    assert balance_of(store, creator.id) == 4000


@pytest.mark.integration
async def test_invalid_capacity_is_a_400_envelope(client, store, creator):
    response = await _create(
        client, auth_headers(store, creator.id), type="personal", capacity=3
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.integration
async def test_malformed_body_is_a_400_envelope(client, store, creator):
    response = await _create(client, auth_headers(store, creator.id), type="secret")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_ERROR"


@pytest.mark.integration
async def test_insufficient_balance(client, store):
    poor = make_user(store, balance=10)

    response = await _create(client, auth_headers(store, poor.id))

    assert response.status_code == 400
    assert response.json()["code"] == "INSUFFICIENT_BALANCE"


@pytest.mark.integration
async def test_unknown_room_is_404(client):
    response = await client.get("/gift-rooms/not-a-token")

    assert response.status_code == 404
    assert response.json()["code"] == "ROOM_NOT_FOUND"


@pytest.mark.integration
async def test_full_gift_flow(client, store, creator):
    """Create, join anonymously, sign in, claim, expire and refund."""
    creator_headers = auth_headers(store, creator.id)
    created = (await _create(client, creator_headers)).json()["data"]
    token, room_id = created["token"], created["room"]["id"]

    details = (await client.get(f"/gift-rooms/{token}")).json()["data"]
    assert details["can_join"] is True
    assert details["creator"]["full_name"] == "Ada Creator"
    assert details["type_label"] == "Group Gift"

    signals = device(1).model_dump()
    joined = await client.post(
        "/gift-rooms/join",
        json={
            "room_token": token,
            "device_fingerprint": signals,
            "contact_info": {"name": "Bola", "email": "bola@example.com"},
        },
    )
    assert joined.status_code == 200
    reservation = joined.json()["data"]["reservation"]
    assert joined.json()["data"]["created"] is True

    device_hash = fingerprint_hash(device(1))
    check = await client.get(
        f"/gift-rooms/{token}/reservation", params={"device_hash": device_hash}
    )
    assert check.json()["data"]["has_reservation"] is True

    anonymous_claim = await client.post(
        "/gift-rooms/claim",
        json={"reservation_id": reservation["id"], "device_hash": device_hash},
    )
    assert anonymous_claim.status_code == 401
    assert anonymous_claim.json()["code"] == "AUTH_REQUIRED"

    guest = make_user(store, full_name="Bola")
    guest_headers = auth_headers(store, guest.id)
    claimed = await client.post(
        "/gift-rooms/claim",
        json={"reservation_id": reservation["id"], "device_hash": device_hash},
        headers=guest_headers,
    )
    assert claimed.status_code == 200
    assert claimed.json()["data"]["amount"] == 200
    assert balance_of(store, guest.id) == 200

    repeat = await client.post(
        "/gift-rooms/claim",
        json={"reservation_id": reservation["id"], "device_hash": device_hash},
        headers=guest_headers,
    )
    assert repeat.json()["data"]["already_claimed"] is True
    assert balance_of(store, guest.id) == 200

    early = await client.post("/gift-rooms/refund", json={"room_id": room_id}, headers=creator_headers)
    assert early.status_code == 400
    assert early.json()["code"] == "REFUND_NOT_ALLOWED"

    _expire(store, room_id)

    preview = await client.get(
        "/gift-rooms/refund", params={"room_id": room_id}, headers=creator_headers
    )
    assert preview.json()["data"]["potential_refund_amount"] == 800
    assert preview.json()["data"]["can_refund"] is True

    refunded = await client.post("/gift-rooms/refund", json={"room_id": room_id}, headers=creator_headers)
    assert refunded.status_code == 200
    assert refunded.json()["data"]["refund_amount"] == 800
    assert balance_of(store, creator.id) == 4800

    again = await client.post("/gift-rooms/refund", json={"room_id": room_id}, headers=creator_headers)
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_REFUNDED"

    history = (await client.get("/gift-rooms/history", headers=guest_headers)).json()["data"]
    assert history["total_received"] == 200

    activity = await client.get(f"/gift-rooms/rooms/{room_id}/activity", headers=creator_headers)
    assert {a["activity_type"] for a in activity.json()["data"]} >= {"created", "joined", "claimed", "refunded"}


@pytest.mark.integration
async def test_join_full_room_is_409(client, store, creator):
    created = (await _create(
        client, auth_headers(store, creator.id), type="personal", capacity=1
    )).json()["data"]

    first = await client.post(
        "/gift-rooms/join",
        json={"room_token": created["token"], "device_fingerprint": device(1).model_dump()},
    )
    second = await client.post(
        "/gift-rooms/join",
        json={"room_token": created["token"], "device_fingerprint": device(2).model_dump()},
    )

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["code"] == "ROOM_FULL"


@pytest.mark.integration
async def test_join_expired_room_is_410(client, store, creator):
    created = (await _create(client, auth_headers(store, creator.id))).json()["data"]
    _expire(store, created["room"]["id"])

    response = await client.post(
        "/gift-rooms/join",
        json={"room_token": created["token"], "device_fingerprint": device(1).model_dump()},
    )

    assert response.status_code == 410
    assert response.json()["code"] == "ROOM_EXPIRED"


@pytest.mark.integration
async def test_refund_by_stranger_is_403(client, store, creator):
    created = (await _create(client, auth_headers(store, creator.id))).json()["data"]
    stranger = make_user(store)

    response = await client.post(
        "/gift-rooms/refund",
        json={"room_id": created["room"]["id"]},
        headers=auth_headers(store, stranger.id),
    )

    assert response.status_code == 403
    assert response.json()["code"] == "UNAUTHORIZED"


@pytest.mark.integration
async def test_my_rooms_lists_only_callers_rooms(client, store, creator):
    other = make_user(store, balance=5000)
    await _create(client, auth_headers(store, creator.id))
    await _create(client, auth_headers(store, other.id))

    response = await client.get("/gift-rooms/my-rooms", headers=auth_headers(store, creator.id))

    rooms = response.json()["data"]
    assert len(rooms) == 1
    assert rooms[0]["creator_id"] == creator.id


@pytest.mark.integration
async def test_cleanup_requires_cron_secret(client, store, creator):
    created = (await _create(client, auth_headers(store, creator.id))).json()["data"]
    _expire(store, created["room"]["id"])

    denied = await client.post("/gift-rooms/cleanup", headers={"Authorization": "Bearer wrong"})
    allowed = await client.post(
        "/gift-rooms/cleanup", headers={"Authorization": "Bearer test-cron-secret"}
    )

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["data"]["expired_rooms"] == 1
    assert store.get_room(created["room"]["id"])["status"] == "expired"


@pytest.mark.integration
async def test_stats_are_public(client, store, creator):
    await _create(client, auth_headers(store, creator.id))

    anonymous = (await client.get("/gift-rooms/stats")).json()["data"]
    signed_in = (await client.get(
        "/gift-rooms/stats", headers=auth_headers(store, creator.id)
    )).json()["data"]

    assert anonymous["rooms"]["total"] == 1
    assert anonymous["user"] is None
    assert signed_in["user"]["rooms_sent"] == 1


@pytest.mark.integration
async def test_generate_message_without_api_key(client):
    response = await client.post(
        "/gift-rooms/generate-message",
        json={"occasion": "birthday", "recipient_name": "Tolu"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["ai_generated"] is False
    assert "Tolu" in data["message"]


@pytest.mark.integration
async def test_wallet_ledger_shows_escrow(client, store, creator):
    headers = auth_headers(store, creator.id)
    await _create(client, headers)

    response = await client.get("/auth/transactions", headers=headers)

    entries = response.json()["data"]
    assert len(entries) == 1
    assert entries[0]["transaction_type"] == "gift_escrow"
    assert entries[0]["direction"] == "debit"
    assert entries[0]["balance_after"] == 4000


@pytest.mark.integration
async def test_unexpected_error_gets_envelope(store, monkeypatch):
    def broken_list_rooms(creator_id=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(store, "list_rooms", broken_list_rooms)
    app.state.store = store
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/gift-rooms/stats")
    finally:
        app.state.store = None

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Internal server error",
        "code": "INTERNAL_ERROR",
    }


@pytest.mark.integration
async def test_sync_counts_is_admin_only(client, store, creator):
    admin = make_user(store, role="admin")
    response = await _create(client, auth_headers(store, creator.id), capacity=3)
    room_id = response.json()["data"]["room"]["id"]
    store.rooms[room_id]["joined_count"] = 2

    anonymous = await client.post("/gift-rooms/admin/sync-counts")
    denied = await client.post(
        "/gift-rooms/admin/sync-counts", headers=auth_headers(store, creator.id)
    )
    allowed = await client.post(
        "/gift-rooms/admin/sync-counts", headers=auth_headers(store, admin.id)
    )

    assert anonymous.status_code == 401
    assert denied.status_code == 403
    assert denied.json()["error"] == "Admin access required"
    assert allowed.status_code == 200
    data = allowed.json()["data"]
    assert data["updated_rooms"] == 1
    assert data["changes"][0]["joined_after"] == 0
    assert store.get_room(room_id)["joined_count"] == 0
