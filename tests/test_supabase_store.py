"""Translation of PostgREST failures into gift room errors."""

import httpx
import pytest
from postgrest.exceptions import APIError

from giftroom.errors import AlreadyReserved, NetworkError, RoomFull
from giftroom.store.supabase import SupabaseGiftRoomStore


class FailingQuery:
    def __init__(self, exc):
        self.exc = exc

    def execute(self):
        raise self.exc


def _api_error(message, code, details=None):
    return APIError({"message": message, "code": code, "details": details, "hint": None})


@pytest.fixture
def supabase_store():
    return SupabaseGiftRoomStore(client=None)


@pytest.mark.unit
def test_function_error_code_maps_to_domain_error(supabase_store):
    query = FailingQuery(_api_error("ROOM_FULL", "P0001", "All gifts have been reserved"))

    with pytest.raises(RoomFull) as excinfo:
        supabase_store._execute(query)
    assert excinfo.value.message == "All gifts have been reserved"


@pytest.mark.unit
def test_live_reservation_index_violation_is_already_reserved(supabase_store):
    query = FailingQuery(_api_error(
        'duplicate key value violates unique constraint "gift_reservations_live_holder_idx"',
        "23505",
        "Key (room_id, holder_ref)=(r1, u1) already exists.",
    ))

    with pytest.raises(AlreadyReserved):
        supabase_store._execute(query)


@pytest.mark.unit
def test_other_duplicate_key_is_retryable(supabase_store):
    query = FailingQuery(_api_error(
        'duplicate key value violates unique constraint "wallet_transactions_idempotency_key_key"',
        "23505",
        "Key (idempotency_key)=(gift-escrow-r1) already exists.",
    ))

    with pytest.raises(NetworkError):
        supabase_store._execute(query)


@pytest.mark.unit
def test_transport_error_is_network_error(supabase_store):
    query = FailingQuery(httpx.ConnectError("connection refused"))

    with pytest.raises(NetworkError):
        supabase_store._execute(query)


@pytest.mark.unit
def test_unknown_api_error_propagates(supabase_store):
    query = FailingQuery(_api_error("permission denied for table profiles", "42501"))

    with pytest.raises(APIError):
        supabase_store._execute(query)
