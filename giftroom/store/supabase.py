"""Supabase-backed gift room store.

Reads go through PostgREST table queries. Every atomic primitive is a
plpgsql function (see ``supabase/migrations``) invoked over RPC; those
functions take row locks with ``SELECT ... FOR UPDATE`` and raise
exceptions whose message is one of the error codes in ``giftroom.errors``.
"""

from datetime import datetime
from typing import List, Optional, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from giftroom.errors import AlreadyReserved, GiftRoomError, NetworkError, error_from_code
from giftroom.logging import get_logger
from giftroom.store.base import GiftRoomStore

logger = get_logger(__name__)

PROFILE_COLUMNS = "id, email, full_name, referral_code, referred_by, balance, role"
LIVE_RESERVATION_STATUSES = ["held", "claimed"]
UNIQUE_VIOLATION = "23505"


class SupabaseGiftRoomStore(GiftRoomStore):
    """Store that talks to Postgres through a Supabase service-role client."""

    def __init__(self, client: Client):
        self.client = client

    def _execute(self, query):
        """Run a PostgREST request, translating failures into gift room errors."""
        try:
            return query.execute()
        except httpx.TransportError as exc:
            raise NetworkError(f"Store request failed: {exc}") from exc
        except APIError as exc:
            if exc.message and exc.message.isupper():
                raise error_from_code(exc.message, exc.details or None) from exc
            if exc.code == UNIQUE_VIOLATION:
                raise self._unique_violation(exc) from exc
            raise

    @staticmethod
    def _unique_violation(exc: APIError) -> GiftRoomError:
        """
        A live reservation index means the slot is taken. Any other key
        (room id, ledger idempotency key) means a concurrent replay of the
        same write; NetworkError makes ``call_store`` retry and read it back.
        """
        text = f"{exc.message or ''} {exc.details or ''}"
        if "gift_reservations_live_" in text:
            return AlreadyReserved()
        logger.warning("Concurrent duplicate write, retrying: %s", text.strip())
        return NetworkError("Concurrent duplicate write")

    def _rpc(self, name: str, params: dict) -> dict:
        return self._execute(self.client.rpc(name, params)).data

    @staticmethod
    def _first(response) -> Optional[dict]:
        return response.data[0] if response.data else None

    # Accounts

    def authenticate(self, access_token: str) -> Optional[dict]:
        try:
            user_response = self.client.auth.get_user(access_token)
        except httpx.TransportError as exc:
            raise NetworkError(f"Auth provider unreachable: {exc}") from exc
        except Exception as exc:
            logger.info("Rejected access token: %s", exc)
            return None

        if not user_response or not user_response.user:
            return None

        profile = self.get_profile(user_response.user.id)
        if profile and not profile.get("email"):
            profile["email"] = user_response.user.email
        return profile

    def get_profile(self, user_id: str) -> Optional[dict]:
        return self._first(self._execute(
            self.client.table("profiles").select(PROFILE_COLUMNS).eq("id", user_id).limit(1)
        ))

    def list_transactions(self, user_id: str) -> List[dict]:
        return self._execute(
            self.client.table("wallet_transactions").select("*").eq(
                "user_id", user_id
            ).order("created_at", desc=True)
        ).data

    # Rooms

    def create_room(self, room: dict, now: datetime) -> Tuple[dict, bool]:
        result = self._rpc("gift_room_create", {
            "p_room_id": room["id"],
            "p_token": room["token"],
            "p_creator_id": room["creator_id"],
            "p_type": room["type"],
            "p_capacity": room["capacity"],
            "p_amount": room["amount_per_gift"],
            "p_message": room.get("message"),
            "p_expires_at": room["expires_at"].isoformat(),
            "p_now": now.isoformat(),
        })
        return result["room"], result["created"]

    def get_room(self, room_id: str) -> Optional[dict]:
        return self._first(self._execute(
            self.client.table("gift_rooms").select("*").eq("id", room_id).limit(1)
        ))

    def get_room_by_token(self, token: str) -> Optional[dict]:
        return self._first(self._execute(
            self.client.table("gift_rooms").select("*").eq("token", token).limit(1)
        ))

    def list_rooms(self, creator_id: Optional[str] = None) -> List[dict]:
        query = self.client.table("gift_rooms").select("*")
        if creator_id:
            query = query.eq("creator_id", creator_id)
        return self._execute(query.order("created_at", desc=True)).data

    def count_rooms_created_since(self, creator_id: str, since: datetime) -> int:
        response = self._execute(
            self.client.table("gift_rooms").select("id", count="exact").eq(
                "creator_id", creator_id
            ).gte("created_at", since.isoformat())
        )
        return response.count or 0

    def list_overdue_rooms(self, now: datetime, limit: int = 100) -> List[dict]:
        return self._execute(
            self.client.table("gift_rooms").select("*").in_(
                "status", ["active", "full"]
            ).lte("expires_at", now.isoformat()).order("expires_at").limit(limit)
        ).data

    # Reservations

    def get_reservation(self, reservation_id: str) -> Optional[dict]:
        return self._first(self._execute(
            self.client.table("gift_reservations").select("*").eq("id", reservation_id).limit(1)
        ))

    def find_reservation(self, room_id, holder_ref=None, device_hash=None) -> Optional[dict]:
        for column, value in (
            ("holder_ref", holder_ref),
            ("device_fingerprint_hash", device_hash),
        ):
            if value is None:
                continue
            found = self._first(self._execute(
                self.client.table("gift_reservations").select("*").eq(
                    "room_id", room_id
                ).eq(column, value).in_("status", LIVE_RESERVATION_STATUSES).limit(1)
            ))
            if found:
                return found
        return None

    def list_reservations(self, room_id: Optional[str] = None) -> List[dict]:
        query = self.client.table("gift_reservations").select("*")
        if room_id:
            query = query.eq("room_id", room_id)
        return self._execute(query).data

    def reserve_slot(self, reservation: dict, now: datetime) -> Tuple[dict, dict, bool]:
        result = self._rpc("gift_room_reserve", {
            "p_reservation_id": reservation["id"],
            "p_room_id": reservation["room_id"],
            "p_holder_ref": reservation["holder_ref"],
            "p_holder_type": reservation["holder_type"],
            "p_device_hash": reservation["device_fingerprint_hash"],
            "p_contact_info": reservation.get("contact_info"),
            "p_now": now.isoformat(),
        })
        return result["reservation"], result["room"], result["created"]

    # Claims

    def settle_claim(
        self,
        reservation_id: str,
        claim_id: str,
        claimant_id: str,
        device_hash: Optional[str],
        referral_bonus: int,
        now: datetime,
    ) -> Tuple[dict, bool]:
        result = self._rpc("gift_room_settle_claim", {
            "p_reservation_id": reservation_id,
            "p_claim_id": claim_id,
            "p_claimant_id": claimant_id,
            "p_device_hash": device_hash,
            "p_referral_bonus": referral_bonus,
            "p_now": now.isoformat(),
        })
        return result["claim"], result["created"]

    def list_claims(self, user_id: Optional[str] = None) -> List[dict]:
        query = self.client.table("gift_claims").select("*")
        if user_id:
            query = query.eq("user_id", user_id)
        return self._execute(query.order("claimed_at", desc=True)).data

    # Expiration and refunds

    def expire_room(self, room_id: str, now: datetime) -> Tuple[dict, int]:
        result = self._rpc("gift_room_expire", {
            "p_room_id": room_id,
            "p_now": now.isoformat(),
        })
        return result["room"], result["expired_reservations"]

    def refund_room(self, room_id: str, creator_id: str, now: datetime) -> Tuple[dict, int, int]:
        result = self._rpc("gift_room_refund", {
            "p_room_id": room_id,
            "p_creator_id": creator_id,
            "p_now": now.isoformat(),
        })
        return result["room"], result["refund_amount"], result["unclaimed_count"]

    # Maintenance

    def sync_room_counts(self, now: datetime) -> List[dict]:
        return self._rpc("gift_room_sync_counts", {"p_now": now.isoformat()}) or []

    # Activity log

    def record_activity(self, activity: dict) -> None:
        row = dict(activity)
        row["created_at"] = row["created_at"].isoformat()
        self._execute(self.client.table("gift_room_activities").insert(row))

    def list_activities(self, room_id: str) -> List[dict]:
        return self._execute(
            self.client.table("gift_room_activities").select("*").eq(
                "room_id", room_id
            ).order("created_at", desc=True)
        ).data
