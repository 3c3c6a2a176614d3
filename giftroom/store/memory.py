"""In-process gift room store.

Used for local runs and the test suite. A single re-entrant lock plays the
role of Postgres row locks: every public method runs under it, so each
atomic primitive observes and mutates a consistent snapshot.
"""

import secrets
import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from giftroom.errors import (
    AlreadyClaimed,
    AlreadyRefunded,
    AlreadyReserved,
    GiftExpired,
    InsufficientBalance,
    NothingToRefund,
    RefundNotAllowed,
    ReservationNotFound,
    RoomExpired,
    RoomFull,
    RoomNotFound,
    RoomUnavailable,
    Unauthorized,
)
from giftroom.store.base import GiftRoomStore

LIVE_RESERVATION_STATUSES = ("held", "claimed")


class InMemoryGiftRoomStore(GiftRoomStore):
    """Dict-backed store with the same atomicity as the Postgres functions."""

    def __init__(self):
        self._lock = threading.RLock()
        self.profiles: Dict[str, dict] = {}
        self.sessions: Dict[str, str] = {}
        self.rooms: Dict[str, dict] = {}
        self.reservations: Dict[str, dict] = {}
        self.claims: Dict[str, dict] = {}
        self.transactions: Dict[str, dict] = {}
        self.activities: List[dict] = []

    # Seeding

    def add_account(
        self,
        user_id: Optional[str] = None,
        *,
        balance: int = 0,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
        referral_code: Optional[str] = None,
        referred_by: Optional[str] = None,
        role: str = "user",
    ) -> dict:
        """Insert a profile row and return it."""
        user_id = user_id or str(uuid.uuid4())
        with self._lock:
            self.profiles[user_id] = {
                "id": user_id,
                "email": email,
                "full_name": full_name,
                "referral_code": referral_code or user_id[:8].upper(),
                "referred_by": referred_by,
                "balance": balance,
                "role": role,
            }
            return dict(self.profiles[user_id])

    def issue_session(self, user_id: str) -> str:
        """Create an access token for an existing profile."""
        token = secrets.token_urlsafe(24)
        with self._lock:
            self.sessions[token] = user_id
        return token

    # Accounts

    def authenticate(self, access_token: str) -> Optional[dict]:
        with self._lock:
            user_id = self.sessions.get(access_token)
            if user_id is None:
                return None
            return self.get_profile(user_id)

    def get_profile(self, user_id: str) -> Optional[dict]:
        with self._lock:
            profile = self.profiles.get(user_id)
            return dict(profile) if profile else None

    def list_transactions(self, user_id: str) -> List[dict]:
        with self._lock:
            entries = [
                dict(t) for t in self.transactions.values() if t["user_id"] == user_id
            ]
        return sorted(entries, key=lambda t: t["created_at"], reverse=True)

    def _apply_balance(
        self,
        user_id: str,
        amount: int,
        direction: str,
        transaction_type: str,
        idempotency_key: str,
        reference_id: str,
        description: str,
        now: datetime,
    ) -> dict:
        """Ledger primitive: one audited balance change per idempotency key."""
        existing = self.transactions.get(idempotency_key)
        if existing:
            return existing

        profile = self.profiles[user_id]
        balance_before = profile["balance"]
        if direction == "debit":
            if balance_before < amount:
                raise InsufficientBalance(
                    f"Insufficient balance. Available: {balance_before}, required: {amount}"
                )
            balance_after = balance_before - amount
        else:
            balance_after = balance_before + amount

        txn = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "idempotency_key": idempotency_key,
            "transaction_type": transaction_type,
            "direction": direction,
            "amount": amount,
            "balance_before": balance_before,
            "balance_after": balance_after,
            "reference_id": reference_id,
            "description": description,
            "created_at": now,
        }
        profile["balance"] = balance_after
        self.transactions[idempotency_key] = txn
        return txn

    # Rooms

    def create_room(self, room: dict, now: datetime) -> Tuple[dict, bool]:
        with self._lock:
            existing = self.rooms.get(room["id"])
            if existing:
                return dict(existing), False

            if room["creator_id"] not in self.profiles:
                raise InsufficientBalance("Creator has no wallet")

            self._apply_balance(
                room["creator_id"],
                room["total_amount"],
                "debit",
                "gift_escrow",
                f"gift-escrow-{room['id']}",
                room["id"],
                f"Gift room escrow ({room['capacity']} x {room['amount_per_gift']})",
                now,
            )
            row = dict(room)
            row.update(
                joined_count=0,
                claimed_count=0,
                status="active",
                refunded_amount=0,
                refunded_at=None,
                created_at=now,
                updated_at=now,
            )
            self.rooms[row["id"]] = row
            return dict(row), True

    def get_room(self, room_id: str) -> Optional[dict]:
        with self._lock:
            room = self.rooms.get(room_id)
            return dict(room) if room else None

    def get_room_by_token(self, token: str) -> Optional[dict]:
        with self._lock:
            for room in self.rooms.values():
                if room["token"] == token:
                    return dict(room)
            return None

    def list_rooms(self, creator_id: Optional[str] = None) -> List[dict]:
        with self._lock:
            rooms = [
                dict(r)
                for r in self.rooms.values()
                if creator_id is None or r["creator_id"] == creator_id
            ]
        return sorted(rooms, key=lambda r: r["created_at"], reverse=True)

    def count_rooms_created_since(self, creator_id: str, since: datetime) -> int:
        with self._lock:
            return sum(
                1
                for r in self.rooms.values()
                if r["creator_id"] == creator_id and r["created_at"] >= since
            )

    def list_overdue_rooms(self, now: datetime, limit: int = 100) -> List[dict]:
        with self._lock:
            overdue = [
                dict(r)
                for r in self.rooms.values()
                if r["status"] in ("active", "full") and r["expires_at"] <= now
            ]
        return sorted(overdue, key=lambda r: r["expires_at"])[:limit]

    # Reservations

    def get_reservation(self, reservation_id: str) -> Optional[dict]:
        with self._lock:
            reservation = self.reservations.get(reservation_id)
            return dict(reservation) if reservation else None

    def _find_live(self, room_id, holder_ref=None, device_hash=None) -> Optional[dict]:
        by_holder = by_device = None
        for r in self.reservations.values():
            if r["room_id"] != room_id or r["status"] not in LIVE_RESERVATION_STATUSES:
                continue
            if holder_ref is not None and r["holder_ref"] == holder_ref:
                by_holder = r
            elif device_hash is not None and r["device_fingerprint_hash"] == device_hash:
                by_device = r
        return by_holder or by_device

    def find_reservation(self, room_id, holder_ref=None, device_hash=None) -> Optional[dict]:
        with self._lock:
            found = self._find_live(room_id, holder_ref, device_hash)
            return dict(found) if found else None

    def list_reservations(self, room_id: Optional[str] = None) -> List[dict]:
        with self._lock:
            return [
                dict(r)
                for r in self.reservations.values()
                if room_id is None or r["room_id"] == room_id
            ]

    def reserve_slot(self, reservation: dict, now: datetime) -> Tuple[dict, dict, bool]:
        with self._lock:
            room = self.rooms.get(reservation["room_id"])
            if room is None:
                raise RoomNotFound()

            existing = self._find_live(
                room["id"],
                reservation["holder_ref"],
                reservation["device_fingerprint_hash"],
            )
            if existing:
                same_holder = existing["holder_ref"] == reservation["holder_ref"]
                anonymous_same_device = (
                    existing["holder_type"] == "device"
                    and existing["device_fingerprint_hash"]
                    == reservation["device_fingerprint_hash"]
                )
                if same_holder or anonymous_same_device:
                    return dict(existing), dict(room), False
                raise AlreadyReserved()

            if room["status"] == "cancelled":
                raise RoomUnavailable()
            if room["status"] == "expired" or now >= room["expires_at"]:
                raise RoomExpired()
            if room["status"] == "full" or room["joined_count"] >= room["capacity"]:
                raise RoomFull()

            row = dict(reservation)
            row.update(status="held", created_at=now, claimed_at=None, expired_at=None)
            self.reservations[row["id"]] = row

            room["joined_count"] += 1
            if room["joined_count"] == room["capacity"]:
                room["status"] = "full"
            room["updated_at"] = now
            return dict(row), dict(room), True

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
        with self._lock:
            reservation = self.reservations.get(reservation_id)
            if reservation is None:
                raise ReservationNotFound()
            room = self.rooms[reservation["room_id"]]

            if reservation["status"] == "claimed":
                claim = self.claims[reservation_id]
                if claim["user_id"] != claimant_id:
                    raise AlreadyClaimed()
                return dict(claim), False

            if reservation["status"] == "expired" or room["status"] == "cancelled":
                raise GiftExpired()

            if room["creator_id"] == claimant_id:
                raise Unauthorized("You cannot claim your own gift")
            if reservation["holder_type"] == "account":
                if reservation["holder_ref"] != claimant_id:
                    raise Unauthorized("This reservation belongs to another account")
            elif device_hash != reservation["device_fingerprint_hash"]:
                raise Unauthorized("This reservation was made from another device")

            # One live slot per account per room, including rebound anonymous holds.
            if any(
                r["id"] != reservation_id
                and r["room_id"] == room["id"]
                and r["holder_ref"] == claimant_id
                and r["status"] in LIVE_RESERVATION_STATUSES
                for r in self.reservations.values()
            ):
                raise AlreadyReserved("Your account already holds a gift in this room")

            claimant = self.profiles.get(claimant_id)
            if claimant is None:
                raise Unauthorized("Claimant has no wallet")
            first_funding = not any(
                t["user_id"] == claimant_id and t["direction"] == "credit"
                for t in self.transactions.values()
            )

            txn = self._apply_balance(
                claimant_id,
                room["amount_per_gift"],
                "credit",
                "gift_claim",
                f"gift-claim-{reservation_id}",
                reservation_id,
                "Gift room claim",
                now,
            )

            bonus_awarded = False
            bonus_key = f"referral-bonus-{claimant_id}"
            if (
                referral_bonus > 0
                and first_funding
                and claimant.get("referred_by") == room["creator_id"]
                and bonus_key not in self.transactions
            ):
                self._apply_balance(
                    room["creator_id"],
                    referral_bonus,
                    "credit",
                    "referral_bonus",
                    bonus_key,
                    reservation_id,
                    f"Referral bonus - {claimant_id[:8]}",
                    now,
                )
                bonus_awarded = True

            reservation.update(
                status="claimed",
                holder_ref=claimant_id,
                holder_type="account",
                claimed_at=now,
            )
            room["claimed_count"] += 1
            room["updated_at"] = now

            claim = {
                "id": claim_id,
                "reservation_id": reservation_id,
                "room_id": room["id"],
                "user_id": claimant_id,
                "amount": room["amount_per_gift"],
                "referral_bonus_awarded": bonus_awarded,
                "transaction_id": txn["id"],
                "claimed_at": now,
            }
            self.claims[reservation_id] = claim
            return dict(claim), True

    def list_claims(self, user_id: Optional[str] = None) -> List[dict]:
        with self._lock:
            claims = [
                dict(c)
                for c in self.claims.values()
                if user_id is None or c["user_id"] == user_id
            ]
        return sorted(claims, key=lambda c: c["claimed_at"], reverse=True)

    # Expiration and refunds

    def _expire_held(self, room: dict, now: datetime) -> int:
        expired = 0
        for r in self.reservations.values():
            if r["room_id"] == room["id"] and r["status"] == "held":
                r["status"] = "expired"
                r["expired_at"] = now
                expired += 1
        room["joined_count"] -= expired
        return expired

    def expire_room(self, room_id: str, now: datetime) -> Tuple[dict, int]:
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                raise RoomNotFound()
            if room["status"] not in ("active", "full") or now < room["expires_at"]:
                return dict(room), 0

            expired = self._expire_held(room, now)
            room["status"] = "expired"
            room["updated_at"] = now
            return dict(room), expired

    def refund_room(self, room_id: str, creator_id: str, now: datetime) -> Tuple[dict, int, int]:
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                raise RoomNotFound()
            if room["creator_id"] != creator_id:
                raise Unauthorized("Only the original creator can refund this gift room")
            if room["status"] == "cancelled":
                raise AlreadyRefunded()
            if now < room["expires_at"]:
                raise RefundNotAllowed()

            unclaimed = room["capacity"] - room["claimed_count"]
            if unclaimed <= 0:
                raise NothingToRefund()

            self._expire_held(room, now)
            refund_amount = unclaimed * room["amount_per_gift"]
            self._apply_balance(
                creator_id,
                refund_amount,
                "credit",
                "gift_refund",
                f"gift-refund-{room_id}",
                room_id,
                f"Gift room refund ({unclaimed} unclaimed)",
                now,
            )
            room.update(
                status="cancelled",
                refunded_amount=refund_amount,
                refunded_at=now,
                updated_at=now,
            )
            return dict(room), refund_amount, unclaimed

    # Maintenance

    def sync_room_counts(self, now: datetime) -> List[dict]:
        with self._lock:
            changes = []
            for room in self.rooms.values():
                live = [
                    r["status"] for r in self.reservations.values()
                    if r["room_id"] == room["id"] and r["status"] in LIVE_RESERVATION_STATUSES
                ]
                joined = len(live)
                claimed = live.count("claimed")
                status = room["status"]
                if status in ("active", "full"):
                    status = "full" if joined >= room["capacity"] else "active"

                if (joined, claimed, status) == (
                    room["joined_count"], room["claimed_count"], room["status"]
                ):
                    continue

                changes.append({
                    "room_id": room["id"],
                    "joined_before": room["joined_count"],
                    "joined_after": joined,
                    "claimed_before": room["claimed_count"],
                    "claimed_after": claimed,
                    "status_before": room["status"],
                    "status_after": status,
                })
                room.update(
                    joined_count=joined,
                    claimed_count=claimed,
                    status=status,
                    updated_at=now,
                )
            return changes

    # Activity log

    def record_activity(self, activity: dict) -> None:
        with self._lock:
            self.activities.append(dict(activity))

    def list_activities(self, room_id: str) -> List[dict]:
        with self._lock:
            entries = [dict(a) for a in self.activities if a.get("room_id") == room_id]
        return sorted(entries, key=lambda a: a["created_at"], reverse=True)
