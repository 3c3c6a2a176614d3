"""Storage contract for gift rooms.

Each method that moves money or changes capacity is one atomic unit: the
balance mutation and the room/reservation transition either both commit
or neither does. Concurrency control lives behind this interface (row
locks in Postgres, a process lock in memory) so that any number of API
instances can serve the same room.

Rows are plain dicts shaped like the Postgres tables; services turn them
into pydantic models.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple


class GiftRoomStore(ABC):
    """Persistence for rooms, reservations, claims and the wallet ledger."""

    # Accounts

    @abstractmethod
    def authenticate(self, access_token: str) -> Optional[dict]:
        """Resolve a session token to a profile row, or None."""

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def list_transactions(self, user_id: str) -> List[dict]:
        ...

    # Rooms

    @abstractmethod
    def create_room(self, room: dict, now: datetime) -> Tuple[dict, bool]:
        """
        Debit ``room["total_amount"]`` from the creator and insert the room.

        Replaying the same room id returns the stored room with
        ``created=False`` and no second debit.
        Raises InsufficientBalance.
        """

    @abstractmethod
    def get_room(self, room_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def get_room_by_token(self, token: str) -> Optional[dict]:
        ...

    @abstractmethod
    def list_rooms(self, creator_id: Optional[str] = None) -> List[dict]:
        """Rooms newest first, optionally for one creator."""

    @abstractmethod
    def count_rooms_created_since(self, creator_id: str, since: datetime) -> int:
        ...

    @abstractmethod
    def list_overdue_rooms(self, now: datetime, limit: int = 100) -> List[dict]:
        """Rooms still stored as active/full whose expiry has passed."""

    # Reservations

    @abstractmethod
    def get_reservation(self, reservation_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def find_reservation(
        self,
        room_id: str,
        holder_ref: Optional[str] = None,
        device_hash: Optional[str] = None,
    ) -> Optional[dict]:
        """Held or claimed reservation matching the holder or the device."""

    @abstractmethod
    def list_reservations(self, room_id: Optional[str] = None) -> List[dict]:
        ...

    @abstractmethod
    def reserve_slot(self, reservation: dict, now: datetime) -> Tuple[dict, dict, bool]:
        """
        Take one slot in ``reservation["room_id"]``.

        Returns ``(reservation, room, created)``. An existing hold by the
        same holder (or an anonymous hold from the same device) is returned
        with ``created=False``.
        Raises RoomNotFound, RoomExpired, RoomFull, RoomUnavailable,
        AlreadyReserved.
        """

    # Claims

    @abstractmethod
    def settle_claim(
        self,
        reservation_id: str,
        claim_id: str,
        claimant_id: str,
        device_hash: Optional[str],
        referral_bonus: int,
        now: datetime,
    ) -> Tuple[dict, bool]:
        """
        Pay out a held reservation to ``claimant_id`` exactly once.

        Returns ``(claim, created)``; a reservation already claimed by the
        same account returns its original claim with ``created=False``.
        Raises ReservationNotFound, Unauthorized, AlreadyClaimed, GiftExpired.
        """

    @abstractmethod
    def list_claims(self, user_id: Optional[str] = None) -> List[dict]:
        ...

    # Expiration and refunds

    @abstractmethod
    def expire_room(self, room_id: str, now: datetime) -> Tuple[dict, int]:
        """
        Finalize expiry of an overdue room.

        Returns ``(room, expired_reservation_count)``; a no-op for rooms
        that are not yet due or already expired/cancelled.
        """

    @abstractmethod
    def refund_room(
        self, room_id: str, creator_id: str, now: datetime
    ) -> Tuple[dict, int, int]:
        """
        Return the unclaimed escrow to the creator and cancel the room.

        Returns ``(room, refund_amount, unclaimed_count)``.
        Raises RoomNotFound, Unauthorized, RefundNotAllowed,
        AlreadyRefunded, NothingToRefund.
        """

    @abstractmethod
    def sync_room_counts(self, now: datetime) -> List[dict]:
        """
        Recompute every room's joined/claimed counters from its reservations.

        Each room is corrected under its lock; active and full rooms also
        get their status re-derived from the corrected joined count.
        Returns one ``{room_id, joined_before, joined_after, claimed_before,
        claimed_after, status_before, status_after}`` entry per changed room.
        """

    # Activity log

    @abstractmethod
    def record_activity(self, activity: dict) -> None:
        ...

    @abstractmethod
    def list_activities(self, room_id: str) -> List[dict]:
        ...
