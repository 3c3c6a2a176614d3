"""Gift room models."""

from enum import Enum
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from giftroom.models.user import CreatorInfo
from giftroom.models.reservation import Reservation


class GiftRoomType(str, Enum):
    """Who a gift room is meant for."""
    PERSONAL = "personal"
    GROUP = "group"
    PUBLIC = "public"


class GiftRoomStatus(str, Enum):
    """Gift room lifecycle status."""
    ACTIVE = "active"
    FULL = "full"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# Inclusive (min, max) capacity per room type
CAPACITY_LIMITS = {
    GiftRoomType.PERSONAL: (1, 1),
    GiftRoomType.GROUP: (2, 50),
    GiftRoomType.PUBLIC: (2, 1000),
}

TYPE_LABELS = {
    GiftRoomType.PERSONAL: "Personal Gift",
    GiftRoomType.GROUP: "Group Gift",
    GiftRoomType.PUBLIC: "Public Giveaway",
}


class GiftRoomCreate(BaseModel):
    """Payload to create a gift room."""
    type: GiftRoomType
    capacity: int
    amount: int
    message: Optional[str] = None
    expiration_hours: Optional[int] = None


class GiftRoom(BaseModel):
    """Full gift room record."""
    id: str
    token: str
    creator_id: str
    type: GiftRoomType
    capacity: int
    amount_per_gift: int
    total_amount: int
    joined_count: int = 0
    claimed_count: int = 0
    status: GiftRoomStatus = GiftRoomStatus.ACTIVE
    message: Optional[str] = None
    refunded_amount: int = 0
    refunded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    expires_at: datetime

    class Config:
        from_attributes = True

    @property
    def spots_remaining(self) -> int:
        return max(0, self.capacity - self.joined_count)

    @property
    def unclaimed_count(self) -> int:
        return self.capacity - self.claimed_count

    def effective_status(self, now: datetime) -> GiftRoomStatus:
        """Status as of ``now``; expiry is derived when not yet swept."""
        if self.status in (GiftRoomStatus.CANCELLED, GiftRoomStatus.EXPIRED):
            return self.status
        if now >= self.expires_at:
            return GiftRoomStatus.EXPIRED
        if self.joined_count >= self.capacity:
            return GiftRoomStatus.FULL
        return GiftRoomStatus.ACTIVE

    def as_of(self, now: datetime) -> "GiftRoom":
        """Copy of the room with its status derived for display."""
        return self.model_copy(update={"status": self.effective_status(now)})


class CreatedRoom(BaseModel):
    """Result of creating a gift room."""
    room: GiftRoom
    token: str
    share_url: str
    created: bool = True


class RoomDetails(BaseModel):
    """Everything a visitor to a share link needs to see."""
    room: GiftRoom
    creator: CreatorInfo
    user_reservation: Optional[Reservation] = None
    can_join: bool
    spots_remaining: int
    type_label: str
    time_remaining_hours: float


class JoinResult(BaseModel):
    """Reservation outcome; ``created`` is False for a repeated join."""
    reservation: Reservation
    room: GiftRoom
    created: bool


class RefundInfo(BaseModel):
    """Refund preview for a room's creator."""
    room_id: str
    status: GiftRoomStatus
    total_capacity: int
    claimed_count: int
    unclaimed_count: int
    amount_per_gift: int
    potential_refund_amount: int
    can_refund: bool
    is_expired: bool
    created_at: datetime
    expires_at: datetime


class RefundRequest(BaseModel):
    """Payload to refund an expired room."""
    room_id: str


class RefundResult(BaseModel):
    """Outcome of a processed refund."""
    room_id: str
    refund_amount: int
    unclaimed_count: int
    message: str


class ActivityType(str, Enum):
    """Audit events recorded against a room."""
    CREATED = "created"
    JOINED = "joined"
    CLAIMED = "claimed"
    EXPIRED = "expired"
    REFUNDED = "refunded"


class GiftRoomActivity(BaseModel):
    """Audit log entry."""
    id: str
    room_id: Optional[str] = None
    user_id: Optional[str] = None
    activity_type: ActivityType
    details: dict = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class SweepResult(BaseModel):
    """Counts from one expiration sweep."""
    expired_rooms: int = 0
    expired_reservations: int = 0
    refunded_rooms: int = 0
    refunded_amount: int = 0
    errors: List[str] = []


class RoomCountChange(BaseModel):
    """One room whose counters were corrected by a sync."""
    room_id: str
    joined_before: int
    joined_after: int
    claimed_before: int
    claimed_after: int
    status_before: GiftRoomStatus
    status_after: GiftRoomStatus


class CountSyncResult(BaseModel):
    """Outcome of reconciling room counters with their reservations."""
    updated_rooms: int
    changes: List[RoomCountChange] = []
    message: str
