"""Reservation and device fingerprint models."""

from enum import Enum
from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional


class ReservationStatus(str, Enum):
    """Reservation lifecycle status."""
    HELD = "held"
    CLAIMED = "claimed"
    EXPIRED = "expired"


class HolderType(str, Enum):
    """What ``holder_ref`` identifies."""
    ACCOUNT = "account"
    DEVICE = "device"


class ContactInfo(BaseModel):
    """Optional contact details left by anonymous joiners."""
    name: Optional[str] = Field(default=None, max_length=120)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=32)


class DeviceFingerprint(BaseModel):
    """Client signals sent along with a join."""
    user_agent: Optional[str] = None
    screen_resolution: Optional[str] = None
    timezone: Optional[str] = None
    language: Optional[str] = None
    platform: Optional[str] = None
    persistent_id: Optional[str] = None
    hash: Optional[str] = None


class Reservation(BaseModel):
    """A held capacity slot in a gift room."""
    id: str
    room_id: str
    holder_ref: str
    holder_type: HolderType
    device_fingerprint_hash: str
    status: ReservationStatus = ReservationStatus.HELD
    contact_info: Optional[ContactInfo] = None
    created_at: datetime
    claimed_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JoinRequest(BaseModel):
    """Payload to join a gift room."""
    room_token: str
    device_fingerprint: DeviceFingerprint
    contact_info: Optional[ContactInfo] = None


class ReservationCheck(BaseModel):
    """Whether a device already holds a slot in a room."""
    has_reservation: bool
    reservation: Optional[Reservation] = None
