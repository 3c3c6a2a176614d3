"""Statistics models."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class UserGiftStats(BaseModel):
    """The caller's own sending and receiving totals."""
    rooms_sent: int
    total_sent: int
    gifts_received: int
    total_received: int


class GiftRoomStats(BaseModel):
    """Platform-wide aggregates."""
    rooms: dict
    reservations: dict
    financial: dict
    engagement: dict
    types: dict
    user: Optional[UserGiftStats] = None
    timestamp: datetime
