"""Claim and wallet ledger models."""

from enum import Enum
from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List

from giftroom.models.gift_room import GiftRoom


class GiftClaim(BaseModel):
    """A completed payout for one reservation."""
    id: str
    reservation_id: str
    room_id: str
    user_id: str
    amount: int
    referral_bonus_awarded: bool = False
    transaction_id: Optional[str] = None
    claimed_at: datetime

    class Config:
        from_attributes = True


class ClaimRequest(BaseModel):
    """Payload to claim a reserved gift."""
    reservation_id: str
    device_hash: Optional[str] = None


class ClaimResult(BaseModel):
    """Claim outcome returned to the client."""
    claim_id: str
    amount: int
    referral_bonus_awarded: bool
    already_claimed: bool = False


class TransactionType(str, Enum):
    """Ledger entry kinds produced by gift rooms."""
    GIFT_ESCROW = "gift_escrow"
    GIFT_CLAIM = "gift_claim"
    GIFT_REFUND = "gift_refund"
    REFERRAL_BONUS = "referral_bonus"


class TransactionDirection(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class WalletTransaction(BaseModel):
    """Audited balance mutation."""
    id: str
    user_id: str
    idempotency_key: str
    transaction_type: TransactionType
    direction: TransactionDirection
    amount: int
    balance_before: int
    balance_after: int
    reference_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime


class ReceivedGift(GiftClaim):
    """A claim joined with the room it came from."""
    room: Optional[GiftRoom] = None


class GiftHistory(BaseModel):
    """Sent rooms and received gifts for one account."""
    sent: List[GiftRoom]
    received: List[ReceivedGift]
    total_sent: int
    total_received: int
