"""Claim processor: converting held reservations into wallet credits."""

import uuid
from datetime import datetime
from typing import Optional

from giftroom.config import get_settings
from giftroom.datetime_utils import utc_now
from giftroom.errors import AuthenticationRequired
from giftroom.logging import get_logger
from giftroom.models.claim import ClaimResult, GiftClaim
from giftroom.models.gift_room import ActivityType
from giftroom.models.user import UserProfile
from giftroom.services.activity import log_activity
from giftroom.services.resilience import call_store
from giftroom.store.base import GiftRoomStore

logger = get_logger(__name__)


async def claim_gift(
    store: GiftRoomStore,
    reservation_id: str,
    claimant: Optional[UserProfile],
    device_hash: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ClaimResult:
    """
    Pay a reservation's gift into the claimant's wallet, exactly once.

    Anonymous reservations are bound to the claiming account when the
    presented ``device_hash`` matches the one they were made from. Claiming
    an already-claimed reservation returns the original payout instead of
    crediting again. A held reservation on a room past its expiry can still
    be claimed until the sweep or a refund expires it.
    """
    if claimant is None:
        raise AuthenticationRequired(
            "Authentication required. Please sign up or log in to claim your gift."
        )

    settings = get_settings()
    now = now or utc_now()

    row, created = await call_store(
        store.settle_claim,
        reservation_id,
        str(uuid.uuid4()),
        claimant.id,
        device_hash,
        settings.referral_bonus_amount,
        now,
    )
    claim = GiftClaim(**row)

    if created:
        logger.info(
            "Reservation %s claimed by %s: ₦%d (referral bonus: %s)",
            reservation_id, claimant.id, claim.amount, claim.referral_bonus_awarded,
            extra={
                "room_id": claim.room_id,
                "reservation_id": reservation_id,
                "claim_id": claim.id,
                "user_id": claimant.id,
            },
        )
        await log_activity(
            store,
            ActivityType.CLAIMED,
            claim.room_id,
            user_id=claimant.id,
            details={
                "claim_id": claim.id,
                "amount": claim.amount,
                "referral_bonus_awarded": claim.referral_bonus_awarded,
            },
            ip_address=ip_address,
            user_agent=user_agent,
        )
    else:
        logger.info("Reservation %s was already claimed; returning claim %s", reservation_id, claim.id)

    return ClaimResult(
        claim_id=claim.id,
        amount=claim.amount,
        referral_bonus_awarded=claim.referral_bonus_awarded,
        already_claimed=not created,
    )
