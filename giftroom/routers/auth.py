"""Session resolution against the auth provider."""

from fastapi import APIRouter, Depends, Header
from typing import List, Optional

from giftroom.database import get_store
from giftroom.errors import AuthenticationRequired, Unauthorized
from giftroom.models.claim import WalletTransaction
from giftroom.models.common import ApiResponse, ok
from giftroom.models.user import UserProfile
from giftroom.services.resilience import call_store
from giftroom.store.base import GiftRoomStore

router = APIRouter(prefix="/auth", tags=["Authentication"])


async def get_current_user(
    authorization: Optional[str] = Header(None),
    store: GiftRoomStore = Depends(get_store),
) -> Optional[UserProfile]:
    """Extract and validate current user from auth header."""
    if not authorization or not authorization.startswith("Bearer "):
        return None

    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        return None

    profile = await call_store(store.authenticate, token)
    if not profile:
        return None
    return UserProfile(**profile)


async def require_auth(user: Optional[UserProfile] = Depends(get_current_user)) -> UserProfile:
    """Require authenticated user."""
    if not user:
        raise AuthenticationRequired()
    return user


async def require_admin(user: UserProfile = Depends(require_auth)) -> UserProfile:
    """Require an authenticated admin account."""
    if not user.is_admin:
        raise Unauthorized("Admin access required")
    return user


@router.get("/me", response_model=ApiResponse[UserProfile])
async def get_me(user: UserProfile = Depends(require_auth)):
    """Get current user profile and wallet balance."""
    return ok(user)


@router.get("/transactions", response_model=ApiResponse[List[WalletTransaction]])
async def get_my_transactions(
    user: UserProfile = Depends(require_auth),
    store: GiftRoomStore = Depends(get_store),
):
    """Wallet ledger entries for the current user, newest first."""
    rows = await call_store(store.list_transactions, user.id)
    return ok([WalletTransaction(**row) for row in rows])
