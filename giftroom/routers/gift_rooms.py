"""Gift rooms router: create, join, claim, refund."""

from fastapi import APIRouter, Depends, Header, Query, Request
from typing import List, Optional

from giftroom.config import get_settings
from giftroom.database import get_store
from giftroom.errors import Unauthorized
from giftroom.models.claim import ClaimRequest, ClaimResult, GiftHistory
from giftroom.models.common import (
    ApiResponse,
    GeneratedMessage,
    GenerateMessageRequest,
    ok,
)
from giftroom.models.gift_room import (
    CountSyncResult,
    CreatedRoom,
    GiftRoom,
    GiftRoomActivity,
    GiftRoomCreate,
    JoinResult,
    RefundInfo,
    RefundRequest,
    RefundResult,
    RoomDetails,
    SweepResult,
)
from giftroom.models.reservation import JoinRequest, ReservationCheck
from giftroom.models.stats import GiftRoomStats
from giftroom.models.user import UserProfile
from giftroom.rate_limit import get_client_ip, limiter
from giftroom.routers.auth import get_current_user, require_admin, require_auth
from giftroom.services import activity, claims, maintenance, refunds, reservations, rooms, stats
from giftroom.services.message_writer import generate_gift_message
from giftroom.services.sweeper import run_expiration_sweep
from giftroom.store.base import GiftRoomStore

router = APIRouter(prefix="/gift-rooms", tags=["Gift Rooms"])


def request_meta(request: Request) -> dict:
    """Caller network details recorded in the activity log."""
    return {
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("user-agent"),
    }


@router.post("/create", response_model=ApiResponse[CreatedRoom])
async def create_gift_room(
    data: GiftRoomCreate,
    request: Request,
    user: UserProfile = Depends(require_auth),
    store: GiftRoomStore = Depends(get_store),
):
    """Create a gift room, escrowing capacity x amount from the caller's wallet."""
    created = await rooms.create_room(
        store,
        user.id,
        data.type,
        data.capacity,
        data.amount,
        message=data.message,
        expiration_hours=data.expiration_hours,
        **request_meta(request),
    )
    return ok(created)


@router.get("/my-rooms", response_model=ApiResponse[List[GiftRoom]])
async def get_my_rooms(
    user: UserProfile = Depends(require_auth),
    store: GiftRoomStore = Depends(get_store),
):
    """Gift rooms created by the caller."""
    return ok(await rooms.list_my_rooms(store, user.id))


@router.get("/history", response_model=ApiResponse[GiftHistory])
async def get_gift_history(
    user: UserProfile = Depends(require_auth),
    store: GiftRoomStore = Depends(get_store),
):
    """Rooms sent and gifts received by the caller."""
    return ok(await rooms.get_history(store, user.id))


@router.get("/stats", response_model=ApiResponse[GiftRoomStats])
async def get_gift_room_stats(
    user: Optional[UserProfile] = Depends(get_current_user),
    store: GiftRoomStore = Depends(get_store),
):
    """Platform statistics, plus the caller's own when signed in."""
    return ok(await stats.get_stats(store, user))


@router.get("/refund", response_model=ApiResponse[RefundInfo])
async def get_refund_info(
    room_id: str = Query(...),
    user: UserProfile = Depends(require_auth),
    store: GiftRoomStore = Depends(get_store),
):
    """Refund preview for the room's creator."""
    return ok(await refunds.get_refund_info(store, room_id, user.id))


@router.post("/refund", response_model=ApiResponse[RefundResult])
async def request_refund(
    data: RefundRequest,
    request: Request,
    user: UserProfile = Depends(require_auth),
    store: GiftRoomStore = Depends(get_store),
):
    """Refund the unclaimed part of an expired room to its creator."""
    result = await refunds.request_refund(
        store, data.room_id, user.id, **request_meta(request)
    )
    return ok(result)


@router.post("/join", response_model=ApiResponse[JoinResult])
@limiter.limit(get_settings().join_rate_limit)
async def join_gift_room(
    data: JoinRequest,
    request: Request,
    user: Optional[UserProfile] = Depends(get_current_user),
    store: GiftRoomStore = Depends(get_store),
):
    """Reserve a slot. Anonymous callers are identified by device."""
    result = await reservations.join_room(
        store,
        data.room_token,
        data.device_fingerprint,
        user=user,
        contact_info=data.contact_info,
        **request_meta(request),
    )
    return ok(result)


@router.post("/claim", response_model=ApiResponse[ClaimResult])
async def claim_gift(
    data: ClaimRequest,
    request: Request,
    user: Optional[UserProfile] = Depends(get_current_user),
    store: GiftRoomStore = Depends(get_store),
):
    """Turn a reservation into a wallet credit. Requires a signed-in account."""
    result = await claims.claim_gift(
        store,
        data.reservation_id,
        user,
        device_hash=data.device_hash,
        **request_meta(request),
    )
    return ok(result)


@router.post("/cleanup", response_model=ApiResponse[SweepResult])
async def cleanup_expired_rooms(
    authorization: Optional[str] = Header(None),
    store: GiftRoomStore = Depends(get_store),
):
    """Cron entry point for the expiration sweep."""
    settings = get_settings()
    if not settings.cron_secret or authorization != f"Bearer {settings.cron_secret}":
        raise Unauthorized("Invalid cron credentials")
    return ok(await run_expiration_sweep(store))


@router.post("/admin/sync-counts", response_model=ApiResponse[CountSyncResult])
async def sync_gift_room_counts(
    user: UserProfile = Depends(require_admin),
    store: GiftRoomStore = Depends(get_store),
):
    """Recompute room counters from reservations (admin only)."""
    return ok(await maintenance.sync_room_counts(store, user.id))


@router.post("/generate-message", response_model=ApiResponse[GeneratedMessage])
async def generate_message(data: GenerateMessageRequest):
    """Suggest a message to attach to a gift room."""
    message = await generate_gift_message(
        data.occasion,
        sender_name=data.sender_name,
        recipient_name=data.recipient_name,
        tone=data.tone,
        relationship=data.relationship,
    )
    return ok(message)


@router.get("/rooms/{room_id}/activity", response_model=ApiResponse[List[GiftRoomActivity]])
async def get_room_activity(
    room_id: str,
    user: UserProfile = Depends(require_auth),
    store: GiftRoomStore = Depends(get_store),
):
    """Audit trail for one of the caller's rooms."""
    return ok(await activity.list_room_activity(store, room_id, user.id))


@router.get("/{token}/reservation", response_model=ApiResponse[ReservationCheck])
async def check_reservation(
    token: str,
    device_hash: str = Query(...),
    store: GiftRoomStore = Depends(get_store),
):
    """Whether a device already holds a slot in this room."""
    return ok(await rooms.get_reservation_for_device(store, token, device_hash))


@router.get("/{token}", response_model=ApiResponse[RoomDetails])
async def get_gift_room(
    token: str,
    device_hash: Optional[str] = None,
    user: Optional[UserProfile] = Depends(get_current_user),
    store: GiftRoomStore = Depends(get_store),
):
    """Room details behind a share link."""
    return ok(await rooms.get_room_details(store, token, device_hash=device_hash, user=user))
