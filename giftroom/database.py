"""Store construction and request-scoped access."""

from fastapi import Request
from supabase import create_client, Client

from giftroom.config import Settings, get_settings
from giftroom.store.base import GiftRoomStore
from giftroom.store.memory import InMemoryGiftRoomStore
from giftroom.store.supabase import SupabaseGiftRoomStore


def create_supabase_admin(settings: Settings) -> Client:
    """Supabase client with the service role key; bypasses RLS for the RPCs."""
    return create_client(
        settings.supabase_url,
        settings.supabase_service_key or settings.supabase_key
    )


def create_store(settings: Settings = None) -> GiftRoomStore:
    """Build the process-wide store handle. Called once from the app lifespan."""
    settings = settings or get_settings()

    if settings.store_backend == "memory":
        return InMemoryGiftRoomStore()
    if settings.store_backend == "supabase":
        return SupabaseGiftRoomStore(create_supabase_admin(settings))
    raise ValueError(f"Unknown store backend: {settings.store_backend}")


def get_store(request: Request) -> GiftRoomStore:
    """FastAPI dependency returning the store attached at startup."""
    return request.app.state.store
