"""Per-client rate limiting for public gift room endpoints.

Device fingerprints are client-supplied and forgeable, so joins are also
limited by network address here.
"""

from functools import lru_cache

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from giftroom.config import get_settings
from giftroom.errors import RateLimited


def get_client_ip(request: Request) -> str:
    """
    Client IP. X-Forwarded-For is honoured only when the direct peer is one
    of ``trusted_proxies``; the nearest hop not owned by a trusted proxy wins.
    """
    peer = get_remote_address(request)
    trusted = set(get_settings().trusted_proxies)
    forwarded = request.headers.get("X-Forwarded-For")
    if not forwarded or peer not in trusted:
        return peer

    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return hops[0] if hops else peer


@lru_cache
def get_limiter() -> Limiter:
    """Create and return a cached Limiter instance."""
    settings = get_settings()
    return Limiter(
        key_func=get_client_ip,
        storage_uri=settings.rate_limit_storage_uri,
        strategy="fixed-window",
        enabled=settings.rate_limit_enabled,
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Render slowapi's rejection in the standard error envelope."""
    error = RateLimited()
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": error.message, "code": error.code},
        headers={"Retry-After": "60"},
    )
