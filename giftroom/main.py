"""
Gift Room Backend - FastAPI Application

Main entry point for the Gift Room API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from giftroom.config import get_settings
from giftroom.database import create_store
from giftroom.errors import GiftRoomError
from giftroom.logging import configure_logging, get_logger
from giftroom.middleware import RequestContextMiddleware
from giftroom.rate_limit import limiter, rate_limit_exceeded_handler
from giftroom.routers import auth, gift_rooms

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the store once per process."""
    configure_logging()
    settings = get_settings()

    if getattr(app.state, "store", None) is None:
        app.state.store = create_store(settings)
    logger.info("Gift Room API starting up (store: %s)", settings.store_backend)

    yield

    logger.info("Gift Room API shutting down")


app = FastAPI(
    title="Gift Room API",
    description="""
    Capacity-limited gift distribution for wallet users.

    ## Features
    - Personal, group and public gift rooms funded from the creator's wallet
    - Race-free slot reservations with device-based duplicate detection
    - Exactly-once claims with referral bonus for first-time funded referrals
    - Expiry sweep and creator refunds of unclaimed gifts
    """,
    version="1.0.0",
    lifespan=lifespan
)

app.state.store = None
app.state.limiter = limiter

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(GiftRoomError)
async def gift_room_error_handler(request: Request, exc: GiftRoomError):
    """Render domain errors in the standard envelope."""
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies get the same envelope as domain validation errors."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": f"{field}: {message}" if field else message,
            "code": "VALIDATION_ERROR",
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Anything unexpected still gets the envelope; details stay in the log."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.include_router(auth.router)
app.include_router(gift_rooms.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "Gift Room API",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """Detailed health check."""
    settings = get_settings()

    return {
        "status": "healthy",
        "store_backend": settings.store_backend,
        "supabase_configured": bool(settings.supabase_url and settings.supabase_key),
        "ai_configured": bool(settings.gemini_api_key),
        "sweep_every_minutes": settings.sweep_every_minutes,
        "auto_refund_on_expiry": settings.auto_refund_on_expiry,
    }
