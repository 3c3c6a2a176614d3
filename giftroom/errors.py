"""Gift room error taxonomy.

Every error carries a stable ``code`` for clients and the HTTP status the
API layer renders it with.
"""

from typing import Optional


class GiftRoomError(Exception):
    """Base class for all gift room failures."""

    code = "GIFT_ROOM_ERROR"
    status_code = 400
    default_message = "Gift room request failed"

    def __init__(self, message: Optional[str] = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(GiftRoomError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid gift room request"


class NothingToRefund(ValidationError):
    code = "NOTHING_TO_REFUND"
    default_message = "Every gift in this room has been claimed; nothing to refund"


class RefundNotAllowed(ValidationError):
    code = "REFUND_NOT_ALLOWED"
    default_message = "Refunds are only available once the gift room has expired"


class InsufficientBalance(GiftRoomError):
    code = "INSUFFICIENT_BALANCE"
    status_code = 400
    default_message = "Insufficient balance"


class RoomNotFound(GiftRoomError):
    code = "ROOM_NOT_FOUND"
    status_code = 404
    default_message = "Gift room not found"


class ReservationNotFound(GiftRoomError):
    code = "RESERVATION_NOT_FOUND"
    status_code = 404
    default_message = "Reservation not found"


class RoomFull(GiftRoomError):
    code = "ROOM_FULL"
    status_code = 409
    default_message = "This gift room is full"


class RoomExpired(GiftRoomError):
    code = "ROOM_EXPIRED"
    status_code = 410
    default_message = "This gift room has expired"


class RoomUnavailable(GiftRoomError):
    code = "ROOM_UNAVAILABLE"
    status_code = 409
    default_message = "This gift room is no longer available"


class AlreadyReserved(GiftRoomError):
    code = "ALREADY_RESERVED"
    status_code = 409
    default_message = "This device already has a reservation in this gift room"


class GiftExpired(GiftRoomError):
    code = "GIFT_EXPIRED"
    status_code = 410
    default_message = "This gift has expired and can no longer be claimed"


class AlreadyClaimed(GiftRoomError):
    code = "ALREADY_CLAIMED"
    status_code = 409
    default_message = "This gift has already been claimed"


class AlreadyRefunded(GiftRoomError):
    code = "ALREADY_REFUNDED"
    status_code = 409
    default_message = "This gift room has already been refunded"


class AuthenticationRequired(GiftRoomError):
    code = "AUTH_REQUIRED"
    status_code = 401
    default_message = "Authentication required"


class Unauthorized(GiftRoomError):
    code = "UNAUTHORIZED"
    status_code = 403
    default_message = "You are not allowed to perform this action"


class RateLimited(GiftRoomError):
    code = "RATE_LIMITED"
    status_code = 429
    default_message = "Rate limit exceeded. Please wait before trying again."


class NetworkError(GiftRoomError):
    """Transient infrastructure failure; the request is safe to resend."""

    code = "NETWORK_ERROR"
    status_code = 503
    default_message = "Temporary network problem. Please try again."


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        ValidationError,
        NothingToRefund,
        RefundNotAllowed,
        InsufficientBalance,
        RoomNotFound,
        ReservationNotFound,
        RoomFull,
        RoomExpired,
        RoomUnavailable,
        AlreadyReserved,
        GiftExpired,
        AlreadyClaimed,
        AlreadyRefunded,
        AuthenticationRequired,
        Unauthorized,
        RateLimited,
        NetworkError,
    )
}


def error_from_code(code: str, message: Optional[str] = None) -> GiftRoomError:
    """Rebuild a typed error from a code raised by the database functions."""
    cls = ERRORS_BY_CODE.get(code, GiftRoomError)
    return cls(message)
