"""Device identity for gift room reservations.

The identifier combines client signals (user agent, screen resolution,
timezone, language, platform) with a random id the client persists
locally. It is a weak correlation key used to stop the same browser from
taking several slots in one room. It is never proof of identity: any
client can forge it, which is why joins are also rate limited per IP and
claims require an authenticated account.

When the signals are unavailable the identifier falls back to a random
value per call. Every such request then looks like a new device, so
duplicate detection is effectively off for it. This is an accepted
trade-off, not a defect: testers should expect a client without stable
signals to be able to join the same room more than once.
"""

import hashlib
import secrets
from typing import Optional

from giftroom.models.reservation import DeviceFingerprint

SIGNAL_FIELDS = ("user_agent", "screen_resolution", "timezone", "language", "platform")
FALLBACK_PREFIX = "fallback-"


def is_fingerprinting_available(signals: Optional[DeviceFingerprint]) -> bool:
    """True when every signal needed for a stable identifier is present."""
    if signals is None:
        return False
    return all(getattr(signals, field) for field in SIGNAL_FIELDS) and bool(
        signals.persistent_id
    )


def fingerprint_hash(signals: DeviceFingerprint) -> str:
    """Stable SHA-256 digest of the signals and the persisted client id."""
    components = [getattr(signals, field) or "" for field in SIGNAL_FIELDS]
    components.append(signals.persistent_id or "")
    return hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()


def generate_fallback_identifier() -> str:
    """Random per-call identifier for clients without stable signals."""
    return FALLBACK_PREFIX + secrets.token_hex(12)


def get_device_identifier(signals: Optional[DeviceFingerprint]) -> str:
    """Derive the device identifier, or a random fallback."""
    if is_fingerprinting_available(signals):
        return fingerprint_hash(signals)
    return generate_fallback_identifier()


def resolve_device_hash(
    fingerprint: Optional[DeviceFingerprint],
    request_user_agent: Optional[str] = None,
) -> str:
    """
    Pick the device hash for a join request.

    Prefer a hash derived here from the submitted signals, then the hash
    the client computed itself, then the random fallback. The request's own
    User-Agent header fills in a missing ``user_agent`` signal.
    """
    if fingerprint is None:
        return generate_fallback_identifier()

    if not fingerprint.user_agent and request_user_agent:
        fingerprint = fingerprint.model_copy(update={"user_agent": request_user_agent})

    if is_fingerprinting_available(fingerprint):
        return fingerprint_hash(fingerprint)
    if fingerprint.hash:
        return fingerprint.hash.strip()[:128]
    return generate_fallback_identifier()


def is_fallback_identifier(device_hash: str) -> bool:
    return device_hash.startswith(FALLBACK_PREFIX)
