"""Timezone-aware time helpers."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def hours_until(moment: datetime, now: datetime) -> float:
    """Hours from ``now`` until ``moment``, floored at zero."""
    return max(0.0, (moment - now).total_seconds() / 3600)
