"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def utc_after(seconds: float, start: datetime | None = None) -> datetime:
    """Absolute UTC instant `seconds` after `start` (default: now)."""
    return (start or utc_now()) + timedelta(seconds=seconds)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes coming back from the DB driver as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
