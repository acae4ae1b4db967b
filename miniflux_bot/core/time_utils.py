from __future__ import annotations

from datetime import datetime, timedelta

try:  # Python 3.11+
    from datetime import UTC
except ImportError:  # pragma: no cover - Python < 3.11
    from datetime import timezone

    UTC = timezone.utc  # noqa: UP017


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def truncate_to_second(value: datetime) -> datetime:
    """Drop sub-second precision; Miniflux reports microseconds, the store keeps seconds."""
    return ensure_utc(value).replace(microsecond=0)


def age(value: datetime, now: datetime | None = None) -> timedelta:
    """Return how long ago ``value`` was relative to ``now`` (defaults to the current time)."""
    reference = now if now is not None else utc_now()
    return ensure_utc(reference) - ensure_utc(value)
