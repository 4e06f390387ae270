"""Clock dependency for TTL expiry and date-based rules."""

from collections.abc import Callable
from datetime import date, datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today(clock: Clock) -> date:
    """Calendar day of the clock's current instant."""
    return clock().date()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware values are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
