"""Shared test doubles and builders."""

from datetime import datetime, timedelta

from chalet_reservations.models import Booking, GuestCounts

CHRISTMAS_CODE = "XMAS2025"


class MutableClock:
    """Clock whose current instant tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_booking(room_ids, start, end, email="guest@example.com", **kwargs) -> Booking:
    """Build a confirmed booking with sensible defaults."""
    return Booking(
        rooms=list(room_ids),
        start_date=start,
        end_date=end,
        guests=kwargs.pop("guests", GuestCounts(adults=2)),
        email=email,
        **kwargs,
    )
