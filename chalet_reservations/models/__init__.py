"""Reservation domain models."""

from chalet_reservations.models.availability import (
    AvailabilityStatus,
    NightType,
    RoomAvailability,
    worst_status,
)
from chalet_reservations.models.booking import BlockedDate, Booking, ProposedBooking
from chalet_reservations.models.date_range import DateRange, days_between, parse_day
from chalet_reservations.models.property import (
    BulkPriceTable,
    ChristmasPeriod,
    PropertySettings,
    RoomRates,
)
from chalet_reservations.models.room import (
    AgeBand,
    GuestCategory,
    GuestCounts,
    GuestRecord,
    Room,
    SizeClass,
)

__all__ = [
    "AvailabilityStatus",
    "NightType",
    "RoomAvailability",
    "worst_status",
    "Booking",
    "ProposedBooking",
    "BlockedDate",
    "DateRange",
    "days_between",
    "parse_day",
    "BulkPriceTable",
    "ChristmasPeriod",
    "PropertySettings",
    "RoomRates",
    "AgeBand",
    "GuestCategory",
    "GuestCounts",
    "GuestRecord",
    "Room",
    "SizeClass",
]
