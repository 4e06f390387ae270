"""Reservation engine services."""

from chalet_reservations.services.allocation import GuestAllocator
from chalet_reservations.services.availability import AvailabilityEngine
from chalet_reservations.services.christmas import ChristmasPolicy
from chalet_reservations.services.holds import HoldManager
from chalet_reservations.services.pricing import (
    BulkGuestMix,
    PriceBreakdown,
    PriceCalculator,
    PriceLine,
)
from chalet_reservations.services.validator import (
    BookingRequest,
    ContactDetails,
    FlowState,
    ReservationFlow,
    ReservationValidator,
)

__all__ = [
    "GuestAllocator",
    "AvailabilityEngine",
    "ChristmasPolicy",
    "HoldManager",
    "BulkGuestMix",
    "PriceBreakdown",
    "PriceCalculator",
    "PriceLine",
    "BookingRequest",
    "ContactDetails",
    "FlowState",
    "ReservationFlow",
    "ReservationValidator",
]
