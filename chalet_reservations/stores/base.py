"""Store interface (repository pattern).

Stores are swappable and return domain models. Every method is a suspension
point: two sessions may interleave between any two awaited calls, so callers
re-check availability immediately before committing.

Range filters are coarse: a record matches ``date_range`` when its inclusive
day span touches the range. The engine applies the exact night rules itself.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from chalet_reservations.models import (
    BlockedDate,
    Booking,
    DateRange,
    PropertySettings,
    ProposedBooking,
)


def touches(start, end, date_range: Optional[DateRange]) -> bool:
    """Coarse inclusive-day filter shared by store implementations."""
    if date_range is None:
        return True
    return start <= date_range.end and date_range.start <= end


class ReservationStore(ABC):
    """Interface for reservation persistence operations."""

    @abstractmethod
    async def get_settings(self) -> PropertySettings:
        """Return rooms, price tables and Christmas periods."""
        ...

    @abstractmethod
    async def save_settings(self, property_settings: PropertySettings) -> None:
        ...

    @abstractmethod
    async def list_bookings(
        self,
        room_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        """Return confirmed bookings, optionally filtered by room and range."""
        ...

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Return a booking by ID, or None if not found."""
        ...

    @abstractmethod
    async def create_booking(self, booking: Booking) -> Booking:
        ...

    @abstractmethod
    async def replace_booking(self, booking: Booking) -> Booking:
        """Replace a stored booking wholesale (never partially)."""
        ...

    @abstractmethod
    async def delete_booking(self, booking_id: str) -> bool:
        ...

    @abstractmethod
    async def list_holds(
        self,
        room_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        exclude_session_id: Optional[str] = None,
    ) -> list[ProposedBooking]:
        """Return stored holds. Expired rows may still be present."""
        ...

    @abstractmethod
    async def get_hold(self, proposal_id: str) -> Optional[ProposedBooking]:
        ...

    @abstractmethod
    async def create_hold(self, hold: ProposedBooking) -> ProposedBooking:
        ...

    @abstractmethod
    async def delete_hold(self, proposal_id: str) -> int:
        """Delete one hold. Returns the number of rows removed (0 or 1)."""
        ...

    @abstractmethod
    async def delete_holds_for_session(self, session_id: str) -> int:
        ...

    @abstractmethod
    async def delete_expired_holds(self, now: datetime) -> int:
        """Delete holds whose ``expires_at <= now``."""
        ...

    @abstractmethod
    async def list_blocks(
        self,
        room_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
    ) -> list[BlockedDate]:
        ...

    @abstractmethod
    async def create_block(self, block: BlockedDate) -> BlockedDate:
        ...

    @abstractmethod
    async def delete_block(self, block_id: str) -> bool:
        ...

    async def close(self) -> None:
        """Release backend resources."""
        return None
