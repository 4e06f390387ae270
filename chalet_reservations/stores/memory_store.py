"""In-process store, used by tests and the command line tool."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from structlog import get_logger

from chalet_reservations.models import (
    BlockedDate,
    Booking,
    DateRange,
    PropertySettings,
    ProposedBooking,
)
from chalet_reservations.stores.base import ReservationStore, touches

logger = get_logger(__name__)


class InMemoryReservationStore(ReservationStore):
    """Dict-backed store. Not shared between processes."""

    def __init__(self, property_settings: Optional[PropertySettings] = None):
        self._settings = property_settings or PropertySettings.default()
        self._bookings: dict[str, Booking] = {}
        self._holds: dict[str, ProposedBooking] = {}
        self._blocks: dict[str, BlockedDate] = {}

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "InMemoryReservationStore":
        """Build a store from a JSON snapshot with optional
        ``settings``, ``bookings``, ``proposedBookings`` and ``blockedDates`` keys."""
        property_settings = (
            PropertySettings.model_validate(data["settings"]) if "settings" in data else None
        )
        store = cls(property_settings)
        for raw in data.get("bookings", []):
            booking = Booking.model_validate(raw)
            store._bookings[booking.id] = booking
        for raw in data.get("proposedBookings", []):
            hold = ProposedBooking.model_validate(raw)
            store._holds[hold.proposal_id] = hold
        for raw in data.get("blockedDates", []):
            block = BlockedDate.model_validate(raw)
            store._blocks[block.id] = block

        logger.info(
            "Loaded snapshot",
            bookings=len(store._bookings),
            holds=len(store._holds),
            blocks=len(store._blocks),
        )
        return store

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryReservationStore":
        with open(path) as f:
            return cls.from_snapshot(json.load(f))

    async def get_settings(self) -> PropertySettings:
        return self._settings

    async def save_settings(self, property_settings: PropertySettings) -> None:
        self._settings = property_settings

    async def list_bookings(
        self,
        room_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        return [
            booking
            for booking in self._bookings.values()
            if (room_id is None or booking.includes_room(room_id))
            and booking.id != exclude_booking_id
            and touches(booking.start_date, booking.end_date, date_range)
        ]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    async def create_booking(self, booking: Booking) -> Booking:
        self._bookings[booking.id] = booking
        return booking

    async def replace_booking(self, booking: Booking) -> Booking:
        self._bookings[booking.id] = booking
        return booking

    async def delete_booking(self, booking_id: str) -> bool:
        return self._bookings.pop(booking_id, None) is not None

    async def list_holds(
        self,
        room_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        exclude_session_id: Optional[str] = None,
    ) -> list[ProposedBooking]:
        return [
            hold
            for hold in self._holds.values()
            if (room_id is None or hold.includes_room(room_id))
            and (exclude_session_id is None or hold.session_id != exclude_session_id)
            and touches(hold.start_date, hold.end_date, date_range)
        ]

    async def get_hold(self, proposal_id: str) -> Optional[ProposedBooking]:
        return self._holds.get(proposal_id)

    async def create_hold(self, hold: ProposedBooking) -> ProposedBooking:
        self._holds[hold.proposal_id] = hold
        return hold

    async def delete_hold(self, proposal_id: str) -> int:
        return 1 if self._holds.pop(proposal_id, None) is not None else 0

    async def delete_holds_for_session(self, session_id: str) -> int:
        doomed = [pid for pid, hold in self._holds.items() if hold.session_id == session_id]
        for proposal_id in doomed:
            del self._holds[proposal_id]
        return len(doomed)

    async def delete_expired_holds(self, now: datetime) -> int:
        doomed = [pid for pid, hold in self._holds.items() if not hold.is_active(now)]
        for proposal_id in doomed:
            del self._holds[proposal_id]
        return len(doomed)

    async def list_blocks(
        self,
        room_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
    ) -> list[BlockedDate]:
        return [
            block
            for block in self._blocks.values()
            if (room_id is None or block.applies_to(room_id))
            and touches(block.start_date, block.end_date, date_range)
        ]

    async def create_block(self, block: BlockedDate) -> BlockedDate:
        self._blocks[block.id] = block
        return block

    async def delete_block(self, block_id: str) -> bool:
        return self._blocks.pop(block_id, None) is not None
