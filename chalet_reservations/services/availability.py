"""Per-day, per-room occupancy computed from bookings, holds and blocks.

Night model: for calendar day D the engine looks at two nights,
``night before = [D-1, D)`` and ``night after = [D, D+1)``.

- blocked: D lies inside an admin blockage for the room (highest priority)
- occupied: both nights held by confirmed bookings
- proposed: both nights held by another session's active hold
- edge: exactly one night taken, or one night proposed and the other
  confirmed (mixed edge); a new stay may still start or end on D
- available: neither night taken

Results are advisory: they are stale as soon as they are returned, so every
state change re-runs :meth:`AvailabilityEngine.assert_stay_available` right
before committing.
"""

import asyncio
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Any, Optional

from structlog import get_logger

from chalet_reservations.clock import Clock, utc_now
from chalet_reservations.errors import ConflictError, ValidationError
from chalet_reservations.models import (
    AvailabilityStatus,
    BlockedDate,
    Booking,
    DateRange,
    NightType,
    ProposedBooking,
    RoomAvailability,
    parse_day,
    worst_status,
)
from chalet_reservations.models.date_range import night_after, night_before
from chalet_reservations.stores import ReservationStore

logger = get_logger(__name__)

ONE_DAY = timedelta(days=1)


class AvailabilityEngine:
    """Computes room availability against a reservation store."""

    def __init__(self, store: ReservationStore, clock: Clock = utc_now):
        """Initialize the engine.

        Args:
            store: Backing reservation store
            clock: Source of the current instant, used for hold expiry
        """
        self.store = store
        self.clock = clock

    @staticmethod
    def evaluate_day(
        day: date,
        room_id: str,
        bookings: Iterable[Booking],
        holds: Iterable[ProposedBooking],
        blocks: Iterable[BlockedDate],
    ) -> RoomAvailability:
        """Pure status computation for one room and day.

        ``holds`` must already exclude expired holds and the caller's session.
        """
        for block in blocks:
            if block.applies_to(room_id) and block.date_range.contains_day(day):
                return RoomAvailability.blocked()

        before = night_before(day)
        after = night_after(day)

        confirmed_before = confirmed_after = False
        owner_email = None
        for booking in bookings:
            if not booking.includes_room(room_id):
                continue
            if booking.date_range.covers_night(before):
                confirmed_before = True
                owner_email = booking.email or owner_email
            if booking.date_range.covers_night(after):
                confirmed_after = True
                owner_email = booking.email or owner_email

        proposed_before = proposed_after = False
        for hold in holds:
            if not hold.includes_room(room_id):
                continue
            proposed_before = proposed_before or hold.date_range.covers_night(before)
            proposed_after = proposed_after or hold.date_range.covers_night(after)

        # Confirmed claims outrank proposed ones on the same night
        before_type = (
            NightType.CONFIRMED if confirmed_before
            else NightType.PROPOSED if proposed_before
            else NightType.AVAILABLE
        )
        after_type = (
            NightType.CONFIRMED if confirmed_after
            else NightType.PROPOSED if proposed_after
            else NightType.AVAILABLE
        )
        taken_before = before_type != NightType.AVAILABLE
        taken_after = after_type != NightType.AVAILABLE

        detail: dict[str, Any] = {
            "night_before": taken_before,
            "night_after": taken_after,
            "night_before_type": before_type,
            "night_after_type": after_type,
        }

        if confirmed_before and confirmed_after:
            return RoomAvailability(
                status=AvailabilityStatus.OCCUPIED, owner_email=owner_email, **detail
            )
        if before_type == NightType.PROPOSED and after_type == NightType.PROPOSED:
            return RoomAvailability(status=AvailabilityStatus.PROPOSED, **detail)

        if not taken_before and not taken_after:
            return RoomAvailability(status=AvailabilityStatus.AVAILABLE)

        # One night taken, or one confirmed and the other proposed (mixed)
        is_mixed = taken_before and taken_after
        return RoomAvailability(
            status=AvailabilityStatus.EDGE, owner_email=owner_email, is_mixed=is_mixed, **detail
        )

    async def _load(
        self,
        room_id: Optional[str],
        window: DateRange,
        exclude_session_id: Optional[str],
        exclude_booking_id: Optional[str],
    ) -> tuple[list[Booking], list[ProposedBooking], list[BlockedDate]]:
        bookings, holds, blocks = await asyncio.gather(
            self.store.list_bookings(room_id, window, exclude_booking_id),
            self.store.list_holds(room_id, window, exclude_session_id),
            self.store.list_blocks(room_id, window),
        )
        now = self.clock()
        active_holds = [hold for hold in holds if hold.is_active(now)]
        return bookings, active_holds, blocks

    async def _known_room_ids(self, room_ids: Optional[Iterable[str]] = None) -> list[str]:
        property_settings = await self.store.get_settings()
        if room_ids is None:
            return property_settings.room_ids
        ids = list(room_ids)
        for room_id in ids:
            property_settings.get_room(room_id)
        return ids

    async def get_room_availability(
        self,
        day: date | str,
        room_id: str,
        exclude_session_id: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> RoomAvailability:
        """Status of one room on one day.

        Args:
            day: Calendar day (date or YYYY-MM-DD)
            room_id: Room to check
            exclude_session_id: Ignore holds of this session (the caller's own)
            exclude_booking_id: Ignore this booking (when editing it)

        Raises:
            ValidationError: For malformed dates or unknown rooms
        """
        target = parse_day(day)
        await self._known_room_ids([room_id])

        window = DateRange(start=target - ONE_DAY, end=target + ONE_DAY)
        bookings, holds, blocks = await self._load(
            room_id, window, exclude_session_id, exclude_booking_id
        )
        return self.evaluate_day(target, room_id, bookings, holds, blocks)

    async def get_room_availability_range(
        self,
        start: date | str,
        end: date | str,
        room_id: str,
        exclude_session_id: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> dict[date, RoomAvailability]:
        """Status of one room for every day of an inclusive range, from a single read."""
        days = DateRange.of(start, end)
        await self._known_room_ids([room_id])

        window = DateRange(start=days.start - ONE_DAY, end=days.end + ONE_DAY)
        bookings, holds, blocks = await self._load(
            room_id, window, exclude_session_id, exclude_booking_id
        )
        return {
            day: self.evaluate_day(day, room_id, bookings, holds, blocks)
            for day in days.days()
        }

    async def get_bulk_availability(
        self,
        day: date | str,
        room_ids: Optional[Iterable[str]] = None,
        exclude_session_id: Optional[str] = None,
    ) -> AvailabilityStatus:
        """Worst status across rooms (every room of the property by default)."""
        ids = await self._known_room_ids(room_ids)
        results = await asyncio.gather(
            *(self.get_room_availability(day, room_id, exclude_session_id) for room_id in ids)
        )
        return worst_status(result.status for result in results)

    @staticmethod
    def is_bulk_available(status: AvailabilityStatus) -> bool:
        return status.is_selectable

    @staticmethod
    def _conflict_status(result: RoomAvailability, night_type: NightType) -> str:
        if result.status == AvailabilityStatus.BLOCKED:
            return AvailabilityStatus.BLOCKED.value
        if night_type == NightType.PROPOSED:
            return AvailabilityStatus.PROPOSED.value
        return AvailabilityStatus.OCCUPIED.value

    async def assert_stay_available(
        self,
        start: date | str,
        end: date | str,
        room_ids: Iterable[str],
        exclude_session_id: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        """Verify that a stay can claim every night of ``start..end`` in every room.

        The start day may have its night before taken and the end day its
        night after (back-to-back stays); any other taken night, or any
        blocked day, is a conflict. Rooms are checked in the given order and
        days ascending.

        Raises:
            ValidationError: For zero-night ranges or unknown rooms
            ConflictError: Naming the first conflicting day and room
        """
        stay = DateRange.of(start, end)
        if stay.nights < 1:
            raise ValidationError("A stay must span at least one night", field="endDate")

        ids = await self._known_room_ids(room_ids)
        per_room = await asyncio.gather(
            *(
                self.get_room_availability_range(
                    stay.start, stay.end, room_id, exclude_session_id, exclude_booking_id
                )
                for room_id in ids
            )
        )

        for room_id, statuses in zip(ids, per_room):
            for day, result in statuses.items():
                if result.status == AvailabilityStatus.BLOCKED:
                    conflict_type = NightType.AVAILABLE
                elif day != stay.start and result.night_before:
                    conflict_type = result.night_before_type
                elif day != stay.end and result.night_after:
                    conflict_type = result.night_after_type
                else:
                    continue

                status = self._conflict_status(result, conflict_type)
                logger.info(
                    "Availability conflict",
                    room_id=room_id,
                    date=day.isoformat(),
                    status=status,
                    session_id=exclude_session_id,
                )
                raise ConflictError.for_room(day, room_id, status)
