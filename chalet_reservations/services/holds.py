"""Proposed booking (hold) lifecycle.

A hold makes a date range provisionally unavailable to other sessions while
one user completes the booking form. It ends by explicit deletion (removed
from the cart, final submission, cleanup) or by TTL expiry. Expired holds are
ignored by every availability computation even before the sweep removes them.
"""

from datetime import date, timedelta
from typing import Optional

from structlog import get_logger

from chalet_reservations.clock import Clock, utc_now
from chalet_reservations.config import settings
from chalet_reservations.errors import ExpiredHoldError, ValidationError
from chalet_reservations.models import (
    DateRange,
    GuestCategory,
    GuestCounts,
    ProposedBooking,
)
from chalet_reservations.services.availability import AvailabilityEngine
from chalet_reservations.stores import ReservationStore

logger = get_logger(__name__)


class HoldManager:
    """Creates, queries and expires session-scoped holds."""

    def __init__(
        self,
        store: ReservationStore,
        engine: Optional[AvailabilityEngine] = None,
        clock: Clock = utc_now,
        ttl: Optional[timedelta] = None,
    ):
        """Initialize the hold manager.

        Args:
            store: Backing reservation store
            engine: Availability engine sharing the same store and clock
            clock: Source of the current instant
            ttl: Hold lifetime, defaults to settings.engine.hold_ttl_minutes
        """
        self.store = store
        self.clock = clock
        self.engine = engine or AvailabilityEngine(store, clock)
        self.ttl = ttl or timedelta(minutes=settings.engine.hold_ttl_minutes)

    async def create_hold(
        self,
        start_date: date | str,
        end_date: date | str,
        rooms: list[str],
        guests: GuestCounts,
        guest_category: GuestCategory,
        total_price: int,
        session_id: str,
        is_bulk_booking: bool = False,
    ) -> str:
        """Create a hold after a fresh availability check.

        The check excludes the caller's own session. Creation is
        all-or-nothing: one record covers every requested room, and nothing
        is written when any room/date conflicts.

        Returns:
            The new proposal id

        Raises:
            ValidationError: For empty room lists, missing session or zero nights
            ConflictError: Naming the first conflicting date and room
        """
        if not session_id:
            raise ValidationError("A session id is required", field="sessionId")
        if not rooms:
            raise ValidationError("At least one room is required", field="rooms")

        stay = DateRange.of(start_date, end_date)
        await self.engine.assert_stay_available(
            stay.start, stay.end, rooms, exclude_session_id=session_id
        )

        now = self.clock()
        hold = ProposedBooking(
            session_id=session_id,
            start_date=stay.start,
            end_date=stay.end,
            rooms=list(rooms),
            guests=guests,
            guest_category=guest_category,
            total_price=total_price,
            is_bulk_booking=is_bulk_booking,
            created_at=now,
            expires_at=now + self.ttl,
        )
        await self.store.create_hold(hold)

        logger.info(
            "Created proposed booking",
            proposal_id=hold.proposal_id,
            session_id=session_id,
            rooms=hold.rooms,
            start_date=stay.start.isoformat(),
            end_date=stay.end.isoformat(),
            expires_at=hold.expires_at.isoformat(),
        )
        return hold.proposal_id

    async def get_hold(self, proposal_id: str) -> ProposedBooking:
        """Return an active hold.

        Raises:
            ExpiredHoldError: If the hold expired or no longer exists
        """
        hold = await self.store.get_hold(proposal_id)
        if hold is None or not hold.is_active(self.clock()):
            raise ExpiredHoldError(proposal_id)
        return hold

    async def list_session_holds(self, session_id: str) -> list[ProposedBooking]:
        """Active holds of one session, oldest first."""
        now = self.clock()
        holds = [
            hold
            for hold in await self.store.list_holds()
            if hold.session_id == session_id and hold.is_active(now)
        ]
        return sorted(holds, key=lambda hold: hold.created_at)

    async def delete_hold(self, proposal_id: str) -> int:
        """Delete one hold. Deleting a missing hold is not an error."""
        removed = await self.store.delete_hold(proposal_id)
        logger.debug("Deleted proposed booking", proposal_id=proposal_id, removed=removed)
        return removed

    async def delete_holds_for_session(self, session_id: str) -> int:
        """Delete every hold of a session. Idempotent."""
        removed = await self.store.delete_holds_for_session(session_id)
        if removed:
            logger.info("Deleted session proposed bookings", session_id=session_id, removed=removed)
        return removed

    async def expire_holds(self) -> int:
        """Sweep holds with ``expires_at <= now``."""
        removed = await self.store.delete_expired_holds(self.clock())
        if removed:
            logger.info("Expired proposed bookings", removed=removed)
        return removed
