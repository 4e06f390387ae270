"""Reservation flow orchestration.

States: SELECTING -> HOLD_CREATED -> FINALIZING -> CONFIRMED, and any state
-> ABANDONED. Availability is re-checked at every transition that changes
state (select, finalize, submit); an earlier check is only advisory. Losing a
race at commit is an expected outcome reported as a ConflictError, after
which the user re-selects dates.
"""

import secrets
from datetime import timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from structlog import get_logger

from chalet_reservations.clock import Clock, today, utc_now
from chalet_reservations.config import settings
from chalet_reservations.errors import (
    EXPECTED_ERRORS,
    CapacityError,
    NotFoundError,
    ReservationError,
    ValidationError,
)
from chalet_reservations.models import (
    AgeBand,
    Booking,
    DateRange,
    GuestCategory,
    GuestCounts,
    GuestRecord,
    PropertySettings,
    Room,
)
from chalet_reservations.models.booking import generate_session_id
from chalet_reservations.services.allocation import GuestAllocator
from chalet_reservations.services.availability import AvailabilityEngine
from chalet_reservations.services.christmas import ChristmasPolicy
from chalet_reservations.services.holds import HoldManager
from chalet_reservations.services.pricing import BulkGuestMix, PriceCalculator
from chalet_reservations.stores import ReservationStore

logger = get_logger(__name__)


class FlowState(str, Enum):
    SELECTING = "selecting"
    HOLD_CREATED = "hold_created"
    FINALIZING = "finalizing"
    CONFIRMED = "confirmed"
    ABANDONED = "abandoned"


class BookingRequest(BaseModel):
    """What the user selected: dates, rooms, party and category."""

    start_date: Any = Field(alias="startDate")
    end_date: Any = Field(alias="endDate")
    rooms: list[str] = Field(default_factory=list)
    guests: GuestCounts = Field(default_factory=GuestCounts)
    per_room_guests: dict[str, GuestCounts] = Field(default_factory=dict, alias="perRoomGuests")
    guest_category: GuestCategory = Field(default=GuestCategory.EXTERNAL, alias="guestCategory")
    guest_records: list[GuestRecord] = Field(default_factory=list, alias="guestRecords")
    is_bulk_booking: bool = Field(default=False, alias="isBulkBooking")
    christmas_code: Optional[str] = Field(default=None, alias="christmasCode")

    model_config = ConfigDict(populate_by_name=True)


class ContactDetails(BaseModel):
    name: str
    email: str
    phone: str = ""
    notes: str = ""


class PreparedBooking(BaseModel):
    """Validated request with its allocation and authoritative price."""

    stay: DateRange
    rooms: list[str]
    allocation: dict[str, GuestCounts]
    total_price: int
    warnings: list[str] = Field(default_factory=list)


class ReservationFlow:
    """State of one session's reservation flow.

    Transition methods of :class:`ReservationValidator` update this object
    and leave the last expected failure in ``error``.
    """

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or generate_session_id()
        self.state = FlowState.SELECTING
        self.request: Optional[BookingRequest] = None
        self.proposal_id: Optional[str] = None
        self.prepared: Optional[PreparedBooking] = None
        self.booking: Optional[Booking] = None
        self.warnings: list[str] = []
        self.error: Optional[ReservationError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def fail(self, error: ReservationError, state: FlowState = FlowState.SELECTING) -> None:
        self.error = error
        self.state = state

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "state": self.state.value,
            "proposalId": self.proposal_id,
            "totalPrice": self.prepared.total_price if self.prepared else None,
            "bookingId": self.booking.id if self.booking else None,
            "editToken": self.booking.edit_token if self.booking else None,
            "warnings": self.warnings,
            "error": self.error.to_dict() if self.error else None,
        }


class ReservationValidator:
    """Accepts or rejects booking requests and drives the flow state machine."""

    def __init__(
        self,
        store: ReservationStore,
        clock: Clock = utc_now,
        hold_manager: Optional[HoldManager] = None,
        christmas_policy: Optional[ChristmasPolicy] = None,
    ):
        self.store = store
        self.clock = clock
        self.engine = hold_manager.engine if hold_manager else AvailabilityEngine(store, clock)
        self.holds = hold_manager or HoldManager(store, self.engine, clock)
        self.christmas = christmas_policy or ChristmasPolicy()

    # Request validation

    def _validate_shape(self, request: BookingRequest) -> DateRange:
        """Checks that need no store access."""
        stay = DateRange.of(request.start_date, request.end_date)
        if stay.nights < 1:
            raise ValidationError("A booking must span at least one night", field="endDate")

        if request.guests.paying < 1:
            raise ValidationError("At least one adult or child is required", field="guests")

        if len(set(request.rooms)) != len(request.rooms):
            raise ValidationError("Rooms must not repeat", field="rooms")
        if not request.rooms and not request.is_bulk_booking:
            raise ValidationError("At least one room is required", field="rooms")

        current_day = today(self.clock)
        if stay.start < current_day and not settings.engine.allow_past_dates:
            raise ValidationError("Dates in the past cannot be booked", field="startDate")
        if stay.start > current_day + timedelta(days=settings.engine.max_advance_days):
            raise ValidationError("Bookings cannot start that far ahead", field="startDate")
        return stay

    @staticmethod
    def _resolve_rooms(request: BookingRequest, property_settings: PropertySettings) -> list[Room]:
        if request.is_bulk_booking:
            if request.rooms and set(request.rooms) != set(property_settings.room_ids):
                raise ValidationError("A bulk booking covers every room", field="rooms")
            return list(property_settings.rooms)
        return [property_settings.get_room(room_id) for room_id in request.rooms]

    @staticmethod
    def _allocate(request: BookingRequest, rooms: list[Room]) -> dict[str, GuestCounts]:
        if len(rooms) == 1:
            room = rooms[0]
            if request.guests.paying > room.beds:
                raise CapacityError(requested=request.guests.paying, capacity=room.beds, room_id=room.id)
            return {room.id: request.guests}

        if request.per_room_guests:
            room_ids = {room.id for room in rooms}
            if set(request.per_room_guests) != room_ids:
                raise ValidationError("Per-room guests must list every selected room", field="perRoomGuests")
            total = GuestCounts()
            for room in rooms:
                counts = request.per_room_guests[room.id]
                if counts.paying > room.beds:
                    raise CapacityError(requested=counts.paying, capacity=room.beds, room_id=room.id)
                total = total + counts
            if (total.adults, total.children) != (request.guests.adults, request.guests.children):
                raise ValidationError("Per-room guests do not add up to the party", field="perRoomGuests")
            return {room.id: request.per_room_guests[room.id] for room in rooms}

        return GuestAllocator.allocate(
            request.guests.adults, request.guests.children, rooms, request.guests.toddlers
        )

    @staticmethod
    def _records_for_room(request: BookingRequest, room: Room, room_count: int) -> list[GuestRecord]:
        return [
            r
            for r in request.guest_records
            if r.room_id == room.id or (r.room_id is None and room_count == 1)
        ]

    @staticmethod
    def _record_counts(records: list[GuestRecord]) -> tuple[int, int]:
        adults = sum(1 for r in records if r.age_band == AgeBand.ADULT)
        children = sum(1 for r in records if r.age_band == AgeBand.CHILD)
        return adults, children

    @staticmethod
    def _check_guest_records(
        request: BookingRequest, rooms: list[Room], allocation: dict[str, GuestCounts]
    ) -> None:
        """Individually tagged guests must match the party they price.

        Raises:
            ValidationError: If records disagree with the guest counts
        """
        if not request.guest_records:
            return

        if request.is_bulk_booking:
            expected = (request.guests.adults, request.guests.children)
            if ReservationValidator._record_counts(request.guest_records) != expected:
                raise ValidationError(
                    "Guest records do not match the party", field="guestRecords"
                )
            return

        assigned = 0
        for room in rooms:
            records = ReservationValidator._records_for_room(request, room, len(rooms))
            if not records:
                continue
            assigned += len(records)
            counts = allocation[room.id]
            if ReservationValidator._record_counts(records) != (counts.adults, counts.children):
                raise ValidationError(
                    f"Guest records do not match the guests of room {room.id}",
                    field="guestRecords",
                )

        if assigned != len(request.guest_records):
            raise ValidationError(
                "Every guest record must name one of the selected rooms", field="guestRecords"
            )

    @staticmethod
    def _price(
        request: BookingRequest,
        property_settings: PropertySettings,
        rooms: list[Room],
        allocation: dict[str, GuestCounts],
        nights: int,
    ) -> int:
        if request.is_bulk_booking:
            mix = (
                BulkGuestMix.from_records(request.guest_records)
                if request.guest_records
                else BulkGuestMix.uniform(
                    request.guest_category, request.guests.adults, request.guests.children
                )
            )
            return PriceCalculator.calculate_bulk_price(property_settings, mix, nights)

        total = 0
        for room in rooms:
            records = ReservationValidator._records_for_room(request, room, len(rooms))
            if records:
                total += PriceCalculator.calculate_room_price_for_guests(
                    property_settings, room.size_class, records, nights, request.guest_category
                )
            else:
                counts = allocation[room.id]
                total += PriceCalculator.calculate_stay_price(
                    property_settings,
                    room.size_class,
                    request.guest_category,
                    counts.adults,
                    counts.children,
                    nights,
                )
        return total

    async def prepare(
        self,
        request: BookingRequest,
        session_id: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
        check_availability: bool = True,
    ) -> PreparedBooking:
        """Validate a request end to end and compute its price.

        Raises:
            ValidationError, CapacityError, ChristmasRestrictionError, ConflictError
        """
        stay = self._validate_shape(request)
        property_settings = await self.store.get_settings()

        rooms = self._resolve_rooms(request, property_settings)
        allocation = self._allocate(request, rooms)
        self._check_guest_records(request, rooms, allocation)
        room_ids = [room.id for room in rooms]

        warnings = self.christmas.check(
            property_settings,
            stay,
            room_count=len(rooms),
            guest_category=request.guest_category,
            is_bulk_booking=request.is_bulk_booking,
            today=today(self.clock),
            access_code=request.christmas_code,
        )

        if check_availability:
            await self.engine.assert_stay_available(
                stay.start,
                stay.end,
                room_ids,
                exclude_session_id=session_id,
                exclude_booking_id=exclude_booking_id,
            )

        total_price = self._price(request, property_settings, rooms, allocation, stay.nights)
        return PreparedBooking(
            stay=stay,
            rooms=room_ids,
            allocation=allocation,
            total_price=total_price,
            warnings=warnings,
        )

    # Transitions

    async def select(self, flow: ReservationFlow, request: BookingRequest) -> ReservationFlow:
        """SELECTING -> HOLD_CREATED. Re-selecting from HOLD_CREATED replaces the hold."""
        log = logger.bind(session_id=flow.session_id)
        flow.error = None

        if flow.state not in (FlowState.SELECTING, FlowState.HOLD_CREATED):
            flow.fail(ValidationError(f"Cannot select dates in state {flow.state.value}", field="state"), flow.state)
            return flow

        previous_proposal = flow.proposal_id
        try:
            await self.holds.expire_holds()
            prepared = await self.prepare(request, session_id=flow.session_id, check_availability=False)
            proposal_id = await self.holds.create_hold(
                prepared.stay.start,
                prepared.stay.end,
                prepared.rooms,
                request.guests,
                request.guest_category,
                prepared.total_price,
                flow.session_id,
                is_bulk_booking=request.is_bulk_booking,
            )
        except EXPECTED_ERRORS as e:
            log.info("Selection rejected", error=str(e))
            flow.fail(e, FlowState.HOLD_CREATED if previous_proposal else FlowState.SELECTING)
            return flow

        if previous_proposal:
            await self.holds.delete_hold(previous_proposal)

        flow.request = request
        flow.prepared = prepared
        flow.proposal_id = proposal_id
        flow.warnings = prepared.warnings
        flow.state = FlowState.HOLD_CREATED
        log.info("Hold created", proposal_id=proposal_id, total_price=prepared.total_price)
        return flow

    async def finalize(self, flow: ReservationFlow) -> ReservationFlow:
        """HOLD_CREATED -> FINALIZING, after re-checking availability."""
        log = logger.bind(session_id=flow.session_id)
        flow.error = None

        if flow.state != FlowState.HOLD_CREATED or flow.request is None or flow.proposal_id is None:
            flow.fail(ValidationError(f"Cannot finalize in state {flow.state.value}", field="state"), flow.state)
            return flow

        try:
            await self.holds.expire_holds()
            await self.holds.get_hold(flow.proposal_id)
            flow.prepared = await self.prepare(flow.request, session_id=flow.session_id)
        except EXPECTED_ERRORS as e:
            log.info("Finalize rejected", error=str(e))
            await self._release(flow)
            flow.fail(e)
            return flow

        flow.warnings = flow.prepared.warnings
        flow.state = FlowState.FINALIZING
        return flow

    async def submit(self, flow: ReservationFlow, contact: ContactDetails) -> ReservationFlow:
        """FINALIZING -> CONFIRMED: last guard, persist, clear the session's holds."""
        log = logger.bind(session_id=flow.session_id)
        flow.error = None

        if flow.state != FlowState.FINALIZING or flow.request is None:
            flow.fail(ValidationError(f"Cannot submit in state {flow.state.value}", field="state"), flow.state)
            return flow

        request = flow.request
        try:
            prepared = await self.prepare(request, session_id=flow.session_id)
        except EXPECTED_ERRORS as e:
            log.info("Submit rejected", error=str(e))
            await self._release(flow)
            flow.fail(e)
            return flow

        now = self.clock()
        booking = Booking(
            rooms=prepared.rooms,
            start_date=prepared.stay.start,
            end_date=prepared.stay.end,
            guests=request.guests,
            per_room_guests=prepared.allocation,
            guest_category=request.guest_category,
            guest_records=request.guest_records,
            total_price=prepared.total_price,
            is_bulk_booking=request.is_bulk_booking,
            name=contact.name,
            email=contact.email,
            phone=contact.phone,
            notes=contact.notes,
            session_id=flow.session_id,
            created_at=now,
            updated_at=now,
        )
        await self.store.create_booking(booking)
        await self.holds.delete_holds_for_session(flow.session_id)

        flow.booking = booking
        flow.prepared = prepared
        flow.proposal_id = None
        flow.warnings = prepared.warnings
        flow.state = FlowState.CONFIRMED
        log.info("Booking confirmed", booking_id=booking.id, total_price=booking.total_price)
        return flow

    async def abandon(self, flow: ReservationFlow) -> ReservationFlow:
        """Any state -> ABANDONED. Holds would also lapse through their TTL."""
        if flow.state != FlowState.CONFIRMED:
            await self._release(flow)
        flow.state = FlowState.ABANDONED
        return flow

    async def _release(self, flow: ReservationFlow) -> None:
        await self.holds.delete_holds_for_session(flow.session_id)
        flow.proposal_id = None

    # Edit-token operations

    async def _authorized_booking(self, booking_id: str, edit_token: str) -> Booking:
        booking = await self.store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        if not secrets.compare_digest(booking.edit_token, edit_token or ""):
            raise ValidationError("Invalid edit token", field="editToken")
        return booking

    async def modify_booking(
        self,
        booking_id: str,
        edit_token: str,
        request: BookingRequest,
        session_id: Optional[str] = None,
    ) -> Booking:
        """Replace a booking wholesale after validating the new request.

        The booking's own nights do not conflict with its new dates.

        Raises:
            NotFoundError, ValidationError, CapacityError,
            ChristmasRestrictionError, ConflictError
        """
        existing = await self._authorized_booking(booking_id, edit_token)
        prepared = await self.prepare(
            request, session_id=session_id, exclude_booking_id=existing.id
        )

        updated = Booking.model_validate(
            {
                **existing.model_dump(),
                "rooms": prepared.rooms,
                "start_date": prepared.stay.start,
                "end_date": prepared.stay.end,
                "guests": request.guests,
                "per_room_guests": prepared.allocation,
                "guest_category": request.guest_category,
                "guest_records": request.guest_records,
                "total_price": prepared.total_price,
                "is_bulk_booking": request.is_bulk_booking,
                "updated_at": self.clock(),
            }
        )
        await self.store.replace_booking(updated)
        if session_id:
            await self.holds.delete_holds_for_session(session_id)

        logger.info("Booking modified", booking_id=booking_id, total_price=updated.total_price)
        return updated

    async def cancel_booking(self, booking_id: str, edit_token: str) -> None:
        """Delete a booking authorized by its edit token."""
        await self._authorized_booking(booking_id, edit_token)
        await self.store.delete_booking(booking_id)
        logger.info("Booking cancelled", booking_id=booking_id)
