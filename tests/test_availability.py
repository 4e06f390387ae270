"""Tests for the availability engine."""

from datetime import date, datetime, timedelta

import pytest

from chalet_reservations.errors import ConflictError, ValidationError
from chalet_reservations.models import (
    AvailabilityStatus,
    BlockedDate,
    NightType,
    ProposedBooking,
)
from tests.helpers import make_booking


def make_hold(session_id, room_ids, start, end, created_at: datetime, minutes=15):
    return ProposedBooking(
        session_id=session_id,
        rooms=list(room_ids),
        start_date=start,
        end_date=end,
        created_at=created_at,
        expires_at=created_at + timedelta(minutes=minutes),
    )


class TestRoomAvailability:
    """Tests for per-day room status."""

    @pytest.mark.asyncio
    async def test_edge_days_around_booking(self, store, engine):
        """Test that checkin and checkout days of a booking are edge days."""
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))

        statuses = await engine.get_room_availability_range("2025-01-04", "2025-01-09", "12")

        assert statuses[date(2025, 1, 4)].status == AvailabilityStatus.AVAILABLE
        assert statuses[date(2025, 1, 5)].status == AvailabilityStatus.EDGE
        assert statuses[date(2025, 1, 5)].night_after
        assert statuses[date(2025, 1, 6)].status == AvailabilityStatus.OCCUPIED
        assert statuses[date(2025, 1, 7)].status == AvailabilityStatus.OCCUPIED
        assert statuses[date(2025, 1, 8)].status == AvailabilityStatus.EDGE
        assert statuses[date(2025, 1, 8)].night_before
        assert statuses[date(2025, 1, 9)].status == AvailabilityStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_other_rooms_unaffected(self, store, engine):
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))

        result = await engine.get_room_availability("2025-01-06", "13")

        assert result.status == AvailabilityStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_occupied_reports_owner_email(self, store, engine):
        await store.create_booking(
            make_booking(["12"], "2025-01-05", "2025-01-08", email="anna@example.com")
        )

        result = await engine.get_room_availability("2025-01-06", "12")

        assert result.owner_email == "anna@example.com"

    @pytest.mark.asyncio
    async def test_back_to_back_bookings_make_occupied(self, store, engine):
        """Test that a checkout/checkin day between two bookings is occupied."""
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))
        await store.create_booking(make_booking(["12"], "2025-01-08", "2025-01-10"))

        result = await engine.get_room_availability("2025-01-08", "12")

        assert result.status == AvailabilityStatus.OCCUPIED

    @pytest.mark.asyncio
    async def test_block_wins_over_booking(self, store, engine):
        """Test that blocked has the highest priority."""
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))
        await store.create_block(
            BlockedDate(rooms=["12"], start_date="2025-01-06", end_date="2025-01-06")
        )

        assert (await engine.get_room_availability("2025-01-06", "12")).status == AvailabilityStatus.BLOCKED
        assert (await engine.get_room_availability("2025-01-07", "12")).status == AvailabilityStatus.OCCUPIED

    @pytest.mark.asyncio
    async def test_block_without_rooms_applies_to_all(self, store, engine):
        await store.create_block(BlockedDate(start_date="2025-02-01", end_date="2025-02-03"))

        for room_id in ("12", "44"):
            result = await engine.get_room_availability("2025-02-03", room_id)
            assert result.status == AvailabilityStatus.BLOCKED
            assert not result.can_check_in

    @pytest.mark.asyncio
    async def test_hold_visible_to_other_sessions_only(self, store, engine, clock):
        """Test that a session never sees its own hold as proposed."""
        await store.create_hold(make_hold("SESSION_a", ["12"], "2025-01-10", "2025-01-13", clock()))

        own = await engine.get_room_availability("2025-01-11", "12", exclude_session_id="SESSION_a")
        other = await engine.get_room_availability("2025-01-11", "12", exclude_session_id="SESSION_b")

        assert own.status == AvailabilityStatus.AVAILABLE
        assert other.status == AvailabilityStatus.PROPOSED

    @pytest.mark.asyncio
    async def test_expired_hold_ignored_before_sweep(self, store, engine, clock):
        await store.create_hold(make_hold("SESSION_a", ["12"], "2025-01-10", "2025-01-13", clock()))
        clock.advance(minutes=16)

        result = await engine.get_room_availability("2025-01-11", "12")

        assert result.status == AvailabilityStatus.AVAILABLE
        assert await store.get_hold((await store.list_holds())[0].proposal_id) is not None

    @pytest.mark.asyncio
    async def test_mixed_edge(self, store, engine, clock):
        """Test a day with a confirmed night before and a proposed night after."""
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))
        await store.create_hold(make_hold("SESSION_a", ["12"], "2025-01-08", "2025-01-10", clock()))

        result = await engine.get_room_availability("2025-01-08", "12")

        assert result.status == AvailabilityStatus.EDGE
        assert result.is_mixed
        assert result.night_before_type == NightType.CONFIRMED
        assert result.night_after_type == NightType.PROPOSED

    @pytest.mark.parametrize(
        "hold_start,hold_end",
        [
            ("2025-01-05", "2025-01-07"),
            ("2025-01-06", "2025-01-07"),
            ("2025-01-04", "2025-01-09"),
        ],
    )
    @pytest.mark.asyncio
    async def test_confirmed_nights_outrank_overlapping_hold(
        self, store, engine, clock, hold_start, hold_end
    ):
        """Test that a day inside a booking stays occupied when a stale hold overlaps it."""
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))
        await store.create_hold(make_hold("SESSION_b", ["12"], hold_start, hold_end, clock()))

        result = await engine.get_room_availability("2025-01-06", "12")

        assert result.status == AvailabilityStatus.OCCUPIED
        assert not result.is_mixed
        assert result.night_before_type == NightType.CONFIRMED
        assert result.night_after_type == NightType.CONFIRMED

    @pytest.mark.asyncio
    async def test_hold_over_booking_edge_is_not_mixed(self, store, engine, clock):
        """Test that a hold on an already confirmed night does not make a mixed edge."""
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))
        await store.create_hold(make_hold("SESSION_b", ["12"], "2025-01-07", "2025-01-08", clock()))

        result = await engine.get_room_availability("2025-01-08", "12")

        assert result.status == AvailabilityStatus.EDGE
        assert not result.is_mixed
        assert result.night_before_type == NightType.CONFIRMED

    @pytest.mark.asyncio
    async def test_hold_across_checkout_day_is_mixed(self, store, engine, clock):
        """Test that a hold spanning a booking's checkout day leaves it a mixed edge."""
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))
        await store.create_hold(make_hold("SESSION_b", ["12"], "2025-01-07", "2025-01-09", clock()))

        result = await engine.get_room_availability("2025-01-08", "12")

        assert result.status == AvailabilityStatus.EDGE
        assert result.is_mixed
        assert result.night_before_type == NightType.CONFIRMED
        assert result.night_after_type == NightType.PROPOSED

    @pytest.mark.asyncio
    async def test_editing_booking_excludes_itself(self, store, engine):
        booking = make_booking(["12"], "2025-01-05", "2025-01-08")
        await store.create_booking(booking)

        result = await engine.get_room_availability(
            "2025-01-06", "12", exclude_booking_id=booking.id
        )

        assert result.status == AvailabilityStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_unknown_room(self, engine):
        with pytest.raises(ValidationError):
            await engine.get_room_availability("2025-01-06", "99")


class TestBulkAvailability:
    """Tests for whole-property aggregation."""

    @pytest.mark.asyncio
    async def test_worst_status_wins(self, store, engine):
        await store.create_booking(make_booking(["13"], "2025-01-05", "2025-01-08"))

        assert await engine.get_bulk_availability("2025-01-06") == AvailabilityStatus.OCCUPIED
        assert await engine.get_bulk_availability("2025-01-05") == AvailabilityStatus.EDGE
        assert await engine.get_bulk_availability("2025-01-20") == AvailabilityStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_subset_of_rooms(self, store, engine):
        await store.create_booking(make_booking(["13"], "2025-01-05", "2025-01-08"))

        status = await engine.get_bulk_availability("2025-01-06", room_ids=["12", "14"])

        assert status == AvailabilityStatus.AVAILABLE

    def test_is_bulk_available(self, engine):
        assert engine.is_bulk_available(AvailabilityStatus.AVAILABLE)
        assert engine.is_bulk_available(AvailabilityStatus.EDGE)
        assert not engine.is_bulk_available(AvailabilityStatus.PROPOSED)
        assert not engine.is_bulk_available(AvailabilityStatus.OCCUPIED)
        assert not engine.is_bulk_available(AvailabilityStatus.BLOCKED)


class TestAssertStayAvailable:
    """Tests for the stay conflict rule."""

    @pytest.mark.asyncio
    async def test_back_to_back_stays_allowed(self, store, engine):
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))

        await engine.assert_stay_available("2025-01-08", "2025-01-10", ["12"])
        await engine.assert_stay_available("2025-01-02", "2025-01-05", ["12"])

    @pytest.mark.asyncio
    async def test_overlap_names_first_conflict(self, store, engine):
        """Test that the first conflicting day and room are reported."""
        await store.create_booking(make_booking(["13"], "2025-01-05", "2025-01-08"))

        with pytest.raises(ConflictError) as exc_info:
            await engine.assert_stay_available("2025-01-07", "2025-01-09", ["12", "13"])

        assert exc_info.value.room_id == "13"
        assert exc_info.value.conflict_date == date(2025, 1, 7)
        assert exc_info.value.status == "occupied"

    @pytest.mark.asyncio
    async def test_stay_around_booking_conflicts(self, store, engine):
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-06"))

        with pytest.raises(ConflictError) as exc_info:
            await engine.assert_stay_available("2025-01-03", "2025-01-08", ["12"])

        assert exc_info.value.conflict_date == date(2025, 1, 5)

    @pytest.mark.asyncio
    async def test_hold_conflict_reports_proposed(self, store, engine, clock):
        await store.create_hold(make_hold("SESSION_a", ["12"], "2025-01-10", "2025-01-12", clock()))

        with pytest.raises(ConflictError) as exc_info:
            await engine.assert_stay_available(
                "2025-01-11", "2025-01-13", ["12"], exclude_session_id="SESSION_b"
            )
        assert exc_info.value.status == "proposed"

        await engine.assert_stay_available(
            "2025-01-11", "2025-01-13", ["12"], exclude_session_id="SESSION_a"
        )

    @pytest.mark.asyncio
    async def test_blocked_checkout_day_conflicts(self, store, engine):
        """Test that blocks are inclusive of their days, including stay ends."""
        await store.create_block(BlockedDate(rooms=["12"], start_date="2025-01-20", end_date="2025-01-20"))

        with pytest.raises(ConflictError) as exc_info:
            await engine.assert_stay_available("2025-01-18", "2025-01-20", ["12"])

        assert exc_info.value.status == "blocked"

    @pytest.mark.asyncio
    async def test_zero_nights(self, engine):
        with pytest.raises(ValidationError):
            await engine.assert_stay_available("2025-01-08", "2025-01-08", ["12"])
