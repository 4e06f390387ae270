"""Tests for the reservation store implementations."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from chalet_reservations.errors import StoreError
from chalet_reservations.models import (
    AvailabilityStatus,
    DateRange,
    PropertySettings,
    ProposedBooking,
)
from chalet_reservations.services import AvailabilityEngine
from chalet_reservations.stores import InMemoryReservationStore, RedisReservationStore
from tests.helpers import make_booking

NOW = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)


def make_hold(proposal_id="PROPTEST00001", session_id="SESSION_a", minutes=15):
    return ProposedBooking(
        proposal_id=proposal_id,
        session_id=session_id,
        rooms=["12"],
        start_date="2025-01-10",
        end_date="2025-01-12",
        created_at=NOW,
        expires_at=NOW + timedelta(minutes=minutes),
    )


@pytest.fixture
def redis_pipeline():
    """Mock transactional pipeline; commands buffer until execute."""
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1])
    return pipe


@pytest.fixture
def redis_client(redis_pipeline):
    """Mock async Redis client."""
    client = AsyncMock()
    client.smembers.return_value = set()
    client.hgetall.return_value = {}
    client.pipeline = MagicMock(return_value=redis_pipeline)
    return client


@pytest.fixture
def redis_store(redis_client):
    return RedisReservationStore(client=redis_client, key_prefix="test:chalet")


class TestInMemoryStore:
    """Tests for InMemoryReservationStore."""

    @pytest.mark.asyncio
    async def test_load_snapshot(self, snapshot_path):
        store = InMemoryReservationStore.from_file(snapshot_path)

        bookings = await store.list_bookings(room_id="12")
        holds = await store.list_holds()
        blocks = await store.list_blocks(room_id="44")

        assert [booking.id for booking in bookings] == ["BKSNAPSHOT00001"]
        assert bookings[0].start_date == date(2025, 1, 5)
        assert holds[0].session_id == "SESSION_snapshot0000001"
        assert blocks[0].reason == "Annual maintenance"
        assert (await store.get_settings()).room_ids == PropertySettings.default().room_ids

    @pytest.mark.asyncio
    async def test_snapshot_with_naive_timestamps(self):
        """Test that snapshot holds without offsets work with an aware clock."""
        store = InMemoryReservationStore.from_snapshot(
            {
                "proposedBookings": [
                    {
                        "sessionId": "SESSION_a",
                        "rooms": ["13"],
                        "startDate": "2025-01-10",
                        "endDate": "2025-01-12",
                        "createdAt": "2025-01-01T09:55:00",
                        "expiresAt": "2099-01-01T10:10:00",
                    }
                ],
                "blockedDates": [
                    {"rooms": "all", "startDate": "2025-02-01", "endDate": "2025-02-01"}
                ],
            }
        )
        engine = AvailabilityEngine(store, lambda: NOW)

        held = await engine.get_room_availability("2025-01-11", "13")
        blocked = await engine.get_room_availability("2025-02-01", "24")

        assert held.status == AvailabilityStatus.PROPOSED
        assert blocked.status == AvailabilityStatus.BLOCKED

    @pytest.mark.asyncio
    async def test_range_filter_is_inclusive(self):
        store = InMemoryReservationStore()
        await store.create_booking(make_booking(["12"], "2025-01-05", "2025-01-08"))

        assert await store.list_bookings(date_range=DateRange.of("2025-01-08", "2025-01-09"))
        assert not await store.list_bookings(date_range=DateRange.of("2025-01-09", "2025-01-10"))

    @pytest.mark.asyncio
    async def test_list_holds_excludes_session(self):
        store = InMemoryReservationStore()
        await store.create_hold(make_hold("PROPA", "SESSION_a"))
        await store.create_hold(make_hold("PROPB", "SESSION_b"))

        holds = await store.list_holds(exclude_session_id="SESSION_a")

        assert [hold.proposal_id for hold in holds] == ["PROPB"]

    @pytest.mark.asyncio
    async def test_delete_expired_holds(self):
        store = InMemoryReservationStore()
        await store.create_hold(make_hold("PROPA", minutes=5))
        await store.create_hold(make_hold("PROPB", minutes=30))

        removed = await store.delete_expired_holds(NOW + timedelta(minutes=10))

        assert removed == 1
        assert [hold.proposal_id for hold in await store.list_holds()] == ["PROPB"]


class TestRedisStore:
    """Tests for RedisReservationStore against a mocked client."""

    @pytest.mark.asyncio
    async def test_settings_default_when_missing(self, redis_store, redis_client):
        redis_client.get.return_value = None

        property_settings = await redis_store.get_settings()

        redis_client.get.assert_called_once_with("test:chalet:settings")
        assert property_settings == PropertySettings.default()

    @pytest.mark.asyncio
    async def test_create_hold_is_one_transaction(self, redis_store, redis_client, redis_pipeline):
        """Test the hold key layout, its millisecond TTL and the session index expiry."""
        redis_pipeline.execute.return_value = [True, 1, 1, True]

        await redis_store.create_hold(make_hold())

        redis_client.pipeline.assert_called_once_with(transaction=True)
        redis_pipeline.execute.assert_awaited_once()
        key, payload = redis_pipeline.set.call_args.args
        assert key == "test:chalet:hold:PROPTEST00001"
        assert redis_pipeline.set.call_args.kwargs["px"] == 15 * 60 * 1000
        assert ProposedBooking.model_validate_json(payload).proposal_id == "PROPTEST00001"
        redis_pipeline.hset.assert_called_once_with(
            "test:chalet:holds", "PROPTEST00001", "SESSION_a"
        )
        redis_pipeline.sadd.assert_called_once_with(
            "test:chalet:session:SESSION_a:holds", "PROPTEST00001"
        )
        redis_pipeline.pexpire.assert_called_once_with(
            "test:chalet:session:SESSION_a:holds", 15 * 60 * 1000
        )
        redis_client.set.assert_not_called()
        redis_client.sadd.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_hold_failure_writes_nothing(self, redis_store, redis_client, redis_pipeline):
        """Test that a failed transaction surfaces as StoreError without direct writes."""
        redis_pipeline.execute.side_effect = RedisConnectionError("connection reset")

        with pytest.raises(StoreError):
            await redis_store.create_hold(make_hold())

        redis_client.set.assert_not_called()
        redis_client.hset.assert_not_called()
        redis_client.sadd.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_holds_prunes_expired_keys(self, redis_store, redis_client, redis_pipeline):
        """Test that expired holds leave both the index and their session set."""
        live = make_hold("PROPLIVE")
        redis_client.hgetall.return_value = {"PROPLIVE": "SESSION_a", "PROPGONE": "SESSION_b"}
        redis_client.mget.return_value = [None, live.model_dump_json(by_alias=True)]

        holds = await redis_store.list_holds()

        redis_client.mget.assert_called_once_with(
            ["test:chalet:hold:PROPGONE", "test:chalet:hold:PROPLIVE"]
        )
        assert [hold.proposal_id for hold in holds] == ["PROPLIVE"]
        redis_pipeline.hdel.assert_called_once_with("test:chalet:holds", "PROPGONE")
        redis_pipeline.srem.assert_called_once_with(
            "test:chalet:session:SESSION_b:holds", "PROPGONE"
        )
        redis_pipeline.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_hold_removes_all_keys(self, redis_store, redis_client, redis_pipeline):
        redis_client.get.return_value = make_hold().model_dump_json(by_alias=True)
        redis_pipeline.execute.return_value = [1, 1, 1]

        removed = await redis_store.delete_hold("PROPTEST00001")

        assert removed == 1
        redis_pipeline.delete.assert_called_once_with("test:chalet:hold:PROPTEST00001")
        redis_pipeline.hdel.assert_called_once_with("test:chalet:holds", "PROPTEST00001")
        redis_pipeline.srem.assert_called_once_with(
            "test:chalet:session:SESSION_a:holds", "PROPTEST00001"
        )
        redis_client.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_holds_for_session(self, redis_store, redis_client, redis_pipeline):
        redis_client.smembers.return_value = {"PROPA", "PROPB"}
        redis_pipeline.execute.return_value = [1, 0, 2, 1]

        removed = await redis_store.delete_holds_for_session("SESSION_a")

        assert removed == 1
        redis_pipeline.delete.assert_any_call("test:chalet:hold:PROPA")
        redis_pipeline.delete.assert_any_call("test:chalet:hold:PROPB")
        redis_pipeline.hdel.assert_called_once_with("test:chalet:holds", "PROPA", "PROPB")
        redis_pipeline.delete.assert_any_call("test:chalet:session:SESSION_a:holds")
        redis_pipeline.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bookings_stored_in_hash(self, redis_store, redis_client):
        booking = make_booking(["12"], "2025-01-05", "2025-01-08")
        redis_client.hgetall.return_value = {booking.id: booking.model_dump_json(by_alias=True)}

        await redis_store.create_booking(booking)
        bookings = await redis_store.list_bookings(room_id="12")

        redis_client.hset.assert_called_once()
        assert redis_client.hset.call_args.args[:2] == ("test:chalet:bookings", booking.id)
        assert bookings == [booking]
        assert await redis_store.list_bookings(room_id="12", exclude_booking_id=booking.id) == []

    @pytest.mark.asyncio
    async def test_redis_failure_wrapped(self, redis_store, redis_client):
        """Test that client errors surface as StoreError."""
        redis_client.hgetall.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(StoreError) as exc_info:
            await redis_store.list_bookings()

        assert "connection refused" in str(exc_info.value)
