"""Redis-backed reservation store shared by all web workers.

Key layout (``prefix`` = ``{environment}:{key_prefix}``)::

    {prefix}:settings               JSON property settings
    {prefix}:bookings               hash  booking id -> JSON
    {prefix}:blocks                 hash  block id -> JSON
    {prefix}:hold:{proposal_id}     JSON hold, expires with the hold's TTL
    {prefix}:holds                  hash  proposal id -> session id (index)
    {prefix}:session:{id}:holds     set of proposal ids per session, same TTL

Hold keys carry a Redis TTL, so an abandoned hold disappears even if nobody
runs the sweep. Stale index entries are pruned lazily on read. Hold writes
and removals go through a transactional pipeline.
"""

import math
from datetime import datetime
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from structlog import get_logger

from chalet_reservations.config import settings
from chalet_reservations.errors import StoreError
from chalet_reservations.models import (
    BlockedDate,
    Booking,
    DateRange,
    PropertySettings,
    ProposedBooking,
)
from chalet_reservations.stores.base import ReservationStore, touches

logger = get_logger(__name__)


class RedisReservationStore(ReservationStore):
    """Reservation store on top of ``redis.asyncio``."""

    def __init__(self, client: Optional[Any] = None, key_prefix: Optional[str] = None):
        """Initialize the Redis client.

        Args:
            client: Optional pre-built async client (tests inject one)
            key_prefix: Optional key namespace, defaults to settings
        """
        self.redis_client = client or redis.Redis(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            password=settings.redis.password,
            ssl=settings.redis.ssl,
            decode_responses=True,
            socket_timeout=settings.redis.socket_timeout,
            socket_connect_timeout=settings.redis.socket_connect_timeout,
        )
        self.prefix = key_prefix or settings.redis_key_prefix

    # Key helpers

    def _key(self, *parts: str) -> str:
        return ":".join([self.prefix, *parts])

    @property
    def _settings_key(self) -> str:
        return self._key("settings")

    @property
    def _bookings_key(self) -> str:
        return self._key("bookings")

    @property
    def _blocks_key(self) -> str:
        return self._key("blocks")

    @property
    def _holds_index_key(self) -> str:
        return self._key("holds")

    def _hold_key(self, proposal_id: str) -> str:
        return self._key("hold", proposal_id)

    def _session_key(self, session_id: str) -> str:
        return self._key("session", session_id, "holds")

    @staticmethod
    def _dump(model) -> str:
        return model.model_dump_json(by_alias=True)

    async def _call(self, operation: str, coro):
        try:
            return await coro
        except RedisError as e:
            logger.error("Redis operation failed", operation=operation, error=str(e), exc_info=True)
            raise StoreError(f"Redis {operation} failed: {str(e)}") from e

    # Settings

    async def get_settings(self) -> PropertySettings:
        raw = await self._call("get settings", self.redis_client.get(self._settings_key))
        if not raw:
            logger.info("No stored settings, using defaults")
            return PropertySettings.default()
        return PropertySettings.model_validate_json(raw)

    async def save_settings(self, property_settings: PropertySettings) -> None:
        await self._call(
            "save settings",
            self.redis_client.set(self._settings_key, self._dump(property_settings)),
        )

    # Bookings

    async def list_bookings(
        self,
        room_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        raw_bookings = await self._call(
            "list bookings", self.redis_client.hgetall(self._bookings_key)
        )
        bookings = [Booking.model_validate_json(raw) for raw in raw_bookings.values()]
        return [
            booking
            for booking in bookings
            if (room_id is None or booking.includes_room(room_id))
            and booking.id != exclude_booking_id
            and touches(booking.start_date, booking.end_date, date_range)
        ]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        raw = await self._call("get booking", self.redis_client.hget(self._bookings_key, booking_id))
        return Booking.model_validate_json(raw) if raw else None

    async def create_booking(self, booking: Booking) -> Booking:
        await self._call(
            "create booking",
            self.redis_client.hset(self._bookings_key, booking.id, self._dump(booking)),
        )
        logger.info("Stored booking", booking_id=booking.id, rooms=booking.rooms)
        return booking

    async def replace_booking(self, booking: Booking) -> Booking:
        await self._call(
            "replace booking",
            self.redis_client.hset(self._bookings_key, booking.id, self._dump(booking)),
        )
        return booking

    async def delete_booking(self, booking_id: str) -> bool:
        removed = await self._call(
            "delete booking", self.redis_client.hdel(self._bookings_key, booking_id)
        )
        return bool(removed)

    # Holds

    async def list_holds(
        self,
        room_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        exclude_session_id: Optional[str] = None,
    ) -> list[ProposedBooking]:
        index = await self._call("list holds", self.redis_client.hgetall(self._holds_index_key))
        proposal_ids = sorted(index)
        if not proposal_ids:
            return []

        raw_holds = await self._call(
            "load holds",
            self.redis_client.mget([self._hold_key(pid) for pid in proposal_ids]),
        )

        holds = []
        stale = []
        for proposal_id, raw in zip(proposal_ids, raw_holds):
            if raw is None:
                stale.append(proposal_id)
                continue
            holds.append(ProposedBooking.model_validate_json(raw))

        if stale:
            # Keys already expired through their TTL
            pipe = self.redis_client.pipeline(transaction=True)
            pipe.hdel(self._holds_index_key, *stale)
            for proposal_id in stale:
                pipe.srem(self._session_key(index[proposal_id]), proposal_id)
            await self._call("prune holds", pipe.execute())
            logger.debug("Pruned expired hold index entries", count=len(stale))

        return [
            hold
            for hold in holds
            if (room_id is None or hold.includes_room(room_id))
            and (exclude_session_id is None or hold.session_id != exclude_session_id)
            and touches(hold.start_date, hold.end_date, date_range)
        ]

    async def get_hold(self, proposal_id: str) -> Optional[ProposedBooking]:
        raw = await self._call("get hold", self.redis_client.get(self._hold_key(proposal_id)))
        return ProposedBooking.model_validate_json(raw) if raw else None

    async def create_hold(self, hold: ProposedBooking) -> ProposedBooking:
        """Write the hold and both index entries in one MULTI/EXEC."""
        ttl_ms = max(1, math.ceil((hold.expires_at - hold.created_at).total_seconds() * 1000))
        session_key = self._session_key(hold.session_id)

        pipe = self.redis_client.pipeline(transaction=True)
        pipe.set(self._hold_key(hold.proposal_id), self._dump(hold), px=ttl_ms)
        pipe.hset(self._holds_index_key, hold.proposal_id, hold.session_id)
        pipe.sadd(session_key, hold.proposal_id)
        # Session index lives no longer than its newest hold
        pipe.pexpire(session_key, ttl_ms)
        await self._call("create hold", pipe.execute())

        logger.info(
            "Stored proposed booking",
            proposal_id=hold.proposal_id,
            session_id=hold.session_id,
            ttl_ms=ttl_ms,
        )
        return hold

    async def _unindex_hold(self, proposal_id: str, session_id: Optional[str]) -> int:
        pipe = self.redis_client.pipeline(transaction=True)
        pipe.delete(self._hold_key(proposal_id))
        pipe.hdel(self._holds_index_key, proposal_id)
        if session_id:
            pipe.srem(self._session_key(session_id), proposal_id)
        results = await self._call("delete hold", pipe.execute())
        return int(results[0])

    async def _remove_hold(self, hold: ProposedBooking) -> int:
        return await self._unindex_hold(hold.proposal_id, hold.session_id)

    async def delete_hold(self, proposal_id: str) -> int:
        hold = await self.get_hold(proposal_id)
        if hold is None:
            session_id = await self._call(
                "find hold session", self.redis_client.hget(self._holds_index_key, proposal_id)
            )
            await self._unindex_hold(proposal_id, session_id)
            return 0
        return await self._remove_hold(hold)

    async def delete_holds_for_session(self, session_id: str) -> int:
        session_key = self._session_key(session_id)
        proposal_ids = sorted(
            await self._call("list session holds", self.redis_client.smembers(session_key))
        )

        pipe = self.redis_client.pipeline(transaction=True)
        for proposal_id in proposal_ids:
            pipe.delete(self._hold_key(proposal_id))
        if proposal_ids:
            pipe.hdel(self._holds_index_key, *proposal_ids)
        pipe.delete(session_key)
        results = await self._call("delete session holds", pipe.execute())

        return sum(int(deleted) for deleted in results[: len(proposal_ids)])

    async def delete_expired_holds(self, now: datetime) -> int:
        removed = 0
        for hold in await self.list_holds():
            if not hold.is_active(now):
                removed += await self._remove_hold(hold)
        return removed

    # Blocks

    async def list_blocks(
        self,
        room_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
    ) -> list[BlockedDate]:
        raw_blocks = await self._call("list blocks", self.redis_client.hgetall(self._blocks_key))
        blocks = [BlockedDate.model_validate_json(raw) for raw in raw_blocks.values()]
        return [
            block
            for block in blocks
            if (room_id is None or block.applies_to(room_id))
            and touches(block.start_date, block.end_date, date_range)
        ]

    async def create_block(self, block: BlockedDate) -> BlockedDate:
        await self._call(
            "create block", self.redis_client.hset(self._blocks_key, block.id, self._dump(block))
        )
        return block

    async def delete_block(self, block_id: str) -> bool:
        removed = await self._call("delete block", self.redis_client.hdel(self._blocks_key, block_id))
        return bool(removed)

    async def close(self) -> None:
        """Close Redis connection."""
        try:
            await self.redis_client.close()
            logger.debug("Closed Redis connection")
        except Exception as e:
            logger.warning("Error closing Redis connection", error=str(e))
