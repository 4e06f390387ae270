"""Reservation store implementations."""

from chalet_reservations.stores.base import ReservationStore
from chalet_reservations.stores.memory_store import InMemoryReservationStore
from chalet_reservations.stores.redis_store import RedisReservationStore

__all__ = [
    "ReservationStore",
    "InMemoryReservationStore",
    "RedisReservationStore",
]
