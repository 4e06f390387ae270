from datetime import datetime, timezone
from pathlib import Path

import pytest

from chalet_reservations.models import ChristmasPeriod, PropertySettings
from chalet_reservations.services import (
    AvailabilityEngine,
    ChristmasPolicy,
    HoldManager,
    ReservationValidator,
)
from chalet_reservations.stores import InMemoryReservationStore
from tests.helpers import CHRISTMAS_CODE, MutableClock


FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def clock():
    """Clock frozen at 2025-01-01 10:00 UTC, before the Christmas cutoff."""
    return MutableClock(datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def property_settings():
    """Default property with one Christmas period and access code."""
    return PropertySettings.default().with_christmas_period(
        ChristmasPeriod(period_id="xmas-2025", start="2025-12-20", end="2026-01-02")
    ).model_copy(update={"christmas_access_codes": [CHRISTMAS_CODE]})


@pytest.fixture
def store(property_settings):
    """Empty in-memory store seeded with the property settings."""
    return InMemoryReservationStore(property_settings)


@pytest.fixture
def engine(store, clock):
    return AvailabilityEngine(store, clock)


@pytest.fixture
def hold_manager(store, engine, clock):
    return HoldManager(store, engine, clock)


@pytest.fixture
def christmas_policy():
    return ChristmasPolicy(cutoff_month=10, cutoff_day=1, resident_room_limit=2)


@pytest.fixture
def validator(store, clock, hold_manager, christmas_policy):
    return ReservationValidator(store, clock, hold_manager, christmas_policy)


@pytest.fixture
def snapshot_path():
    """Path of the JSON store snapshot fixture."""
    return FIXTURES_DIR / "snapshot.json"
