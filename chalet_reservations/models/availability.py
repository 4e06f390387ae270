"""Occupancy status of a room on a calendar day."""

from collections.abc import Iterable
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AvailabilityStatus(str, Enum):
    """Per-day room status.

    Priority when several conditions apply, highest first:
    - blocked: admin blockage, never selectable
    - occupied: both adjacent nights confirmed
    - proposed: both adjacent nights held by another session
    - edge: exactly one adjacent night taken, selectable as checkin/checkout
    - available: no adjacent night taken
    """

    AVAILABLE = "available"
    EDGE = "edge"
    PROPOSED = "proposed"
    OCCUPIED = "occupied"
    BLOCKED = "blocked"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]

    @property
    def is_selectable(self) -> bool:
        """Whether a new stay may start or end on a day with this status."""
        return self in (AvailabilityStatus.AVAILABLE, AvailabilityStatus.EDGE)


_PRIORITY = {
    AvailabilityStatus.AVAILABLE: 0,
    AvailabilityStatus.EDGE: 1,
    AvailabilityStatus.PROPOSED: 2,
    AvailabilityStatus.OCCUPIED: 3,
    AvailabilityStatus.BLOCKED: 4,
}


def worst_status(statuses: Iterable[AvailabilityStatus]) -> AvailabilityStatus:
    """Reduce statuses to the highest-priority one (available for an empty input)."""
    return max(statuses, key=lambda s: s.priority, default=AvailabilityStatus.AVAILABLE)


class NightType(str, Enum):
    """What claims a single night."""

    AVAILABLE = "available"
    CONFIRMED = "confirmed"
    PROPOSED = "proposed"


class RoomAvailability(BaseModel):
    """Status of one room on one day plus the adjacent-night detail."""

    status: AvailabilityStatus
    night_before: bool = Field(default=False, alias="nightBefore")
    night_after: bool = Field(default=False, alias="nightAfter")
    night_before_type: NightType = Field(default=NightType.AVAILABLE, alias="nightBeforeType")
    night_after_type: NightType = Field(default=NightType.AVAILABLE, alias="nightAfterType")
    owner_email: Optional[str] = Field(default=None, alias="ownerEmail")
    is_mixed: bool = Field(default=False, alias="isMixed")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @classmethod
    def blocked(cls) -> "RoomAvailability":
        return cls(status=AvailabilityStatus.BLOCKED)

    @property
    def can_check_in(self) -> bool:
        """A stay may begin on this day (the night after is free)."""
        return self.status != AvailabilityStatus.BLOCKED and not self.night_after

    @property
    def can_check_out(self) -> bool:
        """A stay may end on this day (the night before is free)."""
        return self.status != AvailabilityStatus.BLOCKED and not self.night_before

    @property
    def is_free(self) -> bool:
        return self.status == AvailabilityStatus.AVAILABLE
