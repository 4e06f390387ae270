"""Error taxonomy for the reservation engine.

Every error here is an expected, recoverable outcome: the caller shows the
user why the request failed and lets them re-select. None of them are retried
automatically.
"""

from datetime import date
from enum import Enum
from typing import Any, Optional


class ErrorCode(Enum):
    """Machine-readable error codes surfaced to the UI layer."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    CONFLICT = "CONFLICT"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    CHRISTMAS_RESTRICTED = "CHRISTMAS_RESTRICTED"
    HOLD_EXPIRED = "HOLD_EXPIRED"
    NOT_FOUND = "NOT_FOUND"
    STORE_FAILURE = "STORE_FAILURE"


class ReservationError(Exception):
    """Base exception for reservation engine errors."""

    code: ErrorCode = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def details(self) -> dict[str, Any]:
        """Extra structured context for the caller."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict for the UI layer."""
        return {"code": self.code.value, "message": self.message, **self.details()}


class ValidationError(ReservationError):
    """Raised for malformed input, rejected before any store access."""

    code = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field

    def details(self) -> dict[str, Any]:
        return {"field": self.field} if self.field else {}


class ConflictError(ReservationError):
    """Raised when an availability check fails for a date/room."""

    code = ErrorCode.CONFLICT

    def __init__(
        self,
        message: str,
        conflict_date: Optional[date] = None,
        room_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.conflict_date = conflict_date
        self.room_id = room_id
        self.status = status

    @classmethod
    def for_room(cls, conflict_date: date, room_id: str, status: str) -> "ConflictError":
        return cls(
            f"Room {room_id} is {status} on {conflict_date.isoformat()}",
            conflict_date=conflict_date,
            room_id=room_id,
            status=status,
        )

    def details(self) -> dict[str, Any]:
        return {
            "date": self.conflict_date.isoformat() if self.conflict_date else None,
            "roomId": self.room_id,
            "status": self.status,
        }


class ExpiredHoldError(ConflictError):
    """Raised when an operation references a hold that no longer exists."""

    code = ErrorCode.HOLD_EXPIRED

    def __init__(self, proposal_id: str) -> None:
        super().__init__(f"Proposed booking {proposal_id} has expired", status="expired")
        self.proposal_id = proposal_id

    def details(self) -> dict[str, Any]:
        return {"proposalId": self.proposal_id}


class CapacityError(ReservationError):
    """Raised when a guest count exceeds room or party capacity."""

    code = ErrorCode.CAPACITY_EXCEEDED

    def __init__(self, requested: int, capacity: int, room_id: Optional[str] = None) -> None:
        target = f"room {room_id}" if room_id else "selected rooms"
        super().__init__(f"{requested} guests exceed capacity {capacity} of {target}")
        self.requested = requested
        self.capacity = capacity
        self.room_id = room_id

    def details(self) -> dict[str, Any]:
        return {"requested": self.requested, "capacity": self.capacity, "roomId": self.room_id}


class ChristmasRestrictionError(ReservationError):
    """Raised when a Christmas-period access rule is violated."""

    code = ErrorCode.CHRISTMAS_RESTRICTED

    def __init__(self, message: str, period_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.period_id = period_id

    def details(self) -> dict[str, Any]:
        return {"periodId": self.period_id}


class NotFoundError(ReservationError):
    """Raised when a referenced record does not exist."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class StoreError(ReservationError):
    """Raised when the backing store fails."""

    code = ErrorCode.STORE_FAILURE


# Expected, user-facing outcomes returned inside flow results
EXPECTED_ERRORS = (
    ValidationError,
    ConflictError,
    CapacityError,
    ChristmasRestrictionError,
    NotFoundError,
)
