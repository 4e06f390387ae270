"""Pydantic models for confirmed bookings, proposed bookings (holds) and blocks."""

import secrets
import string
from datetime import datetime
from typing import Optional, Self

from pydantic import Field, field_validator, model_validator

from chalet_reservations.clock import as_utc, utc_now
from chalet_reservations.models.date_range import StayDates
from chalet_reservations.models.room import GuestCategory, GuestCounts, GuestRecord

_ALPHANUMERIC = string.ascii_uppercase + string.digits
_TOKEN_CHARS = string.ascii_letters + string.digits


def _random_chars(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_booking_id() -> str:
    """Booking id: ``BK`` followed by 13 alphanumeric characters."""
    return "BK" + _random_chars(_ALPHANUMERIC, 13)


def generate_edit_token() -> str:
    return _random_chars(_TOKEN_CHARS, 30)


def generate_proposal_id() -> str:
    return "PROP" + _random_chars(_ALPHANUMERIC, 9)


def generate_block_id() -> str:
    return "BLK" + _random_chars(_ALPHANUMERIC, 9)


def generate_session_id() -> str:
    return "SESSION_" + _random_chars(_TOKEN_CHARS, 16)


class Booking(StayDates):
    """A confirmed reservation of one or more rooms."""

    id: str = Field(default_factory=generate_booking_id)
    rooms: list[str]
    guests: GuestCounts
    per_room_guests: dict[str, GuestCounts] = Field(default_factory=dict, alias="perRoomGuests")
    guest_category: GuestCategory = Field(default=GuestCategory.EXTERNAL, alias="guestCategory")
    guest_records: list[GuestRecord] = Field(default_factory=list, alias="guestRecords")
    total_price: int = Field(default=0, ge=0, alias="totalPrice")
    is_bulk_booking: bool = Field(default=False, alias="isBulkBooking")
    paid: bool = False
    edit_token: str = Field(default_factory=generate_edit_token, alias="editToken")
    name: str = ""
    email: str = ""
    phone: str = ""
    notes: str = ""
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def check_nights(self) -> Self:
        if self.start_date >= self.end_date:
            raise ValueError("A booking must span at least one night")
        return self

    def includes_room(self, room_id: str) -> bool:
        return room_id in self.rooms


class ProposedBooking(StayDates):
    """Session-scoped temporary reservation (a hold).

    A hold only makes its nights provisionally unavailable to other sessions.
    It never turns into a booking itself; the final booking is a new record.
    """

    proposal_id: str = Field(default_factory=generate_proposal_id, alias="proposalId")
    session_id: str = Field(alias="sessionId")
    rooms: list[str]
    guests: GuestCounts = Field(default_factory=GuestCounts)
    guest_category: GuestCategory = Field(default=GuestCategory.EXTERNAL, alias="guestCategory")
    total_price: int = Field(default=0, ge=0, alias="totalPrice")
    is_bulk_booking: bool = Field(default=False, alias="isBulkBooking")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    expires_at: datetime = Field(alias="expiresAt")

    @field_validator("created_at", "expires_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def check_lifetime(self) -> Self:
        if self.start_date >= self.end_date:
            raise ValueError("A proposed booking must span at least one night")
        if self.expires_at <= self.created_at:
            raise ValueError("expiresAt must be after createdAt")
        return self

    def is_active(self, now: datetime) -> bool:
        return self.expires_at > as_utc(now)

    def includes_room(self, room_id: str) -> bool:
        return room_id in self.rooms


class BlockedDate(StayDates):
    """Administrative blockage. An empty room list, or "all", blocks every room."""

    id: str = Field(default_factory=generate_block_id)
    rooms: list[str] = Field(default_factory=list)
    reason: str = ""

    @field_validator("rooms", mode="before")
    @classmethod
    def expand_all(cls, v):
        if v is None or v == "all":
            return []
        return v

    @model_validator(mode="after")
    def check_order(self) -> Self:
        if self.start_date > self.end_date:
            raise ValueError("Blockage start must not be after end")
        return self

    def applies_to(self, room_id: str) -> bool:
        return not self.rooms or room_id in self.rooms
