"""Property configuration: rooms, price tables and Christmas periods.

Read-only to the engine; edited only through admin settings.
"""

from datetime import date
from typing import Optional, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chalet_reservations.errors import ValidationError
from chalet_reservations.models.date_range import DateRange, parse_day
from chalet_reservations.models.room import GuestCategory, Room, SizeClass


class RoomRates(BaseModel):
    """Per-night rates for one (category, size class) pair."""

    empty_room: int = Field(ge=0, alias="emptyRoom")
    adult: int = Field(ge=0)
    child: int = Field(ge=0)

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class BulkPriceTable(BaseModel):
    """Flat whole-property pricing, independent of room count."""

    base_price_per_night: int = Field(ge=0, alias="basePricePerNight")
    resident_adult: int = Field(ge=0, alias="residentAdult")
    resident_child: int = Field(ge=0, alias="residentChild")
    external_adult: int = Field(ge=0, alias="externalAdult")
    external_child: int = Field(ge=0, alias="externalChild")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def adult_rate(self, category: GuestCategory) -> int:
        if category == GuestCategory.RESIDENT:
            return self.resident_adult
        return self.external_adult

    def child_rate(self, category: GuestCategory) -> int:
        if category == GuestCategory.RESIDENT:
            return self.resident_child
        return self.external_child


class ChristmasPeriod(BaseModel):
    """Date window with special access rules (inclusive days)."""

    period_id: str = Field(alias="periodId")
    start: date
    end: date
    year: Optional[int] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("start", "end", mode="before")
    @classmethod
    def normalize_day(cls, v):
        return parse_day(v)

    @model_validator(mode="after")
    def check_range(self) -> Self:
        if self.start > self.end:
            raise ValueError("Christmas period start must not be after end")
        if self.year is None:
            object.__setattr__(self, "year", self.start.year)
        return self

    @property
    def date_range(self) -> DateRange:
        return DateRange(start=self.start, end=self.end)


PriceTable = dict[GuestCategory, dict[SizeClass, RoomRates]]


def _default_rooms() -> list[Room]:
    layout = [
        ("12", 2), ("13", 3), ("14", 4),
        ("22", 2), ("23", 3), ("24", 4),
        ("42", 2), ("43", 2), ("44", 4),
    ]
    return [
        Room(
            id=room_id,
            name=f"Room {room_id}",
            beds=beds,
            size_class=SizeClass.LARGE if beds >= 4 else SizeClass.SMALL,
        )
        for room_id, beds in layout
    ]


def _default_prices() -> PriceTable:
    return {
        GuestCategory.RESIDENT: {
            SizeClass.SMALL: RoomRates(empty_room=250, adult=50, child=25),
            SizeClass.LARGE: RoomRates(empty_room=350, adult=70, child=35),
        },
        GuestCategory.EXTERNAL: {
            SizeClass.SMALL: RoomRates(empty_room=400, adult=100, child=50),
            SizeClass.LARGE: RoomRates(empty_room=500, adult=120, child=60),
        },
    }


def _default_bulk_prices() -> BulkPriceTable:
    return BulkPriceTable(
        base_price_per_night=2000,
        resident_adult=100,
        resident_child=0,
        external_adult=250,
        external_child=50,
    )


class PropertySettings(BaseModel):
    """Everything the engine reads from admin settings."""

    rooms: list[Room] = Field(default_factory=_default_rooms)
    prices: PriceTable = Field(default_factory=_default_prices)
    bulk_prices: BulkPriceTable = Field(default_factory=_default_bulk_prices, alias="bulkPrices")
    christmas_periods: list[ChristmasPeriod] = Field(
        default_factory=list, alias="christmasPeriods"
    )
    christmas_access_codes: list[str] = Field(default_factory=list, alias="christmasAccessCodes")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_consistency(self) -> Self:
        room_ids = [room.id for room in self.rooms]
        if len(room_ids) != len(set(room_ids)):
            raise ValueError("Room ids must be unique")

        ordered = sorted(self.christmas_periods, key=lambda p: p.start)
        for previous, current in zip(ordered, ordered[1:]):
            if previous.date_range.overlaps_days(current.date_range):
                raise ValueError(
                    f"Christmas periods {previous.period_id} and {current.period_id} overlap"
                )
        return self

    @classmethod
    def default(cls) -> Self:
        return cls()

    @property
    def room_ids(self) -> list[str]:
        return [room.id for room in self.rooms]

    def get_room(self, room_id: str) -> Room:
        for room in self.rooms:
            if room.id == room_id:
                return room
        raise ValidationError(f"Unknown room id: {room_id}", field="rooms")

    def rates_for(self, category: GuestCategory, size_class: SizeClass) -> RoomRates:
        try:
            return self.prices[category][size_class]
        except KeyError as e:
            raise ValidationError(
                f"No price configured for {category.value}/{size_class.value}", field="prices"
            ) from e

    def with_christmas_period(self, period: ChristmasPeriod) -> Self:
        """Return a copy including ``period``; overlapping periods are rejected."""
        for existing in self.christmas_periods:
            if existing.date_range.overlaps_days(period.date_range):
                raise ValidationError(
                    f"Christmas period overlaps existing period {existing.period_id}",
                    field="christmasPeriods",
                )
        return self.model_copy(
            update={"christmas_periods": [*self.christmas_periods, period]}
        )

    def christmas_periods_overlapping(self, stay: DateRange) -> list[ChristmasPeriod]:
        return [p for p in self.christmas_periods if p.date_range.overlaps_days(stay)]
