"""Calendar-day date range with night arithmetic.

A stay from day D0 to day Dn is physically present on days D0..Dn but consumes
the nights [D0, D1), [D1, D2), ..., [D(n-1), Dn). Overlap is tested on nights
(half-open), so a checkout and a checkin on the same day never conflict.
"""

from collections.abc import Iterator
from datetime import date, datetime, timedelta
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chalet_reservations.errors import ValidationError

ONE_DAY = timedelta(days=1)


def parse_day(value: Any) -> date:
    """Normalize a date, datetime or YYYY-MM-DD string to a calendar day.

    Time-of-day and timezone information is discarded; the calendar day as
    written is what counts.

    Raises:
        ValidationError: If the value cannot be interpreted as a day
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as e:
            raise ValidationError(f"Invalid date: {value!r}", field="date") from e
    raise ValidationError(f"Invalid date: {value!r}", field="date")


def days_between(start: Any, end: Any) -> int:
    """Number of nights from start to end (negative if end precedes start)."""
    return (parse_day(end) - parse_day(start)).days


def night_before(day: date) -> date:
    """Start day of the night ending on ``day``."""
    return day - ONE_DAY


def night_after(day: date) -> date:
    """Start day of the night beginning on ``day``."""
    return day


class DateRange(BaseModel):
    """Inclusive start/end calendar days."""

    start: date
    end: date

    model_config = ConfigDict(frozen=True)

    @field_validator("start", "end", mode="before")
    @classmethod
    def normalize_day(cls, v):
        return parse_day(v)

    @model_validator(mode="after")
    def check_order(self) -> Self:
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    @classmethod
    def of(cls, start: Any, end: Any) -> Self:
        """Build a range from mixed inputs, raising ValidationError on bad order."""
        start_day = parse_day(start)
        end_day = parse_day(end)
        if start_day > end_day:
            raise ValidationError(
                f"Start date {start_day.isoformat()} is after end date {end_day.isoformat()}",
                field="endDate",
            )
        return cls(start=start_day, end=end_day)

    @classmethod
    def single_night(cls, night_start: date) -> Self:
        return cls(start=night_start, end=night_start + ONE_DAY)

    @property
    def nights(self) -> int:
        return (self.end - self.start).days

    def days(self) -> Iterator[date]:
        """Iterate every calendar day from start to end inclusive."""
        current = self.start
        while current <= self.end:
            yield current
            current += ONE_DAY

    def night_starts(self) -> Iterator[date]:
        """Iterate the start day of every night in the range."""
        current = self.start
        while current < self.end:
            yield current
            current += ONE_DAY

    def contains_day(self, day: date) -> bool:
        return self.start <= day <= self.end

    def covers_night(self, night_start: date) -> bool:
        """True if the night beginning on ``night_start`` is consumed by this range."""
        return self.start <= night_start < self.end

    def overlaps(self, other: "DateRange") -> bool:
        """Half-open night overlap."""
        return self.start < other.end and other.start < self.end

    def overlaps_days(self, other: "DateRange") -> bool:
        """Inclusive day overlap, used for blocks and Christmas periods."""
        return self.start <= other.end and other.start <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


class StayDates(BaseModel):
    """Mixin for records that carry ``startDate``/``endDate`` fields."""

    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def normalize_day(cls, v):
        return parse_day(v)

    @property
    def date_range(self) -> DateRange:
        return DateRange(start=self.start_date, end=self.end_date)

    @property
    def nights(self) -> int:
        return (self.end_date - self.start_date).days
