"""Christmas-period access rules.

For a stay overlapping a Christmas period (inclusive days):

- Before the cutoff (Oct 1 of the period's year by default) every booking
  needs a valid access code, and resident guests may take at most two rooms.
  A two-room resident booking is accepted with a reminder that both rooms must
  be fully occupied by family members; that condition is a policy input and is
  not verified here.
- From the cutoff on, bulk (whole property) bookings are refused outright,
  whatever the guest category or code; other bookings follow normal
  availability with no category preference.
"""

from datetime import date
from typing import Optional

from structlog import get_logger

from chalet_reservations.config import settings
from chalet_reservations.errors import ChristmasRestrictionError
from chalet_reservations.models import ChristmasPeriod, DateRange, GuestCategory, PropertySettings

logger = get_logger(__name__)

FAMILY_OCCUPANCY_WARNING = (
    "Two rooms may only be reserved when both are fully occupied by members of "
    "your family who are entitled to the resident rate."
)


class ChristmasPolicy:
    """Evaluates Christmas access rules for a booking request."""

    def __init__(
        self,
        cutoff_month: Optional[int] = None,
        cutoff_day: Optional[int] = None,
        resident_room_limit: Optional[int] = None,
    ):
        engine_settings = settings.engine
        self.cutoff_month = (
            engine_settings.christmas_cutoff_month if cutoff_month is None else cutoff_month
        )
        self.cutoff_day = (
            engine_settings.christmas_cutoff_day if cutoff_day is None else cutoff_day
        )
        self.resident_room_limit = (
            engine_settings.resident_christmas_room_limit
            if resident_room_limit is None
            else resident_room_limit
        )

    def cutoff_for(self, period: ChristmasPeriod) -> date:
        """First day on which the after-cutoff rules apply."""
        return date(period.year or period.start.year, self.cutoff_month, self.cutoff_day)

    def is_before_cutoff(self, period: ChristmasPeriod, today: date) -> bool:
        return today < self.cutoff_for(period)

    @staticmethod
    def is_valid_code(code: Optional[str], property_settings: PropertySettings) -> bool:
        return bool(code) and code in property_settings.christmas_access_codes

    def check(
        self,
        property_settings: PropertySettings,
        stay: DateRange,
        room_count: int,
        guest_category: GuestCategory,
        is_bulk_booking: bool,
        today: date,
        access_code: Optional[str] = None,
    ) -> list[str]:
        """Apply the rules of every Christmas period the stay touches.

        Returns:
            Warnings to show the user (empty when nothing applies)

        Raises:
            ChristmasRestrictionError: If a rule is violated
        """
        warnings: list[str] = []

        for period in property_settings.christmas_periods_overlapping(stay):
            cutoff = self.cutoff_for(period)

            if today >= cutoff:
                if is_bulk_booking:
                    logger.info(
                        "Rejected bulk booking in Christmas period",
                        period_id=period.period_id,
                        cutoff=cutoff.isoformat(),
                    )
                    raise ChristmasRestrictionError(
                        f"Bulk bookings are not accepted for the Christmas period "
                        f"{period.start.isoformat()}..{period.end.isoformat()} "
                        f"from {cutoff.isoformat()} on",
                        period_id=period.period_id,
                    )
                continue

            if not self.is_valid_code(access_code, property_settings):
                raise ChristmasRestrictionError(
                    f"A valid Christmas access code is required until {cutoff.isoformat()}",
                    period_id=period.period_id,
                )

            if guest_category == GuestCategory.RESIDENT:
                if room_count > self.resident_room_limit:
                    raise ChristmasRestrictionError(
                        f"Resident guests may reserve at most {self.resident_room_limit} rooms "
                        f"in the Christmas period until {cutoff.isoformat()}",
                        period_id=period.period_id,
                    )
                if room_count == self.resident_room_limit and room_count > 1:
                    warnings.append(FAMILY_OCCUPANCY_WARNING)

        return warnings
