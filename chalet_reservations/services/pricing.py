"""Stay price calculation.

Two intentionally separate products:

- Per-room pricing: empty-room base plus per-adult and per-child surcharges,
  looked up by (guest category, room size class), times nights.
- Bulk (whole property) pricing: one flat base per night plus a surcharge per
  guest by that guest's own category, times nights.

Toddlers are always free. All amounts are integers; the per-night unit price
is assembled first and multiplied by nights once.
"""

from collections.abc import Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field
from structlog import get_logger

from chalet_reservations.errors import ValidationError
from chalet_reservations.models import (
    AgeBand,
    GuestCategory,
    GuestCounts,
    GuestRecord,
    PropertySettings,
    SizeClass,
)

logger = get_logger(__name__)


class BulkGuestMix(BaseModel):
    """Bulk party split by guest category."""

    resident_adults: int = Field(default=0, ge=0, alias="residentAdults")
    resident_children: int = Field(default=0, ge=0, alias="residentChildren")
    external_adults: int = Field(default=0, ge=0, alias="externalAdults")
    external_children: int = Field(default=0, ge=0, alias="externalChildren")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @classmethod
    def uniform(cls, category: GuestCategory, adults: int, children: int) -> "BulkGuestMix":
        if category == GuestCategory.RESIDENT:
            return cls(resident_adults=adults, resident_children=children)
        return cls(external_adults=adults, external_children=children)

    @classmethod
    def from_records(cls, records: Iterable[GuestRecord]) -> "BulkGuestMix":
        counts = {
            (GuestCategory.RESIDENT, AgeBand.ADULT): 0,
            (GuestCategory.RESIDENT, AgeBand.CHILD): 0,
            (GuestCategory.EXTERNAL, AgeBand.ADULT): 0,
            (GuestCategory.EXTERNAL, AgeBand.CHILD): 0,
        }
        for record in records:
            if record.age_band != AgeBand.TODDLER:
                counts[(record.category, record.age_band)] += 1
        return cls(
            resident_adults=counts[(GuestCategory.RESIDENT, AgeBand.ADULT)],
            resident_children=counts[(GuestCategory.RESIDENT, AgeBand.CHILD)],
            external_adults=counts[(GuestCategory.EXTERNAL, AgeBand.ADULT)],
            external_children=counts[(GuestCategory.EXTERNAL, AgeBand.CHILD)],
        )


class PriceLine(BaseModel):
    """One itemized per-night component of a price."""

    label: str
    quantity: int
    unit_price: int = Field(alias="unitPrice")
    per_night: int = Field(alias="perNight")

    model_config = ConfigDict(populate_by_name=True)


class PriceBreakdown(BaseModel):
    """Itemized price: per-night lines, night count and total."""

    lines: list[PriceLine] = Field(default_factory=list)
    nights: int
    per_night: int = Field(alias="perNight")
    total: int

    model_config = ConfigDict(populate_by_name=True)


def _check_non_negative(**values: int) -> None:
    for field, value in values.items():
        if value < 0:
            raise ValidationError(f"{field} must not be negative", field=field)


class PriceCalculator:
    """Computes stay prices from the property's price tables."""

    @staticmethod
    def calculate_stay_price(
        property_settings: PropertySettings,
        size_class: SizeClass,
        guest_category: GuestCategory,
        adults: int,
        children: int,
        nights: int,
    ) -> int:
        """Price of one room for a uniform-category party.

        Args:
            property_settings: Settings holding the price table
            size_class: Room size class
            guest_category: Resident or external rate
            adults: Number of adults in the room
            children: Number of children in the room (toddlers excluded)
            nights: Number of nights

        Returns:
            Total price as integer
        """
        _check_non_negative(adults=adults, children=children, nights=nights)
        rates = property_settings.rates_for(guest_category, size_class)
        per_night = rates.empty_room + adults * rates.adult + children * rates.child
        return per_night * nights

    @staticmethod
    def calculate_room_price_for_guests(
        property_settings: PropertySettings,
        size_class: SizeClass,
        guest_records: Iterable[GuestRecord],
        nights: int,
        fallback_category: GuestCategory = GuestCategory.EXTERNAL,
    ) -> int:
        """Price of one room whose guests carry individual categories.

        The empty-room base uses the resident rate when any non-toddler
        resident guest stays in the room, otherwise ``fallback_category``.
        Each adult and child pays the surcharge of their own category.
        """
        _check_non_negative(nights=nights)
        records = [r for r in guest_records if r.age_band != AgeBand.TODDLER]

        base_category = (
            GuestCategory.RESIDENT
            if any(r.category == GuestCategory.RESIDENT for r in records)
            else fallback_category
        )
        per_night = property_settings.rates_for(base_category, size_class).empty_room

        for record in records:
            rates = property_settings.rates_for(record.category, size_class)
            per_night += rates.adult if record.age_band == AgeBand.ADULT else rates.child

        return per_night * nights

    @staticmethod
    def calculate_multi_room_price(
        property_settings: PropertySettings,
        allocation: Mapping[str, GuestCounts],
        guest_category: GuestCategory,
        nights: int,
    ) -> int:
        """Sum of per-room stay prices for an allocated party."""
        total = 0
        for room_id, counts in allocation.items():
            room = property_settings.get_room(room_id)
            total += PriceCalculator.calculate_stay_price(
                property_settings,
                room.size_class,
                guest_category,
                counts.adults,
                counts.children,
                nights,
            )
        return total

    @staticmethod
    def calculate_bulk_price(
        property_settings: PropertySettings,
        guest_mix: BulkGuestMix,
        nights: int,
    ) -> int:
        """Flat whole-property price.

        ``(base_price_per_night + sum of per-guest surcharges) * nights``;
        surcharges are summed per guest category, independent of room count.
        """
        _check_non_negative(nights=nights)
        bulk = property_settings.bulk_prices
        per_night = (
            bulk.base_price_per_night
            + guest_mix.resident_adults * bulk.resident_adult
            + guest_mix.resident_children * bulk.resident_child
            + guest_mix.external_adults * bulk.external_adult
            + guest_mix.external_children * bulk.external_child
        )
        return per_night * nights

    @staticmethod
    def stay_breakdown(
        property_settings: PropertySettings,
        size_class: SizeClass,
        guest_category: GuestCategory,
        adults: int,
        children: int,
        nights: int,
    ) -> PriceBreakdown:
        """Itemized version of :meth:`calculate_stay_price` for price previews."""
        _check_non_negative(adults=adults, children=children, nights=nights)
        rates = property_settings.rates_for(guest_category, size_class)
        lines = [
            PriceLine(label="empty_room", quantity=1, unit_price=rates.empty_room, per_night=rates.empty_room),
            PriceLine(label="adult", quantity=adults, unit_price=rates.adult, per_night=adults * rates.adult),
            PriceLine(label="child", quantity=children, unit_price=rates.child, per_night=children * rates.child),
        ]
        per_night = sum(line.per_night for line in lines)
        return PriceBreakdown(lines=lines, nights=nights, per_night=per_night, total=per_night * nights)

    @staticmethod
    def bulk_breakdown(
        property_settings: PropertySettings,
        guest_mix: BulkGuestMix,
        nights: int,
    ) -> PriceBreakdown:
        """Itemized version of :meth:`calculate_bulk_price`."""
        _check_non_negative(nights=nights)
        bulk = property_settings.bulk_prices
        items = [
            ("base", 1, bulk.base_price_per_night),
            ("resident_adult", guest_mix.resident_adults, bulk.resident_adult),
            ("resident_child", guest_mix.resident_children, bulk.resident_child),
            ("external_adult", guest_mix.external_adults, bulk.external_adult),
            ("external_child", guest_mix.external_children, bulk.external_child),
        ]
        lines = [
            PriceLine(label=label, quantity=qty, unit_price=unit, per_night=qty * unit)
            for label, qty, unit in items
            if qty
        ]
        per_night = sum(line.per_night for line in lines)
        return PriceBreakdown(lines=lines, nights=nights, per_night=per_night, total=per_night * nights)
