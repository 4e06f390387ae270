"""Room and guest classification models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SizeClass(str, Enum):
    """Room size class, keys the per-room price table."""

    SMALL = "small"
    LARGE = "large"


class GuestCategory(str, Enum):
    """Pricing and access tier of a guest."""

    RESIDENT = "resident"
    EXTERNAL = "external"


class AgeBand(str, Enum):
    """Age band of an individual guest. Toddlers are free and take no bed."""

    ADULT = "adult"
    CHILD = "child"
    TODDLER = "toddler"


class Room(BaseModel):
    """A bookable room of the property."""

    id: str
    name: str = ""
    beds: int = Field(ge=1)
    size_class: SizeClass = Field(default=SizeClass.SMALL, alias="sizeClass")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class GuestCounts(BaseModel):
    """Aggregate guest composition of a stay or a single room."""

    adults: int = Field(default=0, ge=0)
    children: int = Field(default=0, ge=0)
    toddlers: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def paying(self) -> int:
        """Guests that occupy a bed and pay a surcharge."""
        return self.adults + self.children

    def __add__(self, other: "GuestCounts") -> "GuestCounts":
        return GuestCounts(
            adults=self.adults + other.adults,
            children=self.children + other.children,
            toddlers=self.toddlers + other.toddlers,
        )


class GuestRecord(BaseModel):
    """An individually tagged guest with its own price category."""

    name: str = ""
    room_id: str | None = Field(default=None, alias="roomId")
    age_band: AgeBand = Field(default=AgeBand.ADULT, alias="ageBand")
    category: GuestCategory = GuestCategory.EXTERNAL

    model_config = ConfigDict(frozen=True, populate_by_name=True)
