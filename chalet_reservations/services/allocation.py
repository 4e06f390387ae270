"""Distribution of an aggregate party into individual rooms."""

from collections.abc import Iterable

from structlog import get_logger

from chalet_reservations.errors import CapacityError, ValidationError
from chalet_reservations.models import GuestCounts, Room

logger = get_logger(__name__)


class GuestAllocator:
    """Fills rooms largest-first, adults before children.

    The order is deterministic (capacity descending, room id ascending) so the
    same request yields the same room assignment at hold time and at final
    booking time.
    """

    @staticmethod
    def allocation_order(rooms: Iterable[Room]) -> list[Room]:
        return sorted(rooms, key=lambda room: (-room.beds, room.id))

    @staticmethod
    def allocate(
        total_adults: int,
        total_children: int,
        rooms: Iterable[Room],
        total_toddlers: int = 0,
    ) -> dict[str, GuestCounts]:
        """Distribute adults and children across rooms.

        Every room gets an entry, including rooms left with zero guests.
        Toddlers take no bed; they are placed with the first room that holds
        an adult (or the first room when there are no adults).

        Args:
            total_adults: Adults in the party
            total_children: Children in the party
            rooms: Rooms to fill
            total_toddlers: Toddlers in the party

        Returns:
            Mapping of room id to guest counts, in allocation order

        Raises:
            ValidationError: If a count is negative or no rooms are given
            CapacityError: If the party does not fit into the rooms
        """
        if total_adults < 0 or total_children < 0 or total_toddlers < 0:
            raise ValidationError("Guest counts must not be negative", field="guests")

        ordered = GuestAllocator.allocation_order(rooms)
        if not ordered:
            raise ValidationError("At least one room is required", field="rooms")

        capacity = sum(room.beds for room in ordered)
        requested = total_adults + total_children
        if requested > capacity:
            raise CapacityError(requested=requested, capacity=capacity)

        remaining_adults = total_adults
        remaining_children = total_children
        allocation: dict[str, GuestCounts] = {}

        for room in ordered:
            available = min(room.beds, remaining_adults + remaining_children)
            adults = min(available, remaining_adults)
            children = available - adults
            remaining_adults -= adults
            remaining_children -= children
            allocation[room.id] = GuestCounts(adults=adults, children=children)

        if total_toddlers:
            toddler_room = next(
                (room_id for room_id, counts in allocation.items() if counts.adults > 0),
                ordered[0].id,
            )
            counts = allocation[toddler_room]
            allocation[toddler_room] = GuestCounts(
                adults=counts.adults, children=counts.children, toddlers=total_toddlers
            )

        logger.debug(
            "Allocated guests",
            adults=total_adults,
            children=total_children,
            rooms=[room.id for room in ordered],
        )
        return allocation
