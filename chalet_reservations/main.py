"""Command line entry point for the Chalet reservation engine."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

from chalet_reservations.config import configure_logging, get_logger, settings
from chalet_reservations.errors import EXPECTED_ERRORS
from chalet_reservations.models import GuestCategory, GuestCounts
from chalet_reservations.services import (
    AvailabilityEngine,
    BookingRequest,
    GuestAllocator,
    ReservationValidator,
)
from chalet_reservations.stores import (
    InMemoryReservationStore,
    RedisReservationStore,
    ReservationStore,
)

logger = get_logger(__name__)


def _room_list(value: str) -> list[str]:
    return [room_id.strip() for room_id in value.split(",") if room_id.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chalet-reservations",
        description="Query availability and prices of the chalet's rooms.",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        help="JSON file with settings, bookings, proposedBookings and blockedDates",
    )
    parser.add_argument(
        "--store",
        choices=["memory", "redis"],
        default=settings.store_backend,
        help="Store backend (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    availability = subparsers.add_parser("availability", help="Per-day status of one room")
    availability.add_argument("room")
    availability.add_argument("start")
    availability.add_argument("end", nargs="?")

    bulk = subparsers.add_parser("bulk", help="Whole-property status on one day")
    bulk.add_argument("date")
    bulk.add_argument("--rooms", type=_room_list)

    quote = subparsers.add_parser("quote", help="Validate a request and compute its price")
    quote.add_argument("start")
    quote.add_argument("end")
    quote.add_argument("--rooms", type=_room_list, default=[])
    quote.add_argument("--adults", type=int, default=1)
    quote.add_argument("--children", type=int, default=0)
    quote.add_argument("--toddlers", type=int, default=0)
    quote.add_argument(
        "--category",
        choices=[category.value for category in GuestCategory],
        default=GuestCategory.EXTERNAL.value,
    )
    quote.add_argument("--bulk", action="store_true", help="Book the whole property")
    quote.add_argument("--code", help="Christmas access code")

    allocate = subparsers.add_parser("allocate", help="Distribute a party across rooms")
    allocate.add_argument("--rooms", type=_room_list, required=True)
    allocate.add_argument("--adults", type=int, default=0)
    allocate.add_argument("--children", type=int, default=0)
    allocate.add_argument("--toddlers", type=int, default=0)

    return parser


def build_store(args: argparse.Namespace) -> ReservationStore:
    if args.store == "redis":
        return RedisReservationStore()
    if args.snapshot:
        return InMemoryReservationStore.from_file(args.snapshot)
    return InMemoryReservationStore()


async def run_command(args: argparse.Namespace, store: ReservationStore) -> dict[str, Any]:
    """Execute one subcommand and return its JSON-serializable result."""
    engine = AvailabilityEngine(store)

    if args.command == "availability":
        statuses = await engine.get_room_availability_range(
            args.start, args.end or args.start, args.room
        )
        return {
            "roomId": args.room,
            "days": {
                day.isoformat(): result.model_dump(mode="json", by_alias=True)
                for day, result in statuses.items()
            },
        }

    if args.command == "bulk":
        status = await engine.get_bulk_availability(args.date, args.rooms)
        return {
            "date": args.date,
            "status": status.value,
            "available": engine.is_bulk_available(status),
        }

    if args.command == "quote":
        validator = ReservationValidator(store)
        request = BookingRequest(
            start_date=args.start,
            end_date=args.end,
            rooms=args.rooms,
            guests=GuestCounts(adults=args.adults, children=args.children, toddlers=args.toddlers),
            guest_category=GuestCategory(args.category),
            is_bulk_booking=args.bulk,
            christmas_code=args.code,
        )
        prepared = await validator.prepare(request)
        return {
            "rooms": prepared.rooms,
            "nights": prepared.stay.nights,
            "allocation": {
                room_id: counts.model_dump() for room_id, counts in prepared.allocation.items()
            },
            "totalPrice": prepared.total_price,
            "warnings": prepared.warnings,
        }

    if args.command == "allocate":
        property_settings = await store.get_settings()
        rooms = [property_settings.get_room(room_id) for room_id in args.rooms]
        allocation = GuestAllocator.allocate(args.adults, args.children, rooms, args.toddlers)
        return {room_id: counts.model_dump() for room_id, counts in allocation.items()}

    raise ValueError(f"Unknown command: {args.command}")


async def main(argv: Optional[list[str]] = None) -> int:
    """Parse arguments, run the command and print its result as JSON.

    Returns:
        Exit code: 0 on success, 1 on a rejected request or failure
    """
    args = build_parser().parse_args(argv)
    store = build_store(args)

    try:
        result = await run_command(args, store)
        print(json.dumps({"success": True, "result": result}, indent=2, default=str))
        return 0
    except EXPECTED_ERRORS as e:
        logger.info("Request rejected", command=args.command, error=str(e))
        print(json.dumps({"success": False, "error": e.to_dict()}, indent=2, default=str))
        return 1
    except Exception as e:
        logger.error(
            "Fatal error in command",
            command=args.command,
            error=str(e),
            exc_info=True,
        )
        return 1
    finally:
        await store.close()


def run_sync() -> int:
    """Run the async main function synchronously.

    Returns:
        Exit code from main()
    """
    return asyncio.run(main())


if __name__ == "__main__":
    # Configure logging
    configure_logging()

    # Run main function and exit with returned code
    sys.exit(run_sync())
