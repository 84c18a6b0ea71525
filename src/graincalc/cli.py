"""Command-line tools for farm records and grain calculations.

The farm commands talk to Firestore using the settings in .env, or to a
throwaway in-memory store seeded with sample farms when --memory is given.
"""

import argparse
import asyncio
import logging
from datetime import UTC, datetime

from graincalc.analysis.shrink import calculate_shrink
from graincalc.core import FirestoreStore, MemoryStore, settings
from graincalc.core.store import DocumentStore
from graincalc.core.units import TEST_WEIGHTS, format_bushels, format_weight
from graincalc.data.farms import FarmService
from graincalc.data.models import FARMS, Farm
from graincalc.stores.farms import MergedFarmView, farm_sort_key


def _make_store(args: argparse.Namespace) -> DocumentStore:
    if args.memory:
        return MemoryStore()
    return FirestoreStore()


async def _seed_demo(store: DocumentStore, user_id: str) -> None:
    """Sample data for --memory: one owned farm and one shared by a neighbour."""
    now = datetime.now(UTC)
    await store.create(
        FARMS,
        {"name": "Home Place", "ownerId": user_id, "memberIds": [user_id], "fieldIds": [], "createdAt": now},
    )
    await store.create(
        FARMS,
        {
            "name": "North 80",
            "ownerId": "neighbour",
            "memberIds": ["neighbour", user_id],
            "fieldIds": [],
            "createdAt": now,
        },
    )


def _print_farms(farms: tuple[Farm, ...] | list[Farm], user_id: str) -> None:
    if not farms:
        print("  (no farms)")
        return
    print(f"  {'Name':<24} {'Role':<8} {'Members':>7}  ID")
    print("  " + "-" * 60)
    for farm in farms:
        role = "owner" if farm.is_owner(user_id) else "member"
        print(f"  {farm.name:<24} {role:<8} {len(farm.member_ids):>7}  {farm.id}")


async def cmd_farms(args: argparse.Namespace) -> None:
    """List farms visible to a user."""
    store = _make_store(args)
    if args.memory:
        await _seed_demo(store, args.user)

    farms = await FarmService(store).get_all(args.user)
    print(f"Farms for {args.user}: {len(farms)}")
    _print_farms(sorted(farms, key=farm_sort_key), args.user)


async def cmd_watch(args: argparse.Namespace) -> None:
    """Follow the live farm list for a user."""
    store = _make_store(args)
    view = MergedFarmView(store)
    updates = 0

    def on_update(farms: tuple[Farm, ...]) -> None:
        nonlocal updates
        updates += 1
        state = "ready" if view.ready else "loading"
        print(f"\n[{datetime.now().strftime('%H:%M:%S')}] update {updates} ({state}): {len(farms)} farms")
        _print_farms(farms, args.user)

    unsubscribe = view.subscribe(on_update)
    view.activate(args.user)
    if args.memory:
        await _seed_demo(store, args.user)

    try:
        await asyncio.sleep(args.seconds)
    finally:
        unsubscribe()
        view.deactivate()
    print(f"\nStopped after {args.seconds:g}s ({updates} updates)")


async def cmd_shrink(args: argparse.Namespace) -> None:
    """Calculate dry weight and bushels for a wet load."""
    test_weight = args.test_weight or TEST_WEIGHTS.get(args.crop, settings.default_test_weight)
    result = calculate_shrink(
        wet_weight=args.wet_weight,
        moisture=args.moisture,
        target_moisture=args.target,
        manual_shrink_factor=args.factor,
        test_weight=test_weight,
        unit=args.unit,
    )
    method = f"{args.factor:g}%/point" if args.factor else "water shrink"
    print(f"Crop: {args.crop} ({test_weight:g} lb/bu)")
    print(f"Moisture: {result.moisture_content:g}% -> {result.target_moisture:g}% ({method})")
    print(f"Shrink: {result.shrink_percent:.2f}%")
    print(f"{'':<6}{'Weight':>14} {'Bushels':>16}")
    print(
        f"{'Wet':<6}{format_weight(result.wet_weight):>14} "
        f"{format_bushels(result.calculated_wet_bushels):>16}"
    )
    print(
        f"{'Dry':<6}{format_weight(result.calculated_dry_weight):>14} "
        f"{format_bushels(result.calculated_dry_bushels):>16}"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Farm records and grain drying calculations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  graincalc farms --user abc123              List farms for a user
  graincalc --memory watch --user me         Watch a live farm list (sample data)
  graincalc shrink --wet-weight 56000 --moisture 20
  graincalc shrink --wet-weight 25 --unit metric_ton --moisture 22 --factor 1.4
""",
    )
    parser.add_argument("--memory", action="store_true", help="Use an in-memory store with sample farms")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # farms - list farms
    farms_parser = subparsers.add_parser("farms", help="List farms visible to a user")
    farms_parser.add_argument("--user", required=True, help="User id")

    # watch - live farm list
    watch_parser = subparsers.add_parser("watch", help="Follow the live farm list for a user")
    watch_parser.add_argument("--user", required=True, help="User id")
    watch_parser.add_argument("--seconds", type=float, default=30, help="How long to watch (default: 30)")

    # shrink - grain calculation
    shrink_parser = subparsers.add_parser("shrink", help="Calculate grain drying shrink")
    shrink_parser.add_argument("--wet-weight", type=float, required=True, help="Net wet weight of the load")
    shrink_parser.add_argument("--moisture", type=float, required=True, help="Measured moisture (%%)")
    shrink_parser.add_argument(
        "--target", type=float, default=settings.default_target_moisture, help="Target moisture (%%)"
    )
    shrink_parser.add_argument("--factor", type=float, default=0.0, help="Shrink %% per point (0 = water shrink)")
    shrink_parser.add_argument("--crop", choices=sorted(TEST_WEIGHTS), default="corn", help="Crop (sets test weight)")
    shrink_parser.add_argument("--test-weight", type=float, help="Override lb per bushel")
    shrink_parser.add_argument("--unit", default="lb", help="Unit of --wet-weight (lb, kg, metric_ton)")

    return parser


async def cli_main() -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    commands = {
        "farms": cmd_farms,
        "watch": cmd_watch,
        "shrink": cmd_shrink,
    }

    if args.command in commands:
        await commands[args.command](args)
    else:
        parser.print_help()


def cli() -> None:
    """CLI entry point."""
    asyncio.run(cli_main())


if __name__ == "__main__":
    cli()
