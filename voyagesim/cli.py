#!/usr/bin/env python3
"""
VOYAGESIM CLI Tool.

Command-line interface for inspecting the engine without a map:
- Date-based progress estimates
- Simulating a tracked voyage and printing the resulting scene
- Synthesizing a corridor route between two coordinates

Usage:
    voyagesim progress --planned-start 2025-01-01 --planned-end 2025-01-11
    voyagesim simulate voyage.json --addresses addresses.txt --mode pickup
    voyagesim corridor --from 120,30 --to=-0.5,51.5
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from voyagesim.config import Settings, get_settings
from voyagesim.data.addresses import ShipmentAddresses, parse_address_file
from voyagesim.metrics import get_metrics
from voyagesim.navigation.scene import NavigationMode
from voyagesim.resolution.cache import ResolutionCache
from voyagesim.resolution.providers import OfflineDirections, OfflineGeocoder, build_providers
from voyagesim.resolution.resolver import RouteResolver
from voyagesim.routes.corridor import CorridorSynthesizer
from voyagesim.routes.geometry import Coordinate
from voyagesim.routes.voyage_file import parse_voyage_file
from voyagesim.voyage.progress import estimate_progress, parse_schedule_date
from voyagesim.voyage.session import TransportMode, VoyageSession

logger = logging.getLogger(__name__)

_MODES = {
    "overview": NavigationMode.OVERVIEW,
    "pickup": NavigationMode.PICKUP_LEG,
    "delivery": NavigationMode.DELIVERY_LEG,
}


def parse_coordinate(text: str) -> Coordinate:
    """Parse ``"lon,lat"``."""
    try:
        lon, lat = (float(part) for part in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected 'lon,lat', got {text!r}")
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        raise argparse.ArgumentTypeError(f"Coordinate out of range: {text!r}")
    return (lon, lat)


def show_progress(args, settings: Settings) -> None:
    """Print a date-based progress estimate."""
    now = parse_schedule_date(args.now) if args.now else None
    pct = estimate_progress(
        args.planned_start,
        args.planned_end,
        args.actual_start,
        args.actual_end,
        now=now,
        fallback_pct=settings.progress_fallback_pct,
    )
    print(f"Progress: {pct:.1f}%")


def show_corridor(args, settings: Settings) -> None:
    """Print a synthesized corridor route as JSON."""
    synthesizer = CorridorSynthesizer(margin_deg=settings.corridor_margin_deg)
    route = synthesizer.route(args.origin, args.destination, args.predicted or ())
    print(json.dumps({
        "source": route.source.value,
        "length_km": round(route.length_km, 1),
        "coordinates": [list(c) for c in route.coordinates],
    }, indent=2))


async def _simulate(args, settings: Settings) -> dict:
    voyage = parse_voyage_file(args.voyage_file)
    addresses = parse_address_file(args.addresses) if args.addresses else ShipmentAddresses()

    if args.offline:
        geocoder, directions = OfflineGeocoder(), OfflineDirections()
    else:
        geocoder, directions = build_providers(settings)
    resolver = RouteResolver(geocoder, directions, cache=ResolutionCache(), settings=settings)

    session = VoyageSession.from_voyage_file(
        voyage,
        resolver,
        addresses=addresses,
        transport_mode=TransportMode(args.transport),
        settings=settings,
    )
    await session.resolve()

    if args.playback:
        session.start_playback(restart=True)
        session.advance(args.playback)

    mode = _MODES[args.mode]
    if mode != NavigationMode.OVERVIEW:
        await session.navigation.enter(mode)
        if args.animate:
            session.navigation.advance(args.animate)

    return {
        "session": session.summary(),
        "scene": session.navigation.scene().model_dump(mode="json"),
        "metrics": get_metrics().get_summary(),
    }


def simulate(args, settings: Settings) -> None:
    """Load a voyage, resolve it and print the scene for the chosen mode."""
    try:
        result = asyncio.run(_simulate(args, settings))
    except (OSError, ValueError) as e:
        print(f"\nError: {e}")
        sys.exit(1)
    print(json.dumps(result, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voyagesim",
        description="VoyageSim CLI Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Estimate progress from schedule dates:
    voyagesim progress --planned-start 01/01/2025 --planned-end 11/01/2025

  Simulate a voyage offline and focus the pickup leg:
    voyagesim simulate voyage.json --addresses addresses.txt --mode pickup --offline

  Synthesize a corridor route:
    voyagesim corridor --from 120,30 --to=-0.5,51.5
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # progress
    progress_parser = subparsers.add_parser("progress", help="Estimate progress from dates")
    progress_parser.add_argument("--planned-start", required=True, help="Planned start (dd/mm/yyyy or ISO)")
    progress_parser.add_argument("--planned-end", required=True, help="Planned end (dd/mm/yyyy or ISO)")
    progress_parser.add_argument("--actual-start", help="Actual start, preferred over planned")
    progress_parser.add_argument("--actual-end", help="Actual end, preferred over planned")
    progress_parser.add_argument("--now", help="Evaluate at this instant instead of the current time")

    # simulate
    simulate_parser = subparsers.add_parser("simulate", help="Simulate a tracked voyage")
    simulate_parser.add_argument("voyage_file", type=Path, help="Tracking JSON file")
    simulate_parser.add_argument("--addresses", type=Path, help="Pickup/delivery address export")
    simulate_parser.add_argument("--mode", choices=sorted(_MODES), default="overview", help="Navigation mode")
    simulate_parser.add_argument(
        "--transport",
        choices=[m.value for m in TransportMode],
        default=TransportMode.SEA.value,
        help="Main-carriage mode (default: sea)"
    )
    simulate_parser.add_argument("--offline", action="store_true", help="Do not call Mapbox")
    simulate_parser.add_argument("--playback", type=float, default=0.0, help="Seconds of playback to run")
    simulate_parser.add_argument("--animate", type=float, default=0.0, help="Seconds of truck animation to run")

    # corridor
    corridor_parser = subparsers.add_parser("corridor", help="Synthesize a corridor route")
    corridor_parser.add_argument("--from", dest="origin", type=parse_coordinate, required=True, help="Origin lon,lat")
    corridor_parser.add_argument("--to", dest="destination", type=parse_coordinate, required=True, help="Destination lon,lat")
    corridor_parser.add_argument(
        "--predicted",
        type=parse_coordinate,
        nargs="*",
        help="Predicted samples lon,lat to merge in"
    )

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    settings.configure_logging()

    if args.command == "progress":
        show_progress(args, settings)
    elif args.command == "simulate":
        simulate(args, settings)
    elif args.command == "corridor":
        show_corridor(args, settings)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
