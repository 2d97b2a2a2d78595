from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from ._monitor import monitor
from ._scan import list_types, scan_devices

LOGGER = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the bikelink tool."""
    parser = argparse.ArgumentParser(
        prog="bikelink",
        description="Exercise bike BLE Command-Line Interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bikelink types                               # List supported equipment types
  bikelink scan                                # List advertising BLE devices
  bikelink scan --name iConsole                # Only devices whose name matches

  bikelink monitor debug                       # Simulated bike, no hardware needed
  bikelink monitor 28 24 --level 10            # iConsole bike, max level 24, set level 10
  bikelink monitor ftms "KICKR" --count 20     # FTMS bike named like KICKR, 20 samples
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute", required=True)

    types_parser = subparsers.add_parser("types", help="List supported equipment types")
    types_parser.set_defaults(func=list_types)

    scan_parser = subparsers.add_parser("scan", help="Scan for BLE devices")
    scan_parser.add_argument("--name", help="Only show devices whose name contains this text")
    scan_parser.add_argument(
        "--timeout", type=float, default=10.0, help="Scan timeout in seconds (default: 10.0)"
    )
    scan_parser.set_defaults(func=scan_devices)

    monitor_parser = subparsers.add_parser("monitor", help="Connect and print live telemetry")
    monitor_parser.add_argument("type", help="Equipment type (see 'bikelink types')")
    monitor_parser.add_argument(
        "parameter", nargs="?", help="Variant parameter: max level or name filter (optional)"
    )
    monitor_parser.add_argument("--level", type=int, help="Level to command after connecting")
    monitor_parser.add_argument(
        "--interval", type=float, default=1.0, help="Read interval in seconds (default: 1.0)"
    )
    monitor_parser.add_argument("--count", type=int, help="Stop after this many samples")
    monitor_parser.add_argument(
        "--timeout", type=float, default=10.0, help="Discovery timeout in seconds (default: 10.0)"
    )
    monitor_parser.set_defaults(func=monitor)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the bikelink CLI."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(args.func(args))
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(0)
    except Exception as e:
        LOGGER.error("Error: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
