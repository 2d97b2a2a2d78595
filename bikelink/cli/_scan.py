"""Discovery commands for the bikelink CLI."""

from __future__ import annotations

import argparse
import sys

from ..equipment import EQUIPMENT_TYPES
from ..transport import scan_advertisements


async def scan_devices(args: argparse.Namespace) -> None:
    """List advertising BLE devices, optionally filtered by name."""
    print(f"Scanning for BLE devices (timeout: {args.timeout}s)...")
    candidates = await scan_advertisements(timeout=args.timeout)
    if args.name:
        wanted = args.name.lower()
        candidates = [c for c in candidates if c.name and wanted in c.name.lower()]

    if not candidates:
        print("\n✗ No devices found")
        sys.exit(1)

    print(f"\n✓ Found {len(candidates)} device(s):\n")
    for i, candidate in enumerate(candidates, 1):
        print(f"{i}. {candidate.name or 'Unknown Device'}")
        print(f"   Address: {candidate.address}")
        print(f"   RSSI: {candidate.rssi} dBm")
        print()


async def list_types(args: argparse.Namespace) -> None:
    """Print the registered equipment types."""
    for type_tag, variant in sorted(EQUIPMENT_TYPES.items()):
        summary = (variant.__doc__ or "").strip().split("\n")[0]
        print(f"  {type_tag:<8} {variant.__name__:<20} {summary}")
