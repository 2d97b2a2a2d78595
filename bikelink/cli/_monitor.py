"""Monitoring command for the bikelink CLI."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from .._cancellation import CancellationSignal
from .._config import EquipmentConfig
from .._errors import (
    Cancelled,
    DiscoveryFailed,
    InvalidSetpoint,
    LinkLost,
    UnsupportedEquipmentType,
)
from .._factory import resolve
from ..codec import TelemetrySample
from ..equipment import Equipment

LOGGER = logging.getLogger(__name__)


def install_signal_handlers(
    loop: asyncio.AbstractEventLoop, cancellation: CancellationSignal
) -> None:
    """Fire the cancellation signal on SIGINT/SIGTERM."""
    for signum in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows; KeyboardInterrupt still ends the run there.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, cancellation.fire, signal.Signals(signum).name)


def _format_sample(iteration: int, sample: TelemetrySample) -> str:
    """Format a telemetry sample as one table row."""
    return f"{iteration:>6} | {sample.cadence:>8} | {sample.power:>8} | {sample.speed:>8}"


async def _wait_interval(cancellation: CancellationSignal, interval: float) -> None:
    """Sleep for ``interval`` seconds, returning early if cancelled."""
    with contextlib.suppress(asyncio.TimeoutError):
        await asyncio.wait_for(cancellation.wait(), interval)


async def _read_loop(
    equipment: Equipment,
    cancellation: CancellationSignal,
    interval: float,
    count: int | None,
) -> None:
    """Print samples until cancelled or ``count`` samples were shown."""
    print(f"{'Sample':>6} | {'Cadence':>8} | {'Power':>8} | {'Km/h':>8}")
    print("-" * 42)

    iteration = 0
    while not cancellation.fired and (count is None or iteration < count):
        sample = await equipment.read()
        if sample is not None:
            print(_format_sample(iteration, sample))
            iteration += 1
        await _wait_interval(cancellation, interval)


async def monitor(args: argparse.Namespace) -> None:
    """Resolve equipment, connect, and print live telemetry."""
    cancellation = CancellationSignal()
    install_signal_handlers(asyncio.get_running_loop(), cancellation)
    config = EquipmentConfig(
        scan_timeout=args.timeout, poll_interval=min(args.interval, args.timeout)
    )

    print(f"Looking for '{args.type}' equipment...")
    try:
        equipment = await resolve(args.type, args.parameter, cancellation, config=config)
    except UnsupportedEquipmentType as e:
        print(f"\n✗ {e}")
        sys.exit(1)
    except DiscoveryFailed as e:
        print(f"\n✗ Discovery failed: {e}")
        sys.exit(1)
    except Cancelled:
        print("\nInterrupted")
        return

    try:
        if not await equipment.connect():
            print(f"\n✗ Could not connect to {equipment!r}")
            sys.exit(1)
        print(f"✓ Connected to {equipment!r} (Ctrl+C to stop)\n")

        if args.level is not None:
            if await equipment.set_level(args.level):
                print(f"✓ Level set to {args.level}\n")
            else:
                print(f"✗ {equipment!r} rejected level {args.level}\n")

        await _read_loop(equipment, cancellation, args.interval, args.count)
    except Cancelled:
        print("\nMonitoring stopped")
    except InvalidSetpoint as e:
        print(f"\n✗ Invalid level: {e}")
        sys.exit(1)
    except LinkLost as e:
        print(f"\n✗ Link lost: {e}")
        LOGGER.error("Monitor error", exc_info=True)
        sys.exit(1)
    finally:
        await equipment.disconnect()
