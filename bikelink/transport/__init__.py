"""Transport capabilities consumed by the equipment core."""

from ._base import ConnectionHandle, NotificationStream, Transport
from ._bleak import BleakTransport, BleCandidate, BleSession, scan_advertisements
from ._simulated import SimulatedDevice, SimulatedSession, SimulatedTransport

__all__ = [
    "BleCandidate",
    "BleSession",
    "BleakTransport",
    "ConnectionHandle",
    "NotificationStream",
    "SimulatedDevice",
    "SimulatedSession",
    "SimulatedTransport",
    "Transport",
    "scan_advertisements",
]
