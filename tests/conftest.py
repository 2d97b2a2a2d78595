"""Shared fixtures and configuration for pytest."""

from __future__ import annotations

import pytest

from bikelink import CancellationSignal, EquipmentConfig
from bikelink.equipment import IconsoleOpcode
from bikelink.equipment._iconsole import ICONSOLE_NOTIFY_UUID, ICONSOLE_WRITE_UUID
from bikelink.transport import SimulatedDevice, SimulatedSession, SimulatedTransport


@pytest.fixture
def cancellation():
    """A fresh, unfired cancellation signal."""
    return CancellationSignal()


@pytest.fixture
def fast_config():
    """Config with short timeouts so failing paths finish quickly."""
    return EquipmentConfig(
        scan_timeout=0.3, poll_interval=0.02, connect_timeout=0.3, read_timeout=0.0
    )


def iconsole_echo(session: SimulatedSession, endpoint_id: str, data: bytes) -> None:
    """Echo level commands back on the notify endpoint like a real console."""
    if endpoint_id == ICONSOLE_WRITE_UUID and data[:1] == bytes([IconsoleOpcode.SET_LEVEL]):
        session.notify(ICONSOLE_NOTIFY_UUID, data)


@pytest.fixture
def iconsole_device():
    """A simulated iConsole console without a telemetry ticker."""
    return SimulatedDevice(
        name="iConsole+0028",
        address="AA:BB:CC:DD:EE:28",
        rssi=-60,
        on_write=iconsole_echo,
    )


@pytest.fixture
def transport(iconsole_device):
    """A simulated transport advertising the iConsole device."""
    return SimulatedTransport(devices=[iconsole_device])
