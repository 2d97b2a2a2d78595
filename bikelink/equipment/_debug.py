from __future__ import annotations

import logging
from struct import pack

from .._config import EquipmentConfig
from ..transport import SimulatedDevice, SimulatedSession, SimulatedTransport, Transport
from ._iconsole import (
    ICONSOLE_NOTIFY_UUID,
    ICONSOLE_WRITE_UUID,
    Iconsole0028Bike,
    IconsoleOpcode,
)
from ._registry import register_equipment

LOGGER = logging.getLogger(__name__)

DEBUG_BIKE_NAME = "DEBUG-BIKE"
DEBUG_BIKE_ADDRESS = "00:00:00:00:00:28"


class SimulatedIconsoleBike:
    """Behavioural model of an iConsole bike for the simulated transport.

    Level commands are echoed back and shape the telemetry that is streamed
    on every tick: cadence and power rise with the commanded level.
    """

    def __init__(self, level: int = 0) -> None:
        self.level = level

    def device(self, tick_interval: float = 1.0) -> SimulatedDevice:
        return SimulatedDevice(
            name=DEBUG_BIKE_NAME,
            address=DEBUG_BIKE_ADDRESS,
            rssi=-40,
            on_write=self.on_write,
            ticker=self.tick,
            tick_interval=tick_interval,
        )

    def on_write(self, session: SimulatedSession, endpoint_id: str, data: bytes) -> None:
        if endpoint_id != ICONSOLE_WRITE_UUID or len(data) != 2:
            return
        if data[0] == IconsoleOpcode.SET_LEVEL:
            self.level = data[1]
            LOGGER.info("Debug bike level set to %d", self.level)
            session.notify(ICONSOLE_NOTIFY_UUID, data)

    def telemetry_frame(self) -> bytes:
        cadence = 60 + self.level
        power = self.level * 10
        speed = cadence * 30  # 0.01 km/h
        return pack(">BHHH", IconsoleOpcode.TELEMETRY, cadence, power, speed)

    def tick(self, session: SimulatedSession) -> None:
        session.notify(ICONSOLE_NOTIFY_UUID, self.telemetry_frame())


@register_equipment("debug")
class DebugBike(Iconsole0028Bike):
    """iConsole-compatible bike served by an in-memory peripheral."""

    name_filter = DEBUG_BIKE_NAME

    @classmethod
    def default_transport(cls, config: EquipmentConfig) -> Transport:
        bike = SimulatedIconsoleBike()
        return SimulatedTransport(devices=[bike.device(tick_interval=config.poll_interval)])
