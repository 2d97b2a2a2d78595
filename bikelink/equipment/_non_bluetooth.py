from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any

from .._cancellation import CancellationSignal
from .._config import EquipmentConfig
from ..codec import TelemetrySample, validate_level
from ..transport import Transport
from ._base import DEFAULT_MAX_LEVEL, ConnectionState, Equipment, level_parameter
from ._registry import register_equipment

LOGGER = logging.getLogger(__name__)


@register_equipment("device")
class NonBluetoothDevice(Equipment):
    """Placeholder equipment without a wireless link.

    Connecting always succeeds and every read reports an idle sample with the
    seconds elapsed since the instance was created. Levels ``1..max_level``
    are accepted and only logged.
    """

    def __init__(
        self,
        max_level: int,
        cancellation: CancellationSignal,
        name: str = "some hypothetical non-bluetooth device",
    ) -> None:
        super().__init__(cancellation)
        if max_level < 1:
            raise ValueError(f"max level must be at least 1, got {max_level}")
        self.name = name
        self.max_level = max_level
        self._start_time = time.monotonic()

    @classmethod
    async def create(
        cls,
        parameter: Any,
        cancellation: CancellationSignal,
        *,
        transport: Transport | None = None,
        config: EquipmentConfig | None = None,
    ) -> NonBluetoothDevice:
        cancellation.raise_if_fired()
        return cls(level_parameter(parameter, DEFAULT_MAX_LEVEL), cancellation)

    def _elapsed(self) -> float:
        return time.monotonic() - self._start_time

    async def connect(self) -> bool:
        self._require_state(ConnectionState.DISCONNECTED, "connect")
        LOGGER.info("Connecting to: %s", self.name)
        self._transition(ConnectionState.CONNECTING)
        self._transition(ConnectionState.CONNECTED)
        return True

    async def read(self) -> TelemetrySample | None:
        self._require_state(ConnectionState.CONNECTED, "read from")
        return TelemetrySample(
            cadence=0,
            power=0,
            speed=Decimal("0.00"),
            elapsed_time=int(self._elapsed()),
        )

    async def set_level(self, level: int) -> bool:
        self._require_state(ConnectionState.CONNECTED, "set level on")
        validate_level(level, 1, self.max_level)
        LOGGER.info("Setting level on: %s to %d at %.1fs", self.name, level, self._elapsed())
        return True

    async def disconnect(self) -> bool:
        if self._state is not ConnectionState.DISCONNECTED:
            LOGGER.info("Disconnecting from: %s", self.name)
        self._transition(ConnectionState.DISCONNECTED)
        return True
