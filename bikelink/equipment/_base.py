from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar

from .._cancellation import CancellationSignal
from .._config import EquipmentConfig
from .._errors import InvalidState
from ..codec import TelemetrySample
from ..transport import Transport

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_LEVEL = 32


class ConnectionState(Enum):
    """Lifecycle of one equipment session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def level_parameter(parameter: Any, default: int) -> int:
    """Interpret a factory parameter as a maximum level."""
    if parameter is None:
        return default
    if isinstance(parameter, bool):
        raise ValueError(f"maximum level must be an integer, got {parameter!r}")
    try:
        return int(parameter)
    except (TypeError, ValueError) as e:
        raise ValueError(f"maximum level must be an integer, got {parameter!r}") from e


class Equipment(ABC):
    """Uniform contract implemented once per equipment variant.

    Every instance owns its own state; callers drive it one call at a time:
    ``connect``, then ``read``/``set_level`` in a loop, then ``disconnect``.
    """

    type_tag: ClassVar[str] = ""

    def __init__(self, cancellation: CancellationSignal) -> None:
        self._cancellation = cancellation
        self._state = ConnectionState.DISCONNECTED

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.type_tag!r})"

    @property
    def state(self) -> ConnectionState:
        """Return the current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @classmethod
    @abstractmethod
    async def create(
        cls,
        parameter: Any,
        cancellation: CancellationSignal,
        *,
        transport: Transport | None = None,
        config: EquipmentConfig | None = None,
    ) -> Equipment:
        """Locate the equipment and return a not-yet-connected instance."""

    @abstractmethod
    async def connect(self) -> bool:
        """Open a session; False means the equipment declined or is unavailable."""

    @abstractmethod
    async def read(self) -> TelemetrySample | None:
        """Return the latest telemetry sample, or None if nothing new arrived."""

    @abstractmethod
    async def set_level(self, level: int) -> bool:
        """Command a new target level."""

    @abstractmethod
    async def disconnect(self) -> bool:
        """Release the session; safe to call in any state."""

    def _transition(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        LOGGER.info("%r: %s -> %s", self, self._state.value, state.value)
        self._state = state

    def _require_state(self, expected: ConnectionState, operation: str) -> None:
        if self._state is not expected:
            raise InvalidState(
                f"cannot {operation} {self!r} while {self._state.value}; "
                f"requires {expected.value}"
            )
