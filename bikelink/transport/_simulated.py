"""In-memory transport.

Peripherals are plain objects with optional hooks: ``on_write`` reacts to
commands and ``ticker`` runs periodically while a session is open, which is
how the debug bike streams telemetry without hardware.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from .._cancellation import CancellationSignal
from .._errors import DiscoveryFailed, InvalidState, LinkLost
from .._identity import EquipmentIdentity
from ._base import ConnectionHandle, NotificationStream

LOGGER = logging.getLogger(__name__)


@dataclass
class SimulatedDevice:
    """A fake peripheral visible to ``SimulatedTransport``."""

    name: str
    address: str
    rssi: int = -50
    service_uuids: tuple[str, ...] = ()
    accept_connections: bool = True
    on_write: Callable[[SimulatedSession, str, bytes], None] | None = None
    ticker: Callable[[SimulatedSession], None] | None = None
    tick_interval: float = 1.0
    # Endpoints that only accept write-with-response.
    response_endpoints: tuple[str, ...] = ()


class SimulatedSession(ConnectionHandle):
    """Connection handle for a simulated peripheral."""

    def __init__(self, device: SimulatedDevice) -> None:
        super().__init__()
        self.device = device
        self.streams: dict[str, NotificationStream] = {}
        self.writes: list[tuple[str, bytes]] = []
        self.link_lost = False
        self.task: asyncio.Task[None] | None = None

    def notify(self, endpoint_id: str, data: bytes) -> None:
        """Push a notification to a subscribed endpoint."""
        stream = self.streams.get(endpoint_id)
        if stream is not None:
            stream.push(data)


@dataclass
class SimulatedTransport:
    """Transport capability over in-memory devices."""

    devices: list[SimulatedDevice] = field(default_factory=list)
    scan_interval: float = 0.05
    connect_delay: float = 0.0
    reject_writes: bool = False
    sessions: list[SimulatedSession] = field(default_factory=list)

    @property
    def open_handles(self) -> list[SimulatedSession]:
        """Return sessions that have not been closed."""
        return [session for session in self.sessions if not session.closed]

    def add_device(self, device: SimulatedDevice) -> None:
        """Make a device visible to subsequent scans."""
        self.devices.append(device)

    def _match(self, identity: EquipmentIdentity) -> SimulatedDevice | None:
        matches = [
            device
            for device in self.devices
            if identity.matches(device.name, device.rssi, device.service_uuids)
        ]
        return max(matches, key=lambda device: device.rssi, default=None)

    async def discover(
        self, identity: EquipmentIdentity, cancellation: CancellationSignal
    ) -> SimulatedDevice:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + identity.scan_timeout
        while True:
            cancellation.raise_if_fired()
            device = self._match(identity)
            if device is not None:
                return device
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise DiscoveryFailed(
                    f"no {identity.type_tag} equipment found within {identity.scan_timeout}s"
                )
            await asyncio.sleep(min(self.scan_interval, remaining))

    async def open(self, candidate: SimulatedDevice) -> SimulatedSession:
        await asyncio.sleep(0)
        if not candidate.accept_connections:
            raise LinkLost(f"{candidate.name} refused the connection")
        session = SimulatedSession(candidate)
        self.sessions.append(session)
        try:
            await asyncio.sleep(self.connect_delay)
        except asyncio.CancelledError:
            # The link is up by now; tear it down before giving up.
            await self.close(session)
            raise
        if candidate.ticker is not None:
            session.task = asyncio.create_task(self._tick(session))
        LOGGER.debug("Simulated connection to %s opened", candidate.name)
        return session

    async def _tick(self, session: SimulatedSession) -> None:
        ticker = session.device.ticker
        assert ticker is not None
        while not session.closed and not session.link_lost:
            ticker(session)
            await asyncio.sleep(session.device.tick_interval)

    async def write(
        self, handle: ConnectionHandle, endpoint_id: str, data: bytes, *, response: bool = False
    ) -> bool:
        session = self._session(handle)
        if session.link_lost:
            raise LinkLost(f"link to {session.device.name} is down")
        if self.reject_writes:
            return False
        if not response and endpoint_id in session.device.response_endpoints:
            LOGGER.warning("%s requires write-with-response", endpoint_id)
            return False
        session.writes.append((endpoint_id, bytes(data)))
        if session.device.on_write is not None:
            session.device.on_write(session, endpoint_id, bytes(data))
        return True

    async def notifications(self, handle: ConnectionHandle, endpoint_id: str) -> NotificationStream:
        session = self._session(handle)
        if session.link_lost:
            raise LinkLost(f"link to {session.device.name} is down")
        return session.streams.setdefault(endpoint_id, NotificationStream(endpoint_id))

    async def close(self, handle: ConnectionHandle) -> None:
        session = self._session(handle, allow_closed=True)
        if session.closed:
            return
        session.invalidate()
        for stream in session.streams.values():
            stream.close()
        if session.task is not None:
            session.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await session.task
        LOGGER.debug("Simulated connection to %s closed", session.device.name)

    def drop_link(self, handle: ConnectionHandle) -> None:
        """Simulate the peripheral going out of range."""
        session = self._session(handle)
        session.link_lost = True
        for stream in session.streams.values():
            stream.close()

    @staticmethod
    def _session(handle: ConnectionHandle, *, allow_closed: bool = False) -> SimulatedSession:
        if not isinstance(handle, SimulatedSession):
            raise InvalidState(f"handle {handle!r} does not belong to this transport")
        if not allow_closed:
            handle.ensure_open()
        return handle
