from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from .._cancellation import CancellationSignal
from .._errors import DiscoveryFailed, InvalidState, LinkLost
from .._identity import EquipmentIdentity
from ._base import ConnectionHandle, NotificationStream

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BleCandidate:
    """A discovered BLE peripheral that matched an equipment identity."""

    address: str
    name: str | None
    rssi: int
    device: Any


class BleSession(ConnectionHandle):
    """Connection handle wrapping a connected ``BleakClient``."""

    def __init__(self, candidate: BleCandidate) -> None:
        super().__init__()
        self.candidate = candidate
        self.client: BleakClient | None = None
        self.streams: dict[str, NotificationStream] = {}
        self.link_lost = False

    def mark_link_lost(self) -> None:
        """End every notification stream after an unexpected disconnect."""
        if self.closed:
            return
        LOGGER.warning("Link to %s lost", self.candidate.address)
        self.link_lost = True
        for stream in self.streams.values():
            stream.close()

    @property
    def connected(self) -> bool:
        return self.client is not None and self.client.is_connected and not self.link_lost


async def scan_advertisements(timeout: float = 10.0) -> list[BleCandidate]:
    """Return every advertising peripheral seen within ``timeout`` seconds."""
    devices = await BleakScanner.discover(timeout=timeout, return_adv=True)
    return sorted(
        (
            BleCandidate(
                address=device.address,
                name=adv_data.local_name or device.name,
                rssi=adv_data.rssi,
                device=device,
            )
            for device, adv_data in devices.values()
        ),
        key=lambda candidate: candidate.rssi,
        reverse=True,
    )


class BleakTransport:
    """Transport capability backed by bleak."""

    def __init__(self, *, poll_interval: float = 0.5, connect_timeout: float = 15.0) -> None:
        self.poll_interval = poll_interval
        self.connect_timeout = connect_timeout

    async def discover(
        self, identity: EquipmentIdentity, cancellation: CancellationSignal
    ) -> BleCandidate:
        """Scan until a peripheral matches ``identity``.

        The strongest match seen during the polling interval in which the
        first match appeared is returned. Cancellation is checked every
        interval; the scanner is stopped on every exit path.

        Raises:
            DiscoveryFailed: If nothing matched within ``identity.scan_timeout``
            Cancelled: If the signal fired while scanning
        """
        best: BleCandidate | None = None

        def _on_detection(device: BLEDevice, adv_data: AdvertisementData) -> None:
            nonlocal best
            name = adv_data.local_name or device.name
            if not identity.matches(name, adv_data.rssi, adv_data.service_uuids):
                return
            if best is None or adv_data.rssi > best.rssi:
                best = BleCandidate(device.address, name, adv_data.rssi, device)

        service_uuids = [identity.service_uuid] if identity.service_uuid else None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + identity.scan_timeout

        LOGGER.info(
            "Scanning for %s equipment (timeout: %ss)", identity.type_tag, identity.scan_timeout
        )
        try:
            async with BleakScanner(
                detection_callback=_on_detection, service_uuids=service_uuids
            ):
                while best is None:
                    cancellation.raise_if_fired()
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        raise DiscoveryFailed(
                            f"no {identity.type_tag} equipment found "
                            f"within {identity.scan_timeout}s"
                        )
                    await asyncio.sleep(min(self.poll_interval, remaining))
        except BleakError as e:
            raise DiscoveryFailed(f"scan failed: {e}") from e

        LOGGER.info("Found %s (%s), RSSI %s", best.name, best.address, best.rssi)
        return best

    async def open(self, candidate: BleCandidate) -> BleSession:
        """Connect to a discovered peripheral."""
        session = BleSession(candidate)

        def _on_disconnect(_client: BleakClient) -> None:
            session.mark_link_lost()

        client = BleakClient(
            candidate.device,
            disconnected_callback=_on_disconnect,
            timeout=self.connect_timeout,
        )
        session.client = client
        try:
            await client.connect()
        except asyncio.CancelledError:
            # The OS may already have completed the link.
            await self._abandon(session)
            raise
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            raise LinkLost(f"could not connect to {candidate.address}: {e}") from e
        LOGGER.debug("Connected to %s", candidate.address)
        return session

    async def write(
        self, handle: ConnectionHandle, endpoint_id: str, data: bytes, *, response: bool = False
    ) -> bool:
        """Write to a characteristic; returns False if the peripheral rejected it.

        ``response`` selects write-with-response, which characteristics such as
        the FTMS control point require.
        """
        session = self._session(handle)
        if not session.connected:
            raise LinkLost(f"link to {session.candidate.address} is down")
        assert session.client is not None
        try:
            await session.client.write_gatt_char(endpoint_id, data, response=response)
        except BleakError as e:
            if not session.client.is_connected:
                session.mark_link_lost()
                raise LinkLost(f"link lost while writing to {endpoint_id}") from e
            LOGGER.warning("Write to %s rejected: %s", endpoint_id, e)
            return False
        LOGGER.debug("Wrote %s to %s", data.hex(), endpoint_id)
        return True

    async def notifications(self, handle: ConnectionHandle, endpoint_id: str) -> NotificationStream:
        """Subscribe to an endpoint (once per session) and return its stream."""
        session = self._session(handle)
        if endpoint_id in session.streams:
            return session.streams[endpoint_id]
        if not session.connected:
            raise LinkLost(f"link to {session.candidate.address} is down")
        assert session.client is not None

        stream = NotificationStream(endpoint_id)

        def _on_notify(_sender: Any, data: bytearray) -> None:
            stream.push(data)

        try:
            await session.client.start_notify(endpoint_id, _on_notify)
        except BleakError as e:
            raise LinkLost(f"could not subscribe to {endpoint_id}: {e}") from e
        session.streams[endpoint_id] = stream
        return stream

    async def close(self, handle: ConnectionHandle) -> None:
        """Stop notifications and disconnect; closing twice is a no-op."""
        session = self._session(handle, allow_closed=True)
        if session.closed:
            return
        session.invalidate()
        for stream in session.streams.values():
            stream.close()

        client = session.client
        if client is None or not client.is_connected:
            return
        try:
            for endpoint_id in session.streams:
                await client.stop_notify(endpoint_id)
            await client.disconnect()
        except BleakError as e:
            LOGGER.warning("Error while disconnecting from %s: %s", session.candidate.address, e)
        LOGGER.debug("Disconnected from %s", session.candidate.address)

    async def _abandon(self, session: BleSession) -> None:
        session.invalidate()
        assert session.client is not None
        try:
            await session.client.disconnect()
        except BleakError as e:
            LOGGER.warning("Error while abandoning %s: %s", session.candidate.address, e)
        LOGGER.debug("Abandoned connection attempt to %s", session.candidate.address)

    @staticmethod
    def _session(handle: ConnectionHandle, *, allow_closed: bool = False) -> BleSession:
        if not isinstance(handle, BleSession):
            raise InvalidState(f"handle {handle!r} does not belong to this transport")
        if not allow_closed:
            handle.ensure_open()
        return handle
