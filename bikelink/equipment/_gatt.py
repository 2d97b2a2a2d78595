from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from typing import Any, ClassVar

from .._cancellation import CancellationSignal
from .._config import EquipmentConfig
from .._errors import InvalidState, LinkLost, MalformedFrame
from .._identity import EquipmentIdentity
from ..codec import FrameCodec, TelemetrySample
from ..transport import BleakTransport, ConnectionHandle, NotificationStream, Transport
from ._base import ConnectionState, Equipment

LOGGER = logging.getLogger(__name__)


class GattEquipment(Equipment):
    """State machine for equipment reached through a GATT-style transport.

    Variants only supply endpoints, an identity, and a codec; optional hooks
    run right after the session opens and right before it closes.
    """

    command_endpoint: ClassVar[str]
    telemetry_endpoint: ClassVar[str]
    # Commands go out as write-with-response when set.
    command_response: ClassVar[bool] = False

    def __init__(
        self,
        identity: EquipmentIdentity,
        candidate: Any,
        transport: Transport,
        codec: FrameCodec,
        cancellation: CancellationSignal,
        config: EquipmentConfig | None = None,
    ) -> None:
        super().__init__(cancellation)
        self.identity = identity
        self.candidate = candidate
        self._transport = transport
        self._codec = codec
        self._config = config or EquipmentConfig()
        self._handle: ConnectionHandle | None = None
        self._telemetry: NotificationStream | None = None

    @property
    def codec(self) -> FrameCodec:
        return self._codec

    @classmethod
    @abstractmethod
    def identity_for(cls, parameter: Any, config: EquipmentConfig) -> EquipmentIdentity:
        """Build the discovery identity for a factory parameter."""

    @classmethod
    @abstractmethod
    def codec_for(cls, parameter: Any) -> FrameCodec:
        """Build the frame codec for a factory parameter."""

    @classmethod
    def default_transport(cls, config: EquipmentConfig) -> Transport:
        return BleakTransport(
            poll_interval=config.poll_interval, connect_timeout=config.connect_timeout
        )

    @classmethod
    async def create(
        cls,
        parameter: Any,
        cancellation: CancellationSignal,
        *,
        transport: Transport | None = None,
        config: EquipmentConfig | None = None,
    ) -> GattEquipment:
        config = config or EquipmentConfig()
        identity = cls.identity_for(parameter, config)
        codec = cls.codec_for(parameter)
        transport = transport or cls.default_transport(config)
        candidate = await cancellation.race(transport.discover(identity, cancellation))
        return cls(identity, candidate, transport, codec, cancellation, config)

    async def connect(self) -> bool:
        """Open the transport session and subscribe to telemetry.

        Returns:
            True once connected, False if the link was refused or timed out

        Raises:
            InvalidState: If not disconnected
            Cancelled: If the cancellation signal fired; no handle is kept
        """
        if self._state is not ConnectionState.DISCONNECTED:
            raise InvalidState(f"cannot connect {self!r} while {self._state.value}")
        self._transition(ConnectionState.CONNECTING)

        try:
            handle = await self._cancellation.race(self._open(), on_abandon=self._transport.close)
        except (LinkLost, asyncio.TimeoutError) as e:
            LOGGER.warning("Could not connect %r: %s", self, e)
            self._transition(ConnectionState.DISCONNECTED)
            return False
        except BaseException:
            self._transition(ConnectionState.DISCONNECTED)
            raise

        self._handle = handle
        try:
            accepted = await self._start_session(handle)
        except (LinkLost, asyncio.TimeoutError) as e:
            LOGGER.warning("Session setup for %r failed: %s", self, e)
            accepted = False
        except BaseException:
            await self._release()
            raise

        if not accepted:
            await self._release()
            return False
        self._transition(ConnectionState.CONNECTED)
        return True

    async def _open(self) -> ConnectionHandle:
        # The timeout runs inside the raced task so a late handle reaches on_abandon.
        async with asyncio.timeout(self._config.connect_timeout):
            return await self._transport.open(self.candidate)

    async def _start_session(self, handle: ConnectionHandle) -> bool:
        self._telemetry = await self._cancellation.race(
            self._transport.notifications(handle, self.telemetry_endpoint)
        )
        return await self._cancellation.race(self._after_open(handle))

    async def _after_open(self, handle: ConnectionHandle) -> bool:
        """Variant handshake after the link is up; False declines the session."""
        return True

    async def _before_close(self, handle: ConnectionHandle) -> None:
        """Variant teardown sent while the link is still up."""

    async def read(self) -> TelemetrySample | None:
        """Return the pending telemetry sample, if any.

        Malformed frames are logged and dropped without affecting the session.

        Raises:
            InvalidState: If not connected
            LinkLost: If the link dropped; the instance is then disconnected
        """
        self._require_state(ConnectionState.CONNECTED, "read from")
        assert self._telemetry is not None
        try:
            data = await self._cancellation.race(self._telemetry.poll(self._config.read_timeout))
        except LinkLost:
            LOGGER.warning("Link to %r lost while reading", self)
            await self._release()
            raise

        if data is None:
            return None
        try:
            sample = self._codec.decode_telemetry(data)
        except MalformedFrame as e:
            LOGGER.warning("Dropping malformed frame from %r: %s", self, e)
            return None
        LOGGER.debug("%r sample: %s", self, sample)
        return sample

    async def set_level(self, level: int) -> bool:
        """Encode and send a level command.

        Raises:
            InvalidState: If not connected
            InvalidSetpoint: If the level is outside the accepted range
            LinkLost: If the link dropped; the instance is then disconnected
        """
        self._require_state(ConnectionState.CONNECTED, "set level on")
        frame = self._codec.encode_setpoint(level)
        return await self._write_command(frame)

    async def _write_command(self, frame: bytes) -> bool:
        assert self._handle is not None
        try:
            written = await self._send(self._handle, frame)
        except LinkLost:
            LOGGER.warning("Link to %r lost while writing", self)
            await self._release()
            raise
        if not written:
            LOGGER.warning("%r rejected command %s", self, frame.hex())
        return written

    async def _send(self, handle: ConnectionHandle, frame: bytes) -> bool:
        return await self._transport.write(
            handle, self.command_endpoint, frame, response=self.command_response
        )

    async def disconnect(self) -> bool:
        """Release the session; a no-op when already disconnected."""
        if self._handle is None:
            self._transition(ConnectionState.DISCONNECTED)
            return True
        if self._state is ConnectionState.CONNECTED:
            try:
                await self._before_close(self._handle)
            except LinkLost as e:
                LOGGER.debug("Skipping teardown for %r: %s", self, e)
        await self._release()
        return True

    async def _release(self) -> None:
        handle, self._handle = self._handle, None
        self._telemetry = None
        try:
            if handle is not None:
                await self._transport.close(handle)
        finally:
            self._transition(ConnectionState.DISCONNECTED)
