from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

from .._cancellation import CancellationSignal
from .._errors import InvalidState, LinkLost
from .._identity import EquipmentIdentity

LOGGER = logging.getLogger(__name__)


class ConnectionHandle:
    """A live transport session, owned by exactly one equipment instance.

    Once closed a handle must not be reused; transports call ``ensure_open``
    before touching it.
    """

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def invalidate(self) -> None:
        self._closed = True

    def ensure_open(self) -> None:
        if self._closed:
            raise InvalidState("connection handle is closed and cannot be reused")


class NotificationStream:
    """Notifications of one endpoint, buffered in a single slot.

    A newer notification replaces an unread older one, so readers that fall
    behind see the most recent value. Closing the stream marks link loss.
    """

    def __init__(self, endpoint_id: str) -> None:
        self.endpoint_id = endpoint_id
        self.coalesced = 0
        self._pending: bytes | None = None
        self._closed = False
        self._event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, data: bytes | bytearray) -> None:
        """Deliver a notification from the transport."""
        if self._closed:
            return
        if self._pending is not None:
            self.coalesced += 1
            LOGGER.debug("Coalesced unread notification on %s", self.endpoint_id)
        self._pending = bytes(data)
        self._event.set()

    def close(self) -> None:
        """End the stream; pending bytes remain readable once."""
        self._closed = True
        self._event.set()

    def take(self) -> bytes | None:
        """Return the pending notification without waiting.

        Raises:
            LinkLost: If the stream ended and nothing is pending
        """
        if self._pending is not None:
            data, self._pending = self._pending, None
            if not self._closed:
                self._event.clear()
            return data
        if self._closed:
            raise LinkLost(f"notification stream for {self.endpoint_id} ended")
        return None

    async def poll(self, timeout: float = 0.0) -> bytes | None:
        """Return the pending notification, waiting up to ``timeout`` seconds."""
        data = self.take()
        if data is not None or timeout <= 0:
            return data
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._event.wait(), timeout)
        return self.take()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self

    async def __anext__(self) -> bytes:
        while True:
            await self._event.wait()
            try:
                data = self.take()
            except LinkLost:
                raise StopAsyncIteration from None
            if data is not None:
                return data


class Transport(Protocol):
    """Capability consumed by the equipment core to move bytes."""

    async def discover(
        self, identity: EquipmentIdentity, cancellation: CancellationSignal
    ) -> Any: ...

    async def open(self, candidate: Any) -> ConnectionHandle: ...

    async def write(
        self, handle: ConnectionHandle, endpoint_id: str, data: bytes, *, response: bool = False
    ) -> bool: ...

    async def notifications(
        self, handle: ConnectionHandle, endpoint_id: str
    ) -> NotificationStream: ...

    async def close(self, handle: ConnectionHandle) -> None: ...
