from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ._errors import Cancelled

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REASON = "shutdown requested"


class CancellationSignal:
    """Broadcast shutdown signal observed by every in-flight operation.

    The signal is set at most once. Operations either check it between steps
    (``fired`` / ``raise_if_fired``) or race a suspendable call against it
    with ``race``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def fired(self) -> bool:
        """Return True once the signal has been fired."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Return the reason given when the signal fired."""
        return self._reason

    def fire(self, reason: str = DEFAULT_REASON) -> bool:
        """Fire the signal.

        Returns:
            True if this call fired the signal, False if it was already set
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        LOGGER.info("Cancellation fired: %s", reason)
        return True

    def fire_threadsafe(
        self, loop: asyncio.AbstractEventLoop, reason: str = DEFAULT_REASON
    ) -> None:
        """Fire the signal from a thread or OS signal handler."""
        loop.call_soon_threadsafe(self.fire, reason)

    async def wait(self) -> None:
        """Block until the signal fires."""
        await self._event.wait()

    def raise_if_fired(self) -> None:
        """Raise Cancelled if the signal has already fired."""
        if self._event.is_set():
            raise Cancelled(self._reason or DEFAULT_REASON)

    async def race(
        self,
        awaitable: Awaitable[T],
        *,
        on_abandon: Callable[[T], Awaitable[Any]] | None = None,
    ) -> T:
        """Run ``awaitable`` until it completes or the signal fires.

        If the signal wins, the operation is cancelled and awaited so it can
        unwind. A result that still arrives while unwinding is handed to
        ``on_abandon`` (e.g. to close a freshly opened connection) and
        ``Cancelled`` is raised.
        """
        if self._event.is_set():
            # Close coroutine objects that will never be scheduled.
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise Cancelled(self._reason or DEFAULT_REASON)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled():
            exc = task.exception()
            if exc is not None:
                LOGGER.debug("Abandoned operation failed while unwinding: %s", exc)
            elif on_abandon is not None:
                await on_abandon(task.result())
        raise Cancelled(self._reason or DEFAULT_REASON)
