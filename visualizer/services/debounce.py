"""Cancellable debounce timer on the asyncio event loop."""
import asyncio
import logging
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Debouncer(Generic[T]):
    """
    Delays a callback until input has been quiet for ``delay`` seconds.

    Each ``schedule`` cancels the previous timer, so there is never more
    than one pending timer and only the last scheduled value is delivered.
    A value scheduled while no event loop is running stays pending; its
    timer starts on the next ``schedule`` or ``wait`` made inside a loop.
    """

    def __init__(self, delay: float, callback: Callable[[T], Any]):
        if delay < 0:
            raise ValueError("delay must not be negative")
        self.delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._value: Optional[T] = None
        self._pending = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> bool:
        return self._pending

    def schedule(self, value: T) -> None:
        """(Re)start the timer with ``value`` as the value to deliver."""
        self._value = value
        self._pending = True
        self._idle.clear()
        self._restart()

    def _restart(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; debounce timer deferred")
            return
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        value = self._value
        self._handle = None
        self._value = None
        self._pending = False
        self._idle.set()
        self._callback(value)

    def cancel(self) -> bool:
        """Drop the pending value. Returns True if a value was pending."""
        if not self._pending:
            return False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._value = None
        self._pending = False
        self._idle.set()
        return True

    def flush(self) -> bool:
        """Deliver the pending value now. Returns True if there was one."""
        if not self._pending:
            return False
        if self._handle is not None:
            self._handle.cancel()
        self._fire()
        return True

    async def wait(self) -> None:
        """Wait until no value is pending (fired or cancelled)."""
        if self._pending and self._handle is None:
            self._restart()
        await self._idle.wait()
