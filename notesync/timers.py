"""
Cancellable debounce timers on the asyncio event loop.

A pending timer is a loop TimerHandle; cancelling it guarantees the
callback never starts. Once fired, the callback runs as its own task and
is no longer affected by cancel().
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Run an async callback after `delay` seconds without new triggers.

    Example:
        debouncer = Debouncer(1.5, run_enrichment)
        debouncer.trigger()   # starts the quiet period
        debouncer.trigger()   # restarts it; the first never fires
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]], *, name: str = "debounce"):
        self.delay = delay
        self._callback = callback
        self._name = name
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while a timer is armed and has not fired."""
        return self._handle is not None

    def trigger(self) -> None:
        """(Re)start the quiet period. Must be called from the event loop."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> bool:
        """Cancel the pending timer. Returns True if one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run(), name=self._name)
        # Keep a reference until done so the task is not garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("%s callback failed", self._name)

    async def drain(self) -> None:
        """Wait for callbacks that have already fired to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
