"""
Tick scheduler.

A single asyncio task sleeps one tick interval, runs one synchronous
tick, and only then re-arms. Stopping cancels the task; a tick that is
already executing always completes because it never yields to the loop.
The sleep function is injectable so tests can drive ticks without
waiting on the wall clock.
"""
import asyncio
import contextlib
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class TickScheduler:
    def __init__(
        self,
        on_tick: Callable[[], bool],
        interval_seconds: Callable[[], float],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        on_tick runs one tick and returns whether ticking should continue.
        interval_seconds is read before every sleep so interval changes
        apply from the next tick.
        """
        self._on_tick = on_tick
        self._interval_seconds = interval_seconds
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Arm the ticker on the running loop. Returns False without a loop."""
        if self.active:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; ticks must be stepped manually")
            return False
        self._task = loop.create_task(self._run(), name="market-ticker")
        return True

    def cancel(self) -> None:
        """Stop issuing ticks. Safe to call from inside a tick."""
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def step(self) -> bool:
        """Run one tick synchronously, outside the timer."""
        return self._on_tick()

    async def _run(self) -> None:
        while True:
            await self._sleep(self._interval_seconds())
            if not self._on_tick():
                break
        if self._task is _current_task():
            self._task = None


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
