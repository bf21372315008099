"""
Coalescing task scheduler.

Two primitives, independent of orders:
  schedule(delay)     debounce: (re)arm a single timer; only the last call in a
                      burst fires the callback
  run_exclusive(task) single-flight queue: tasks run one at a time, in the
                      order they were submitted
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_DELAY_SECONDS = 0.001


class CoalescingScheduler:
    """Debounce timer plus FIFO single-flight queue, bound to the running event loop."""

    def __init__(
        self,
        callback: Callable[[], Awaitable[None]],
        default_delay: float = 0.3,
    ):
        self._callback = callback
        self.default_delay = default_delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        # asyncio.Lock hands ownership to waiters in FIFO order.
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def is_armed(self) -> bool:
        return self._handle is not None

    @property
    def is_busy(self) -> bool:
        return self._lock.locked() or bool(self._tasks)

    def schedule(self, delay: Optional[float] = None) -> None:
        """Cancel any armed timer and arm a new one."""
        if self._closed:
            return
        self.cancel()
        effective = self.default_delay if delay is None else delay
        if effective <= 0:
            effective = MIN_DELAY_SECONDS
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(effective, self._fire)

    def cancel(self) -> None:
        """Disarm the timer without running the callback."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.ensure_future(self._callback())
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scheduled task failed: %r", exc, exc_info=exc)

    async def run_exclusive(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run task() once every previously submitted task has finished."""
        async with self._lock:
            return await task()

    async def wait_idle(self) -> None:
        """Wait until no fired callback is running and the queue is empty."""
        while self._tasks or self._lock.locked():
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                async with self._lock:
                    pass

    async def flush(self) -> None:
        """Fire an armed timer immediately and wait for the result."""
        if self._handle is not None:
            self.cancel()
            self._fire()
        await self.wait_idle()

    async def close(self) -> None:
        """Teardown: disarm the timer and let in-flight work finish."""
        self._closed = True
        self.cancel()
        await self.wait_idle()
