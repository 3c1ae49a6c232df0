import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Set

from ...config.provider import GCConfig

logger = logging.getLogger(__name__)

MIN_TICK_INTERVAL = 1.0


class GCScheduler:
    """
    Rate-limited trigger for session garbage collection.

    At most one collection task is dispatched per min_interval. Two requests
    racing past the check can both dispatch; collection is idempotent so that
    is harmless. Dispatch runs in the background and its failures are only
    logged.
    """

    def __init__(
        self,
        config: GCConfig,
        dispatch: Callable[[], Awaitable[Any]],
        clock: Callable[[], float] = time.time,
        tick_interval: Optional[float] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            config: GC settings (min_interval)
            dispatch: Coroutine function that enqueues one collection task
            clock: Epoch-seconds time source
            tick_interval: Cadence of the background ticker; defaults to min_interval,
                never below MIN_TICK_INTERVAL when derived from it
        """
        self.config = config
        self.min_interval = config.min_interval
        self.dispatch = dispatch
        self.clock = clock
        if tick_interval is None or tick_interval <= 0:
            tick_interval = max(config.min_interval, MIN_TICK_INTERVAL)
        self.tick_interval = tick_interval
        # The first window starts at process start, not at the epoch
        self.last_run_at = clock()
        self._pending: Set[asyncio.Task] = set()
        self._ticker: Optional[asyncio.Task] = None

    def maybe_trigger(self, now: Optional[float] = None) -> bool:
        """
        Dispatch a collection task if the interval has elapsed.

        Returns:
            True if a dispatch was started
        """
        if now is None:
            now = self.clock()
        if now - self.last_run_at <= self.min_interval:
            return False

        self.last_run_at = now
        task = asyncio.get_running_loop().create_task(self._dispatch())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _dispatch(self) -> None:
        try:
            await self.dispatch()
            logger.info("Session garbage collection dispatched")
        except Exception as e:
            logger.error(f"Failed to dispatch session garbage collection: {e}")

    async def drain(self) -> None:
        """Wait for in-flight dispatches."""
        if self._pending:
            await asyncio.gather(*self._pending)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self.maybe_trigger()

    def start(self) -> asyncio.Task:
        """Run maybe_trigger on a fixed cadence, independent of request volume."""
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.create_task(self._tick())
            logger.info(f"Session GC ticker started (every {self.tick_interval:.0f}s)")
        return self._ticker

    async def stop(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        await self.drain()
