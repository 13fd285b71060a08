"""
Background refresh ticker owned by a client store
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PollingTask:
    """
    Run a refresh callback every `interval` seconds until stopped.

    The task belongs to the store that created it: start() on mount,
    stop() on teardown. Errors raised by the callback are logged and the
    ticker keeps running.
    """

    def __init__(self, callback: Callable[[], Awaitable[None]], interval: float):
        self._callback = callback
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._callback()
            except Exception as e:
                logger.error(f"Periodic refresh failed: {e}")
