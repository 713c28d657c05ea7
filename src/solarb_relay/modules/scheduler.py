"""
Cancellable periodic task for the polling loop
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation flag that sleeping loops can wait on"""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for cancellation; True if cancelled, False on timeout"""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


class PeriodicTask:
    """Runs ``callback`` immediately, then every ``interval`` seconds until cancelled.

    start() and cancel() are symmetric and idempotent. cancel() is synchronous:
    once it returns no further callback invocation begins, and a callback that
    is currently awaiting is interrupted.
    """

    def __init__(self, callback: Callable[[], Awaitable[None]], interval: float, name: str = "periodic"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.callback = callback
        self.interval = interval
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancellationToken] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._token = CancellationToken()
        self._task = asyncio.get_running_loop().create_task(self._run(self._token), name=self.name)

    def cancel(self):
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            if self._task is not asyncio.current_task():
                self._task.cancel()
        self._task = None
        self._token = None

    async def _run(self, token: CancellationToken):
        while not token.cancelled:
            self.ticks += 1
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"{self.name}: tick {self.ticks} failed")

            if token.cancelled:
                break
            if await token.wait(self.interval):
                break
