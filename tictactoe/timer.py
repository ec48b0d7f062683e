from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


TimerCallback = Callable[[], Awaitable[bool]]


class RepeatingTimer:
    """Runs `callback` every `interval` seconds on the running event loop.

    The callback returns False to stop the timer. `cancel()` is terminal: a
    cancelled timer cannot be started again.
    """

    def __init__(self, interval: float, callback: TimerCallback, *, name: str | None = None) -> None:
        self.interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> None:
        if self._cancelled:
            raise RuntimeError("Timer was cancelled")
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                if not await self._callback():
                    break
        except Exception:
            logger.exception("timer %s callback failed", self._name or "<unnamed>")
        finally:
            self._cancelled = True
