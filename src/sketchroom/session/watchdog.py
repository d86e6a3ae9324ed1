from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)


class ExpiryWatchdog:
    """
    Recurring credential check owned by a session manager.

    At most one task is alive per watchdog: `start()` always cancels the
    previous one first. When `still_valid()` returns False the task calls
    `on_expired()` once and ends.
    """

    def __init__(
        self,
        *,
        still_valid: Callable[[], bool],
        on_expired: Callable[[], None],
        interval_s: float,
    ):
        self._still_valid = still_valid
        self._on_expired = on_expired
        self.interval_s = interval_s
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        self.stop()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("no running event loop; expiry watchdog not scheduled")
            return False
        self._task = loop.create_task(self._run())
        return True

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    def check(self) -> bool:
        """Run one check now. Returns False (after firing `on_expired`) if expired."""
        if self._still_valid():
            return True
        LOGGER.info("session credential expired")
        self._on_expired()
        return False

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            if not self._still_valid():
                # detach first so on_expired -> stop() does not cancel this task
                self._task = None
                LOGGER.info("session credential expired")
                self._on_expired()
                return
