"""Serialized periodic refresh loop."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from blocklists.config import DEFAULT_INTERVAL

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Runs a refresh immediately and then every `interval` seconds, forever.

    The interval is measured from the end of one refresh to the start of the
    next. All refreshes, scheduled or triggered through run_once(), go
    through one lock, so they never overlap: a caller arriving while a
    refresh runs waits for it and then runs its own.
    """

    def __init__(self, refresh: Callable[[], Awaitable[object]], interval: float = DEFAULT_INTERVAL):
        self._refresh = refresh
        self.interval = interval
        self._lock = asyncio.Lock()
        self.runs = 0
        self.failures = 0

    @property
    def is_refreshing(self) -> bool:
        return self._lock.locked()

    async def run_once(self) -> bool:
        """Run one refresh. Errors are logged, never raised."""
        async with self._lock:
            self.runs += 1
            logger.info("Updating lists...")
            start_time = time.monotonic()
            try:
                await self._refresh()
            except Exception:
                self.failures += 1
                logger.exception("Error while updating lists")
                return False
            logger.info("Lists updated in %.1fs", time.monotonic() - start_time)
            return True

    async def run_forever(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)
