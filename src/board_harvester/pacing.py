"""Fixed-interval pacing between consecutive enrichment calls."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Space successive acquisitions at least *interval* seconds apart.

    The first ``acquire()`` returns immediately.
    """

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None

    async def acquire(self) -> float:
        """Wait for the next slot. Returns the seconds actually waited."""
        waited = 0.0
        if self._last is not None:
            remaining = self.interval - (self._clock() - self._last)
            if remaining > 0:
                logger.debug("Pacing: waiting %.1fs", remaining)
                await self._sleep(remaining)
                waited = remaining
        self._last = self._clock()
        return waited

    def reset(self) -> None:
        self._last = None
