"""Politeness controls: requests-per-minute window and jittered delays."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

PROCESSING_BUFFER_MS = 500
DEFAULT_REQUESTS_PER_MINUTE = 30
JITTER_MS = 250
WINDOW_SECONDS = 60.0


def requests_per_minute(request_delay_ms: int) -> int:
    """Derive the request rate from the inter-request delay.

    Examples:
        >>> requests_per_minute(1000)
        40
        >>> requests_per_minute(0)
        30
    """
    if request_delay_ms <= 0:
        return DEFAULT_REQUESTS_PER_MINUTE
    return max(1, 60_000 // (request_delay_ms + PROCESSING_BUFFER_MS))


def jittered_delay_ms(base_ms: int, jitter_ms: int = JITTER_MS) -> int:
    """Return ``base_ms`` shifted by up to ``jitter_ms`` either way, never negative."""
    return max(0, base_ms + random.randint(-jitter_ms, jitter_ms))


class RateLimiter:
    """Sliding one-minute window limiting navigations.

    Args:
        max_per_minute: Navigations allowed per rolling minute
        clock: Monotonic clock (injectable for tests)
        sleep: Async sleep function (injectable for tests)
    """

    def __init__(
        self,
        max_per_minute: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.max_per_minute = max_per_minute
        self._clock = clock
        self._sleep = sleep
        self._stamps: deque[float] = deque()

    async def acquire(self) -> None:
        """Wait until another navigation fits in the window, then record it."""
        while True:
            now = self._clock()
            while self._stamps and now - self._stamps[0] >= WINDOW_SECONDS:
                self._stamps.popleft()
            if len(self._stamps) < self.max_per_minute:
                self._stamps.append(now)
                return
            wait = WINDOW_SECONDS - (now - self._stamps[0])
            logger.debug("Rate limit of %d/min reached, waiting %.1fs", self.max_per_minute, wait)
            await self._sleep(wait)
