"""Retry policy for page loads.

``RetryPolicy`` counts retries, not attempts: a policy with ``max_retries=3``
makes one initial attempt and up to three more before giving up. The crawl
pipeline wraps each attempt in its own handler timeout, so a slow attempt
never eats into the budget of the next one.

Example:
    >>> policy = RetryPolicy(max_retries=3, delays=[0.5, 1.0])
    >>> buffer = await policy.execute_async(load_page, operation_name="Load")
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from playwright.async_api import Error as PlaywrightError

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_DELAYS = (1.0, 2.0, 4.0)

# Retry delays get up to 10% extra so parallel workers don't line up
JITTER_RATIO = 0.1


class RetryPolicy:
    """Exponential-backoff retries for transient browser failures.

    Args:
        max_retries: Retries after the first attempt (0 disables retrying)
        delays: Backoff per retry in seconds; the last value repeats. An
            empty list retries immediately.
        retryable_exceptions: Exception types worth another attempt
        sleep: Async sleep used between attempts

    Raises:
        ValueError: If max_retries is negative
    """

    def __init__(
        self,
        max_retries: int = 3,
        delays: list[float] | None = None,
        retryable_exceptions: tuple[type[BaseException], ...] = (
            PlaywrightError,
            asyncio.TimeoutError,
        ),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must not be negative, got {max_retries}")
        self.max_retries = max_retries
        self.delays = list(delays) if delays is not None else list(DEFAULT_DELAYS)
        self.retryable_exceptions = retryable_exceptions
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def execute_async(
        self,
        operation: Callable[[], Awaitable[T]],
        retryable_exceptions: tuple[type[BaseException], ...] | None = None,
        operation_name: str = "operation",
    ) -> T:
        """Run ``operation`` until it succeeds or the retries run out.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt
            retryable_exceptions: Overrides the policy's retryable types
            operation_name: Label used in log messages

        Returns:
            The result of the first successful attempt

        Raises:
            Exception: The last retryable error once every attempt failed,
                or any non-retryable error immediately
        """
        retryable = retryable_exceptions or self.retryable_exceptions
        retry = 0
        while True:
            try:
                return await operation()
            except retryable as exc:
                if retry >= self.max_retries:
                    logger.error(
                        "%s failed after %d attempt(s): %s",
                        operation_name,
                        retry + 1,
                        exc or type(exc).__name__,
                    )
                    raise
                delay = self._get_delay(retry)
                retry += 1
                logger.warning(
                    "%s failed, retry %d/%d in %.1fs: %s",
                    operation_name,
                    retry,
                    self.max_retries,
                    delay,
                    exc or type(exc).__name__,
                )
                await self._sleep(delay)

    def _get_delay(self, retry: int) -> float:
        """Backoff before the given retry (0-indexed), with jitter."""
        if not self.delays:
            return 0.0
        base_delay = self.delays[min(retry, len(self.delays) - 1)]
        return base_delay + random.uniform(0, base_delay * JITTER_RATIO)
