"""One retry/backoff policy applied to every external call."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from board_harvester.config import Settings
from board_harvester.providers.base import RateLimitedError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Added on top of the service's own "retry in N s" advice.
ADVISORY_BUFFER = 1.0


def exponential_backoff(attempt: int, base: float = 2.0) -> float:
    """Wait before retry number *attempt* (1-based): base, 2*base, 4*base, ..."""
    return base * 2 ** max(attempt - 1, 0)


def advisory_wait(retry_after: float) -> float:
    return math.ceil(retry_after) + ADVISORY_BUFFER


class RetryPolicy:
    """Bounded retries for rate limits and transport failures.

    Rate limits wait what the service asked for, or exponential backoff when
    it did not say. Transport failures wait a fixed pause. Every other error
    propagates on the first attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        *,
        backoff: Callable[[int], float] = exponential_backoff,
        transport_pause: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.transport_pause = transport_pause
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> RetryPolicy:
        return cls(
            settings.max_attempts,
            backoff=lambda attempt: exponential_backoff(attempt, settings.backoff_base),
            transport_pause=settings.transport_pause,
            sleep=sleep,
        )

    def wait_for(self, exc: BaseException | None, attempt: int) -> float:
        """Seconds to wait after *attempt* failed with *exc*."""
        if isinstance(exc, RateLimitedError):
            if exc.retry_after is not None:
                return advisory_wait(exc.retry_after)
            return self.backoff(attempt)
        return self.transport_pause

    def _wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        return self.wait_for(exc, retry_state.attempt_number)

    async def call(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Await fn(*args, **kwargs) under this policy; the last error is re-raised."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type((RateLimitedError, TransportError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(fn, *args, **kwargs)
