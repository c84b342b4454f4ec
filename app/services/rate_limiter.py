"""Global token bucket gating every outbound upstream request."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger("nearsky.rate_limiter")

DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_POLL_INTERVAL = 0.25


class TokenBucket:
    """Fixed-window request budget.

    Tokens are reset to full capacity once per window rather than leaking
    back gradually, so a burst is possible right after a window boundary.
    Waiters poll every ``poll_interval`` seconds and are not served in
    arrival order.
    """

    def __init__(
        self,
        limit_per_min: float,
        *,
        window: float = DEFAULT_WINDOW_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.capacity = max(1, int(limit_per_min))
        self.tokens = self.capacity
        self.window = window
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self.last_refill = clock()

    def _refill_if_needed(self) -> None:
        now = self._clock()
        if now - self.last_refill >= self.window:
            self.tokens = self.capacity
            self.last_refill = now

    def try_acquire(self) -> bool:
        """Take a token without waiting; return whether one was available."""

        self._refill_if_needed()
        if self.tokens > 0:
            self.tokens -= 1
            return True
        return False

    async def acquire(self) -> None:
        """Wait until a token is available and consume it."""

        waited = False
        while not self.try_acquire():
            if not waited:
                logger.debug("Request budget exhausted; waiting for next window")
                waited = True
            await self._sleep(self.poll_interval)

    def stats(self) -> dict[str, int]:
        return {"capacity": self.capacity, "tokens": self.tokens}


__all__ = ["TokenBucket"]
