"""
Rate limiting utilities.

Provides a token bucket limiter shared by every request a reader makes.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable

from .context import FetchContext


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests_per_second: float = 0.0  # <= 0 disables limiting
    burst: int = 1


class RateLimiter:
    """Token bucket rate limiter.

    Features:
    - Continuous refill at `rate` tokens per second, capped at `burst`
    - Waiters reserve their token up front, so the lock is never held
      while sleeping
    - Waits are interruptible through the FetchContext
    """

    def __init__(
        self,
        rate: float = 0.0,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            rate: Requests per second (<= 0 means unlimited)
            burst: Maximum tokens available at once
            clock: Monotonic time source
        """
        self.rate = rate
        self.burst = max(1, burst)
        self._clock = clock
        self._tokens = float(self.burst)
        self._last_refill = clock()
        self._lock = asyncio.Lock()
        self._waits = 0

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> RateLimiter:
        return cls(rate=config.requests_per_second, burst=config.burst)

    @property
    def enabled(self) -> bool:
        return self.rate > 0

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._last_refill = now

    async def _reserve(self) -> float:
        """Take a token and return how long to wait before using it."""
        async with self._lock:
            self._refill(self._clock())
            self._tokens -= 1.0
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    async def _unreserve(self) -> None:
        async with self._lock:
            self._tokens = min(float(self.burst), self._tokens + 1.0)

    async def wait(self, ctx: FetchContext | None = None) -> None:
        """Block until a request may proceed.

        Raises:
            CanceledError: If ctx is cancelled before a token is available
        """
        if ctx is not None:
            ctx.raise_if_cancelled()
        if not self.enabled:
            return

        delay = await self._reserve()
        if delay <= 0:
            return

        self._waits += 1
        try:
            if ctx is not None:
                await ctx.sleep(delay)
            else:
                await asyncio.sleep(delay)
        except BaseException:
            # Give the reserved token back to the bucket
            await self._unreserve()
            raise

    def stats(self) -> dict[str, Any]:
        """Get rate limiter statistics."""
        return {
            "rate": self.rate,
            "burst": self.burst,
            "tokens": self._tokens,
            "throttled_waits": self._waits,
        }
