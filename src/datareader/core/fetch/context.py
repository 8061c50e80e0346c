"""
Cooperative cancellation shared by one read and all of its fetch units.

A FetchContext is passed to every suspension point (rate limiter waits,
retry backoff, HTTP calls). Cancelling it, or letting its deadline pass,
makes all of those raise CanceledError promptly.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, TypeVar

from datareader.errors import CanceledError

T = TypeVar("T")


class FetchContext:
    """Cancellation token with an optional monotonic deadline."""

    def __init__(self, deadline: float | None = None, parent: FetchContext | None = None):
        """Initialize context.

        Args:
            deadline: Absolute time.monotonic() value after which the
                context counts as cancelled
            parent: Context whose cancellation also cancels this one
        """
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline
        self._event = asyncio.Event()
        self._children: set[FetchContext] = set()
        self._parent = parent
        self._reason = "context canceled"
        if parent is not None:
            parent._children.add(self)
            if parent.cancelled:
                self.cancel(parent._reason)

    @classmethod
    def with_timeout(cls, seconds: float) -> FetchContext:
        """Create a context that expires after `seconds`."""
        return cls(deadline=time.monotonic() + seconds)

    def child(self) -> FetchContext:
        """Create a context cancelled together with this one."""
        return FetchContext(parent=self)

    def detach(self) -> None:
        """Stop following the parent. Call when a child scope is finished."""
        if self._parent is not None:
            self._parent._children.discard(self)
            self._parent = None

    def cancel(self, reason: str = "context canceled") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        for child in list(self._children):
            child.cancel(reason)

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel("context deadline exceeded")
            return True
        return False

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CanceledError(self._reason)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable`, aborting with CanceledError on cancellation.

        The wrapped work is cancelled (and awaited) before the error is
        raised, so nothing keeps running after the context is gone.
        """
        if self.cancelled:
            # Close un-started coroutines to avoid "never awaited" warnings
            close = getattr(awaitable, "close", None)
            if close is not None:
                close()
            raise CanceledError(self._reason)

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
            if work in done:
                return work.result()
            if not done:
                self.cancel("context deadline exceeded")
            raise CanceledError(self._reason)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()
                await asyncio.gather(work, return_exceptions=True)

    async def sleep(self, seconds: float) -> None:
        """Sleep for `seconds` unless the context is cancelled first."""
        await self.run(asyncio.sleep(max(0.0, seconds)))
