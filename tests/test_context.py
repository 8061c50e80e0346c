"""
Tests for FetchContext cancellation.
"""

from __future__ import annotations

import asyncio
import time

import pytest

from datareader.core.fetch import FetchContext
from datareader.errors import CanceledError


class TestFetchContext:
    """Cancellation, deadlines and parent/child propagation."""

    @pytest.mark.asyncio
    async def test_run_returns_result(self) -> None:
        ctx = FetchContext()

        async def work() -> int:
            await asyncio.sleep(0)
            return 42

        assert await ctx.run(work()) == 42

    @pytest.mark.asyncio
    async def test_run_propagates_errors(self) -> None:
        ctx = FetchContext()

        async def boom() -> None:
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await ctx.run(boom())

    @pytest.mark.asyncio
    async def test_cancel_interrupts_sleep(self) -> None:
        ctx = FetchContext()
        asyncio.get_running_loop().call_later(0.05, ctx.cancel)

        started = time.monotonic()
        with pytest.raises(CanceledError):
            await ctx.sleep(10)
        assert time.monotonic() - started < 1.0

    @pytest.mark.asyncio
    async def test_deadline_interrupts_sleep(self) -> None:
        ctx = FetchContext.with_timeout(0.05)

        with pytest.raises(CanceledError, match="deadline"):
            await ctx.sleep(10)
        assert ctx.cancelled

    @pytest.mark.asyncio
    async def test_cancelled_context_fails_fast(self) -> None:
        ctx = FetchContext()
        ctx.cancel()

        with pytest.raises(CanceledError):
            await ctx.sleep(0)
        with pytest.raises(CanceledError):
            ctx.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_inner_work_is_cancelled(self) -> None:
        ctx = FetchContext()
        finished = asyncio.Event()
        cancelled = asyncio.Event()

        async def work() -> None:
            try:
                await asyncio.sleep(10)
                finished.set()
            except asyncio.CancelledError:
                cancelled.set()
                raise

        asyncio.get_running_loop().call_later(0.02, ctx.cancel)
        with pytest.raises(CanceledError):
            await ctx.run(work())

        assert cancelled.is_set()
        assert not finished.is_set()

    def test_child_follows_parent(self) -> None:
        parent = FetchContext()
        child = parent.child()

        child.cancel()
        assert child.cancelled
        assert not parent.cancelled

        other = parent.child()
        parent.cancel()
        assert other.cancelled
        assert parent.child().cancelled

    def test_child_inherits_deadline(self) -> None:
        parent = FetchContext(deadline=time.monotonic() + 5)
        child = parent.child()

        assert child.deadline == parent.deadline
        assert child.remaining() is not None
        assert FetchContext().remaining() is None

    def test_detached_child_stops_following_parent(self) -> None:
        parent = FetchContext()
        child = parent.child()

        child.detach()
        child.detach()
        parent.cancel()

        assert not child.cancelled
        assert parent._children == set()
