"""
Parallel fetch orchestrator.

Fans a list of identifiers out to concurrent single-item fetches and fans
the results back in:

    ids ──> one task per id ──> admission gate (semaphore, W slots)
        ──> fetch_one(ctx, id) ──> completion queue ──> result map

The first failing id ends the call with FetchFailedError; remaining units
are cancelled through the shared context.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

from datareader.core.fetch.context import FetchContext
from datareader.errors import CanceledError, FetchFailedError, InvalidInputError

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_MAX_WORKERS = 10

FetchOne = Callable[[FetchContext, str], Awaitable[R]]


@dataclass
class FetchResult(Generic[R]):
    """Outcome of fetching one identifier."""

    identifier: str
    record: R | None = None
    error: BaseException | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunStats:
    """Statistics for one fan-out call."""

    dispatched: int = 0
    completed: int = 0
    failed: int = 0
    workers: int = 0
    peak_active: int = 0

    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "dispatched": self.dispatched,
            "completed": self.completed,
            "failed": self.failed,
            "workers": self.workers,
            "peak_active": self.peak_active,
            "duration_seconds": self.duration_seconds,
        }


class FetchRunner(Generic[R]):
    """Bounded-concurrency fan-out/fan-in over identifiers.

    A runner is scoped to one call: its semaphore and completion queue are
    never shared between calls.
    """

    def __init__(
        self,
        fetch_one: FetchOne[R],
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        source: str | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            fetch_one: Coroutine fetching and parsing a single identifier
            max_workers: Upper bound on concurrently active fetch_one calls
            source: Source name used in errors and log records
        """
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.fetch_one = fetch_one
        self.max_workers = max_workers
        self.source = source
        self.stats = RunStats()
        self._active = 0

    async def _unit(
        self,
        ctx: FetchContext,
        identifier: str,
        gate: asyncio.Semaphore,
        completions: asyncio.Queue[FetchResult[R]],
    ) -> None:
        """Fetch one identifier and report exactly once."""
        start = time.monotonic()
        try:
            async with gate:
                ctx.raise_if_cancelled()
                self._active += 1
                self.stats.peak_active = max(self.stats.peak_active, self._active)
                try:
                    record = await self.fetch_one(ctx, identifier)
                finally:
                    self._active -= 1
        except Exception as e:
            result = FetchResult(identifier, error=e)
        except BaseException as e:
            # Still report, or run() would wait for this unit forever
            completions.put_nowait(
                FetchResult(
                    identifier,
                    error=CanceledError(f"fetch interrupted: {type(e).__name__}", cause=e),
                    elapsed_ms=(time.monotonic() - start) * 1000,
                )
            )
            raise
        else:
            result = FetchResult(identifier, record=record)
        result.elapsed_ms = (time.monotonic() - start) * 1000
        completions.put_nowait(result)

    async def run(
        self,
        identifiers: Iterable[str],
        ctx: FetchContext | None = None,
    ) -> dict[str, FetchResult[R]]:
        """Fetch every identifier.

        Returns:
            Mapping of identifier to its successful FetchResult

        Raises:
            InvalidInputError: If no identifiers are given
            FetchFailedError: For the first identifier that fails
        """
        ids = list(dict.fromkeys(identifiers))
        if not ids:
            raise InvalidInputError("identifier list cannot be empty", source=self.source)

        scope = (ctx or FetchContext()).child()
        workers = min(self.max_workers, len(ids))
        gate = asyncio.Semaphore(workers)
        completions: asyncio.Queue[FetchResult[R]] = asyncio.Queue(maxsize=len(ids))

        self.stats = RunStats(dispatched=len(ids), workers=workers)
        tasks = [
            asyncio.create_task(self._unit(scope, identifier, gate, completions), name=f"fetch:{identifier}")
            for identifier in ids
        ]

        results: dict[str, FetchResult[R]] = {}
        try:
            for _ in range(len(tasks)):
                result = await completions.get()
                if result.error is not None:
                    self.stats.failed += 1
                    logger.warning(
                        "Fetch failed for %s: %s",
                        result.identifier,
                        result.error,
                        extra={"source": self.source, "identifier": result.identifier},
                    )
                    raise FetchFailedError(result.identifier, result.error, source=self.source) from result.error
                self.stats.completed += 1
                results[result.identifier] = result
        finally:
            self.stats.finished_at = time.monotonic()
            pending = [t for t in tasks if not t.done()]
            if pending:
                scope.cancel("sibling fetch failed")
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
            scope.detach()

        logger.debug("Fetched %d identifiers", len(results), extra={"source": self.source})
        return results


async def fetch_all(
    identifiers: Iterable[str],
    fetch_one: FetchOne[R],
    *,
    ctx: FetchContext | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    source: str | None = None,
) -> dict[str, FetchResult[R]]:
    """Fetch identifiers concurrently with at most `max_workers` active.

    Convenience wrapper around FetchRunner.
    """
    runner: FetchRunner[R] = FetchRunner(fetch_one, max_workers=max_workers, source=source)
    return await runner.run(identifiers, ctx=ctx)


def is_canceled(error: BaseException) -> bool:
    """True when `error` (or the error it wraps) is a cancellation."""
    if isinstance(error, FetchFailedError):
        error = error.cause
    return isinstance(error, CanceledError)
