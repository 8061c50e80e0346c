"""Orchestrator - bounded-concurrency fan-out/fan-in."""

from .runner import DEFAULT_MAX_WORKERS, FetchResult, FetchRunner, RunStats, fetch_all, is_canceled

__all__ = [
    "DEFAULT_MAX_WORKERS",
    "FetchResult",
    "FetchRunner",
    "RunStats",
    "fetch_all",
    "is_canceled",
]
