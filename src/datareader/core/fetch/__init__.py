"""Fetch utilities - cancellation, throttling, caching, retries."""

from .base import HttpResponse, RequestSpec
from .caching import ResponseCache, cache_key
from .context import FetchContext
from .retries import RetryingTransport, raise_for_status
from .throttling import RateLimitConfig, RateLimiter

__all__ = [
    "FetchContext",
    "HttpResponse",
    "RateLimitConfig",
    "RateLimiter",
    "RequestSpec",
    "ResponseCache",
    "RetryingTransport",
    "cache_key",
    "raise_for_status",
]
