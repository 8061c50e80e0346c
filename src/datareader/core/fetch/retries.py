"""
Retrying HTTP transport built on httpx and tenacity.

Executes one request with:
- Response cache lookup before any network traffic
- Token bucket rate limiting before every attempt
- Linear backoff between attempts (base_delay * attempt)
- Cancellation through the FetchContext at every suspension point
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from datareader.errors import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    RemoteClientError,
    RemoteServerError,
    RetryExhaustedError,
)

from .base import HttpResponse, RequestSpec
from .caching import ResponseCache
from .context import FetchContext
from .throttling import RateLimiter

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Default retry configuration
DEFAULT_TIMEOUT = 30.0  # seconds
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds

# Errors that trigger another attempt
RETRYABLE_ERRORS = (NetworkError, RemoteServerError)


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def raise_for_status(response: HttpResponse, source: str | None = None) -> None:
    """Map an error status to the matching DataReaderError subclass."""
    status = response.status_code
    if status < 400:
        return

    snippet = response.text[:200].strip()
    message = f"HTTP {status}" + (f": {snippet}" if snippet else "")
    kwargs: dict[str, Any] = {"source": source, "url": response.url, "status_code": status}

    if status >= 500:
        raise RemoteServerError(message, **kwargs)
    if status == 429:
        raise RateLimitedError(
            message,
            retry_after=_parse_retry_after(response.headers.get("retry-after")),
            **kwargs,
        )
    if status in (401, 403):
        raise AuthenticationError(message, **kwargs)
    if status == 404:
        raise NotFoundError(message, **kwargs)
    raise RemoteClientError(message, **kwargs)


class RetryingTransport:
    """Executes requests with caching, throttling and bounded retry.

    One instance is shared by every fetch unit of a reader. The rate
    limiter and cache it holds are internally synchronized.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        user_agent: str | None = None,
        rate_limiter: RateLimiter | None = None,
        cache: ResponseCache | None = None,
        cache_ttl: float = 0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize transport.

        Args:
            timeout: Request timeout in seconds (0 means no timeout)
            max_retries: Extra attempts after the first one
            retry_base_delay: Backoff unit in seconds
            user_agent: User-Agent header (default: desktop browser string)
            rate_limiter: Shared limiter (default: unlimited)
            cache: Shared response cache (default: disabled)
            cache_ttl: Lifetime of stored entries in seconds (0 never expires)
            client: Pre-built httpx client; the transport will not close it
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.rate_limiter = rate_limiter or RateLimiter()
        self.cache = cache or ResponseCache(None)
        self.cache_ttl = cache_ttl

        self._client = client
        self._owns_client = client is None
        self._network_calls = 0

    @property
    def network_calls(self) -> int:
        """Number of HTTP requests actually sent."""
        return self._network_calls

    def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout or None),
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
                limits=httpx.Limits(
                    max_connections=100,
                    max_keepalive_connections=10,
                ),
            )
            self._owns_client = True
        return self._client

    async def _attempt(self, ctx: FetchContext, request: RequestSpec, attempt: int) -> HttpResponse:
        """Send the request once."""
        await self.rate_limiter.wait(ctx)
        client = self._ensure_client()

        headers = {"User-Agent": self.user_agent, **request.headers}
        self._network_calls += 1
        logger.debug(
            "%s %s (attempt %d)",
            request.method.upper(),
            request.url,
            attempt,
            extra={"source": request.source, "identifier": request.identifier, "url": request.url, "attempt": attempt},
        )

        try:
            raw = await ctx.run(
                client.request(
                    request.method.upper(),
                    request.url,
                    params=request.params or None,
                    headers=headers,
                )
            )
        except httpx.TransportError as e:
            raise NetworkError(
                f"{type(e).__name__}: {e}",
                source=request.source,
                url=request.url,
                cause=e,
            ) from e

        response = HttpResponse(
            url=str(raw.url),
            status_code=raw.status_code,
            content=raw.content,
            headers=dict(raw.headers),
            attempts=attempt,
        )
        raise_for_status(response, request.source)
        return response

    async def execute(self, ctx: FetchContext | None, request: RequestSpec) -> HttpResponse:
        """Execute a request.

        Args:
            ctx: Cancellation context (None for an uncancellable call)
            request: Request to send

        Returns:
            HttpResponse with a status below 400

        Raises:
            RemoteClientError: On a 4xx status (never retried)
            RetryExhaustedError: When every attempt hit a retryable error
            CanceledError: When ctx is cancelled
        """
        ctx = ctx or FetchContext()
        ctx.raise_if_cancelled()

        fingerprint = request.fingerprint()
        use_cache = self.cache.enabled and request.cacheable

        if use_cache:
            payload, found = await asyncio.to_thread(self.cache.get, fingerprint)
            if found:
                logger.debug("Cache hit for %s", request.url, extra={"url": request.url})
                return HttpResponse(
                    url=request.full_url(),
                    status_code=200,
                    content=payload,
                    from_cache=True,
                )

        response: HttpResponse | None = None
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_incrementing(start=self.retry_base_delay, increment=self.retry_base_delay),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            sleep=ctx.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=False,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._attempt(ctx, request, attempt.retry_state.attempt_number)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            attempts = e.last_attempt.attempt_number
            raise RetryExhaustedError(
                f"request failed after {attempts} attempts",
                attempts=attempts,
                source=request.source,
                url=request.url,
                status_code=getattr(last_error, "status_code", None),
                cause=last_error,
            ) from last_error

        assert response is not None

        if use_cache:
            try:
                await asyncio.to_thread(self.cache.set, fingerprint, response.content, self.cache_ttl)
            except OSError as e:
                # Caching is best-effort; the response is still good
                logger.warning(
                    "Failed to cache response for %s: %s",
                    request.url,
                    e,
                    extra={"source": request.source, "url": request.url},
                )

        return response

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> RetryingTransport:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
