"""
Tests for the retrying transport.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

import httpx
import pytest

from datareader.core.fetch import (
    FetchContext,
    HttpResponse,
    RateLimiter,
    RequestSpec,
    ResponseCache,
    RetryingTransport,
    raise_for_status,
)
from datareader.errors import (
    AuthenticationError,
    CanceledError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    RemoteClientError,
    RemoteServerError,
    RetryExhaustedError,
)

from .helpers import make_client

URL = "https://data.example.test/series/GDP"


def counting_handler(statuses: list[int], body: bytes = b"ok"):
    """Answer with each status in turn, repeating the last one."""
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status = statuses[min(len(calls) - 1, len(statuses) - 1)]
        return httpx.Response(status, content=body)

    return handler, calls


def transport_for(handler, **kwargs) -> RetryingTransport:
    kwargs.setdefault("max_retries", 2)
    kwargs.setdefault("retry_base_delay", 0.0)
    return RetryingTransport(client=make_client(handler), **kwargs)


class TestRetryPolicy:
    """Which failures are retried and how often."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self) -> None:
        handler, calls = counting_handler([200], body=b"data")
        transport = transport_for(handler)

        response = await transport.execute(None, RequestSpec(url=URL))

        assert response.content == b"data"
        assert response.status_code == 200
        assert response.attempts == 1
        assert not response.from_cache
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_always_500_makes_three_attempts(self) -> None:
        handler, calls = counting_handler([500])
        transport = transport_for(handler, max_retries=2)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await transport.execute(None, RequestSpec(url=URL))

        assert len(calls) == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, RemoteServerError)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_recovers_after_server_errors(self) -> None:
        handler, calls = counting_handler([503, 502, 200])
        transport = transport_for(handler, max_retries=2)

        response = await transport.execute(None, RequestSpec(url=URL))

        assert response.status_code == 200
        assert response.attempts == 3
        assert len(calls) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error",
        [
            (400, RemoteClientError),
            (401, AuthenticationError),
            (403, AuthenticationError),
            (404, NotFoundError),
            (429, RateLimitedError),
        ],
    )
    async def test_client_errors_are_not_retried(self, status: int, error: type) -> None:
        handler, calls = counting_handler([status])
        transport = transport_for(handler, max_retries=3)

        with pytest.raises(error) as exc_info:
            await transport.execute(None, RequestSpec(url=URL))

        assert len(calls) == 1
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, content=b"late")

        transport = transport_for(handler, max_retries=2)
        response = await transport.execute(None, RequestSpec(url=URL))

        assert response.content == b"late"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_persistent_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("dns failure", request=request)

        transport = transport_for(handler, max_retries=1)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await transport.execute(None, RequestSpec(url=URL))

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_error, NetworkError)

    @pytest.mark.asyncio
    async def test_zero_retries(self) -> None:
        handler, calls = counting_handler([500])
        transport = transport_for(handler, max_retries=0)

        with pytest.raises(RetryExhaustedError):
            await transport.execute(None, RequestSpec(url=URL))
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_backoff_is_linear(self) -> None:
        handler, calls = counting_handler([500])
        transport = transport_for(handler, max_retries=2, retry_base_delay=0.05)

        started = time.monotonic()
        with pytest.raises(RetryExhaustedError):
            await transport.execute(None, RequestSpec(url=URL))

        # 0.05 * 1 + 0.05 * 2
        assert time.monotonic() - started >= 0.14
        assert len(calls) == 3


class TestCancellation:
    """Cancellation during backoff and in-flight requests."""

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self) -> None:
        handler, calls = counting_handler([500])
        transport = transport_for(handler, max_retries=3, retry_base_delay=10.0)

        ctx = FetchContext()
        asyncio.get_running_loop().call_later(0.1, ctx.cancel)

        started = time.monotonic()
        with pytest.raises(CanceledError):
            await transport.execute(ctx, RequestSpec(url=URL))

        assert time.monotonic() - started < 2.0
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_deadline_aborts_slow_request(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200)

        transport = transport_for(handler)

        started = time.monotonic()
        with pytest.raises(CanceledError):
            await transport.execute(FetchContext.with_timeout(0.1), RequestSpec(url=URL))
        assert time.monotonic() - started < 2.0

    @pytest.mark.asyncio
    async def test_cancelled_context_sends_nothing(self) -> None:
        handler, calls = counting_handler([200])
        transport = transport_for(handler)
        ctx = FetchContext()
        ctx.cancel()

        with pytest.raises(CanceledError):
            await transport.execute(ctx, RequestSpec(url=URL))
        assert calls == []


class TestCachingAndThrottling:
    """Cache and rate limiter integration."""

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self, cache_dir: Path) -> None:
        handler, calls = counting_handler([200], body=b"cached body")
        transport = transport_for(handler, cache=ResponseCache(cache_dir), cache_ttl=3600)
        request = RequestSpec(url=URL, params={"start": "2024-01-01"})

        first = await transport.execute(None, request)
        second = await transport.execute(None, RequestSpec(url=URL, params={"start": "2024-01-01"}))

        assert len(calls) == 1
        assert transport.network_calls == 1
        assert second.from_cache
        assert second.content == first.content == b"cached body"

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, cache_dir: Path) -> None:
        handler, calls = counting_handler([404, 200])
        transport = transport_for(handler, cache=ResponseCache(cache_dir))

        with pytest.raises(NotFoundError):
            await transport.execute(None, RequestSpec(url=URL))
        response = await transport.execute(None, RequestSpec(url=URL))

        assert response.status_code == 200
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_post_bypasses_cache(self, cache_dir: Path) -> None:
        handler, calls = counting_handler([200])
        transport = transport_for(handler, cache=ResponseCache(cache_dir))

        await transport.execute(None, RequestSpec(url=URL, method="POST"))
        await transport.execute(None, RequestSpec(url=URL, method="POST"))

        assert len(calls) == 2
        assert not cache_dir.exists()

    @pytest.mark.asyncio
    async def test_unwritable_cache_does_not_fail_the_fetch(self, tmp_path: Path) -> None:
        blocker = tmp_path / "notadir"
        blocker.write_bytes(b"")
        handler, calls = counting_handler([200], body=b"data")
        transport = transport_for(handler, cache=ResponseCache(blocker / "cache"))

        response = await transport.execute(None, RequestSpec(url=URL))

        assert response.content == b"data"
        assert not response.from_cache
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_credentials_are_not_written_to_cache(self, cache_dir: Path) -> None:
        handler, _ = counting_handler([200])
        transport = transport_for(handler, cache=ResponseCache(cache_dir))

        await transport.execute(None, RequestSpec(url=URL, headers={"Authorization": "Token SECRET123"}))

        files = list(cache_dir.iterdir())
        assert files
        assert [f.name for f in files if b"SECRET123" in f.read_bytes()] == []

    @pytest.mark.asyncio
    async def test_rate_limiter_applies_to_every_attempt(self) -> None:
        handler, calls = counting_handler([500, 500, 200])
        transport = transport_for(handler, rate_limiter=RateLimiter(rate=20, burst=1))

        started = time.monotonic()
        await transport.execute(None, RequestSpec(url=URL))

        assert len(calls) == 3
        assert time.monotonic() - started >= 0.08

    @pytest.mark.asyncio
    async def test_headers_and_params_are_sent(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        transport = transport_for(handler, user_agent="datareader-tests/1.0")
        await transport.execute(
            None,
            RequestSpec(url=URL, headers={"Authorization": "Token k"}, params={"start": "2024-01-01"}),
        )

        assert seen[0].headers["User-Agent"] == "datareader-tests/1.0"
        assert seen[0].headers["Authorization"] == "Token k"
        assert seen[0].url.params["start"] == "2024-01-01"


class TestRaiseForStatus:
    def test_success_passes(self) -> None:
        raise_for_status(HttpResponse(url=URL, status_code=204, content=b""))
        raise_for_status(HttpResponse(url=URL, status_code=302, content=b""))

    def test_retry_after_header(self) -> None:
        response = HttpResponse(url=URL, status_code=429, content=b"slow down", headers={"retry-after": "7"})

        with pytest.raises(RateLimitedError) as exc_info:
            raise_for_status(response, "example")

        assert exc_info.value.retry_after == 7.0
        assert exc_info.value.source == "example"
        assert "slow down" in str(exc_info.value)
