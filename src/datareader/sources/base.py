"""
Source adapter base class and the reader that drives it.

An adapter knows how to talk to one provider: how to build the request for
an identifier and date range, and how to decode the payload. Everything
else (retries, throttling, caching, parallel fan-out) lives in the shared
core and is wired up by DataReader.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Generic, Iterable, TypeVar

import httpx

from datareader.core.config.models import ReaderOptions
from datareader.core.fetch import (
    FetchContext,
    RateLimiter,
    RequestSpec,
    ResponseCache,
    RetryingTransport,
)
from datareader.core.logging import get_contextual_logger
from datareader.core.orchestrator import FetchRunner, is_canceled
from datareader.errors import DataReaderError, FetchFailedError, ParseError

from .validation import IDENTIFIER_EXTRA_CHARS, validate_date_range, validate_identifier, validate_identifiers

logger = logging.getLogger(__name__)

R = TypeVar("R")


class SourceAdapter(ABC, Generic[R]):
    """Base class for provider-specific request building and decoding.

    Subclasses implement build_request and parse_response. They may
    override validate_identifier for provider-specific symbol rules.
    """

    # Characters allowed in identifiers besides letters and digits
    identifier_chars: frozenset[str] = IDENTIFIER_EXTRA_CHARS

    def __init__(self, options: ReaderOptions | None = None) -> None:
        self.options = options or ReaderOptions()

    @property
    @abstractmethod
    def name(self) -> str:
        """Source identifier (e.g. 'fred')."""
        pass

    @property
    def display_name(self) -> str:
        """Human-readable source name."""
        return self.name

    @property
    def api_key(self) -> str | None:
        return self.options.api_key

    @abstractmethod
    def build_request(self, identifier: str, start: date, end: date) -> RequestSpec:
        """Build the request fetching `identifier` between start and end."""
        pass

    @abstractmethod
    def parse_response(self, content: bytes) -> R:
        """Decode a raw payload into a record.

        Raises:
            ParseError: Or any exception, when the payload cannot be decoded
        """
        pass

    def validate_identifier(self, identifier: str) -> None:
        validate_identifier(identifier, self.identifier_chars)


class DataReader(Generic[R]):
    """Reads records for identifiers from one source.

    Owns the rate limiter, response cache and transport for its lifetime;
    every read() call shares them.

    Usage:
        async with DataReader(FredAdapter(options), options) as reader:
            records = await reader.read(["GDP", "UNRATE"], start, end)
    """

    def __init__(
        self,
        adapter: SourceAdapter[R],
        options: ReaderOptions | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the reader.

        Args:
            adapter: Provider adapter
            options: Reader options (default: the adapter's options)
            client: Pre-built httpx client, mainly for tests
        """
        self.adapter = adapter
        self.options = options or adapter.options

        opts = self.options
        self.rate_limiter = RateLimiter.from_config(opts.rate_limit)
        self.cache = ResponseCache(opts.cache_dir)
        self.transport = RetryingTransport(
            timeout=opts.timeout,
            max_retries=opts.max_retries,
            retry_base_delay=opts.retry_base_delay,
            user_agent=opts.user_agent,
            rate_limiter=self.rate_limiter,
            cache=self.cache,
            cache_ttl=opts.cache_ttl,
            client=client,
        )

    @property
    def name(self) -> str:
        return self.adapter.display_name

    @property
    def source(self) -> str:
        return self.adapter.name

    def _validate(self, identifiers: list[str], start: date, end: date) -> None:
        try:
            validate_identifiers(identifiers)
            for identifier in identifiers:
                self.adapter.validate_identifier(identifier)
            validate_date_range(start, end)
        except DataReaderError as e:
            e.source = self.source
            raise

    async def _fetch_one(self, ctx: FetchContext, identifier: str, start: date, end: date) -> R:
        request = self.adapter.build_request(identifier, start, end)
        request.source = request.source or self.source
        request.identifier = request.identifier or identifier

        log = get_contextual_logger("sources", source=self.source, identifier=identifier)
        response = await self.transport.execute(ctx, request)
        log.debug(
            "Fetched %d bytes (attempts=%d, cached=%s)",
            len(response.content),
            response.attempts,
            response.from_cache,
            extra={"url": response.url},
        )

        try:
            return self.adapter.parse_response(response.content)
        except DataReaderError:
            raise
        except Exception as e:
            log.warning("Could not decode payload: %s", e, extra={"url": response.url})
            raise ParseError(str(e), source=self.source, url=response.url, cause=e) from e

    async def read(
        self,
        identifiers: Iterable[str],
        start: date,
        end: date,
        ctx: FetchContext | None = None,
    ) -> dict[str, R]:
        """Fetch records for several identifiers in parallel.

        Returns:
            Mapping of identifier to parsed record

        Raises:
            InvalidInputError: Before any network call, for bad input
            FetchFailedError: For the first identifier that fails
        """
        ids = list(identifiers)
        self._validate(ids, start, end)

        async def fetch_one(unit_ctx: FetchContext, identifier: str) -> R:
            return await self._fetch_one(unit_ctx, identifier, start, end)

        runner: FetchRunner[R] = FetchRunner(
            fetch_one,
            max_workers=self.options.max_workers,
            source=self.source,
        )
        try:
            results = await runner.run(ids, ctx=ctx)
        except FetchFailedError as e:
            if is_canceled(e):
                logger.info("Read of %d identifiers canceled", len(ids), extra={"source": self.source})
            raise
        logger.info(
            "Read %d identifiers in %.2fs",
            len(results),
            runner.stats.duration_seconds or 0.0,
            extra={"source": self.source},
        )
        return {identifier: result.record for identifier, result in results.items()}

    async def read_single(
        self,
        identifier: str,
        start: date,
        end: date,
        ctx: FetchContext | None = None,
    ) -> R:
        """Fetch the record for one identifier.

        Errors are raised unwrapped, without the identifier wrapper read()
        adds.
        """
        self._validate([identifier], start, end)
        return await self._fetch_one(ctx or FetchContext(), identifier, start, end)

    def stats(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "network_calls": self.transport.network_calls,
            "rate_limiter": self.rate_limiter.stats(),
            "cache": self.cache.stats(),
        }

    async def aclose(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> DataReader[R]:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
