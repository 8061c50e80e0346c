"""
Exception hierarchy for datareader.

Every failure surfaced by a reader is a DataReaderError subclass so callers
can catch one type and still tell the kinds apart.
"""

from __future__ import annotations


class DataReaderError(Exception):
    """Base exception for all datareader errors."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        url: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.url = url
        self.status_code = status_code
        self.cause = cause

    def __str__(self) -> str:
        prefix = f"{self.source}: " if self.source else ""
        if self.cause is not None:
            return f"{prefix}{self.message}: {self.cause}"
        return f"{prefix}{self.message}"


class InvalidInputError(DataReaderError):
    """Bad identifier, identifier list or date range. Raised before any network call."""
    pass


class NetworkError(DataReaderError):
    """Transient transport failure (connection refused, DNS, timeout)."""
    pass


class RemoteServerError(DataReaderError):
    """Remote returned a 5xx status."""
    pass


class RemoteClientError(DataReaderError):
    """Remote returned a 4xx status. Never retried."""
    pass


class RateLimitedError(RemoteClientError):
    """Remote rejected the request for exceeding its quota (429)."""

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 429)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class AuthenticationError(RemoteClientError):
    """Missing or rejected credentials (401/403)."""
    pass


class NotFoundError(RemoteClientError):
    """Remote has no data for the request (404)."""
    pass


class ParseError(DataReaderError):
    """A source adapter could not decode a response payload."""
    pass


class CanceledError(DataReaderError):
    """The fetch context was cancelled or its deadline passed."""
    pass


class RetryExhaustedError(DataReaderError):
    """All attempts of a retryable request failed."""

    def __init__(self, message: str, *, attempts: int, **kwargs):
        super().__init__(message, **kwargs)
        self.attempts = attempts

    @property
    def last_error(self) -> BaseException | None:
        return self.cause


class FetchFailedError(DataReaderError):
    """One identifier of a parallel fetch failed; wraps its cause."""

    def __init__(self, identifier: str, cause: BaseException, **kwargs):
        super().__init__(f"failed to read {identifier}", cause=cause, **kwargs)
        self.identifier = identifier


class UnknownSourceError(DataReaderError):
    """No adapter is registered under the requested source name."""
    pass
