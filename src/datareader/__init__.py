"""
datareader - Remote time-series data access.

Fetches tabular data from HTTP data providers through a shared core:
a retrying, rate-limited, optionally caching transport and a
bounded-concurrency fan-out over identifiers.
"""

from datareader.core.config import AppConfig, ReaderOptions, load_app_config
from datareader.core.fetch import FetchContext, HttpResponse, RequestSpec
from datareader.core.orchestrator import fetch_all
from datareader.errors import (
    AuthenticationError,
    CanceledError,
    DataReaderError,
    FetchFailedError,
    InvalidInputError,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitedError,
    RemoteClientError,
    RemoteServerError,
    RetryExhaustedError,
    UnknownSourceError,
)
from datareader.sources import DataReader, SourceAdapter, SourceRegistry

__version__ = "0.1.0"
__app_name__ = "datareader"

__all__ = [
    "AppConfig",
    "AuthenticationError",
    "CanceledError",
    "DataReader",
    "DataReaderError",
    "FetchContext",
    "FetchFailedError",
    "HttpResponse",
    "InvalidInputError",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "RateLimitedError",
    "ReaderOptions",
    "RemoteClientError",
    "RemoteServerError",
    "RequestSpec",
    "RetryExhaustedError",
    "SourceAdapter",
    "SourceRegistry",
    "UnknownSourceError",
    "fetch_all",
    "load_app_config",
]
