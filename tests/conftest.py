"""
Pytest configuration and fixtures for datareader tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from datareader.core.config import ReaderOptions

from .helpers import SeriesAdapter


@pytest.fixture
def fast_options() -> ReaderOptions:
    """Options with no backoff delay so retry tests run instantly."""
    return ReaderOptions(max_retries=2, retry_base_delay=0.0, timeout=5.0)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def adapter(fast_options: ReaderOptions) -> SeriesAdapter:
    return SeriesAdapter(fast_options)
