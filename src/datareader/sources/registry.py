"""
Source registry.

Maps source names to adapter factories. A registry is an ordinary object
built at start-up and passed to whoever needs it; there is no module-level
table to mutate.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Iterator

import httpx

from datareader.core.config.models import ReaderOptions
from datareader.core.fetch import FetchContext
from datareader.errors import UnknownSourceError

from .base import DataReader, SourceAdapter

AdapterFactory = Callable[[ReaderOptions], SourceAdapter[Any]]


class SourceRegistry:
    """Explicit name -> adapter factory table."""

    def __init__(self, factories: dict[str, AdapterFactory] | None = None) -> None:
        self._factories: dict[str, AdapterFactory] = {}
        for name, factory in (factories or {}).items():
            self.register(name, factory)

    def register(self, name: str, factory: AdapterFactory, *, replace: bool = False) -> None:
        """Register an adapter factory under `name`.

        Raises:
            ValueError: If the name is empty or already taken and not replacing
        """
        key = name.strip().lower()
        if not key:
            raise ValueError("source name cannot be empty")
        if key in self._factories and not replace:
            raise ValueError(f"source already registered: {key}")
        self._factories[key] = factory

    def names(self) -> list[str]:
        """Registered source names, sorted."""
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._factories)

    def adapter(self, name: str, options: ReaderOptions | None = None) -> SourceAdapter[Any]:
        """Build the adapter registered under `name`.

        Raises:
            UnknownSourceError: If nothing is registered under `name`
        """
        if not name or not name.strip():
            raise UnknownSourceError("source cannot be empty")
        key = name.strip().lower()
        factory = self._factories.get(key)
        if factory is None:
            raise UnknownSourceError(f"unknown data source: {name}")
        return factory(options or ReaderOptions())

    def create(
        self,
        name: str,
        options: ReaderOptions | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> DataReader[Any]:
        """Build a DataReader for the source registered under `name`."""
        options = options or ReaderOptions()
        return DataReader(self.adapter(name, options), options, client=client)

    async def read(
        self,
        identifier: str,
        name: str,
        start: date,
        end: date,
        options: ReaderOptions | None = None,
        ctx: FetchContext | None = None,
    ) -> Any:
        """One-shot read of a single identifier; the reader is closed afterwards."""
        async with self.create(name, options) as reader:
            return await reader.read_single(identifier, start, end, ctx=ctx)
