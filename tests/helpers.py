"""
Shared test helpers: a minimal JSON source adapter and mock HTTP clients.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Awaitable, Callable, Union

import httpx
import orjson

from datareader.core.fetch import RequestSpec
from datareader.errors import ParseError
from datareader.sources import SourceAdapter

Handler = Callable[[httpx.Request], Union[httpx.Response, Awaitable[httpx.Response]]]

START = date(2024, 1, 1)
END = date(2024, 1, 31)


class SeriesAdapter(SourceAdapter[dict[str, Any]]):
    """Minimal JSON adapter: GET {base}/{identifier}?start=..&end=.."""

    base_url = "https://data.example.test/series"

    @property
    def name(self) -> str:
        return "example"

    @property
    def display_name(self) -> str:
        return "Example Series"

    def build_request(self, identifier: str, start: date, end: date) -> RequestSpec:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Token {self.api_key}"
        return RequestSpec(
            url=f"{self.base_url}/{identifier}",
            params={"start": start.isoformat(), "end": end.isoformat()},
            headers=headers,
        )

    def parse_response(self, content: bytes) -> dict[str, Any]:
        data = orjson.loads(content)
        if "error" in data:
            raise ParseError(f"API error: {data['error']}")
        return data


def series_payload(identifier: str) -> bytes:
    return orjson.dumps({"id": identifier, "dates": ["2024-01-02"], "values": [1.5]})


def make_client(handler: Handler) -> httpx.AsyncClient:
    """httpx client whose requests are answered by `handler`."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
