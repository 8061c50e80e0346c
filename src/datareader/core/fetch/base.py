"""
Request and response data structures shared by the transport and adapters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl


@dataclass
class RequestSpec:
    """Specification for an HTTP request built by a source adapter."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)

    # Metadata for logging/debugging
    source: str | None = None
    identifier: str | None = None

    @property
    def cacheable(self) -> bool:
        return self.method.upper() == "GET"

    def full_url(self) -> str:
        """URL with `params` merged into the query string, in canonical order."""
        parts = urlsplit(self.url)
        query = parse_qsl(parts.query, keep_blank_values=True)
        query.extend((k, str(v)) for k, v in self.params.items())
        query.sort()
        return urlunsplit(parts._replace(query=urlencode(query)))

    def fingerprint(self) -> str:
        """Deterministic identity of this request.

        Method, canonical URL and the adapter-supplied headers. Header
        names are case-folded and sorted so equal requests always match.
        """
        lines = [self.method.upper(), self.full_url()]
        for name, value in sorted((k.lower(), v) for k, v in self.headers.items()):
            lines.append(f"{name}: {value}")
        return "\n".join(lines)


@dataclass
class HttpResponse:
    """Raw response returned by the transport."""

    url: str
    status_code: int
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)

    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    from_cache: bool = False
    attempts: int = 0

    @property
    def ok(self) -> bool:
        """Check if request was successful (status below 400)."""
        return self.status_code < 400

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")
