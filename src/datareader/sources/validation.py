"""
Input validation shared by all sources.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Iterable

from datareader.errors import InvalidInputError

# Characters allowed in identifiers besides letters and digits
IDENTIFIER_EXTRA_CHARS = frozenset(".-")


def validate_identifier(identifier: str, extra_chars: Iterable[str] = IDENTIFIER_EXTRA_CHARS) -> None:
    """Check that an identifier is non-empty and made of safe characters.

    Raises:
        InvalidInputError: If the identifier is empty or contains whitespace
            or characters outside letters, digits and `extra_chars`
    """
    if not identifier:
        raise InvalidInputError("identifier cannot be empty")

    allowed = set(extra_chars)
    for ch in identifier:
        if ch.isspace():
            raise InvalidInputError(f"identifier contains whitespace: {identifier!r}")
        if not (ch.isalnum() or ch in allowed):
            raise InvalidInputError(f"identifier contains invalid characters: {identifier!r}")


def validate_identifiers(identifiers: list[str]) -> None:
    """Check that the list is non-empty. Each element is checked separately."""
    if not identifiers:
        raise InvalidInputError("identifier list cannot be empty")


def validate_date_range(start: date | datetime | None, end: date | datetime | None) -> None:
    """Check that both bounds are set and end is not before start."""
    if start is None or end is None:
        raise InvalidInputError("date cannot be empty")
    if _as_datetime(end) < _as_datetime(start):
        raise InvalidInputError("end date must be after or equal to start date")


def _as_datetime(value: date | datetime) -> datetime:
    # Naive datetimes are taken as UTC
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime(value.year, value.month, value.day)
