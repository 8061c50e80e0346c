"""Source adapter contract, reader and registry."""

from .base import DataReader, SourceAdapter
from .registry import AdapterFactory, SourceRegistry
from .validation import validate_date_range, validate_identifier, validate_identifiers

__all__ = [
    "AdapterFactory",
    "DataReader",
    "SourceAdapter",
    "SourceRegistry",
    "validate_date_range",
    "validate_identifier",
    "validate_identifiers",
]
