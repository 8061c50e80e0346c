"""Configuration loading and validation."""

from .models import (
    AppConfig,
    LoggingConfig,
    ReaderOptions,
)
from .loader import ConfigError, load_app_config, load_reader_options, validate_config_file

__all__ = [
    # Config models
    "AppConfig",
    "LoggingConfig",
    "ReaderOptions",
    # Loaders
    "ConfigError",
    "load_app_config",
    "load_reader_options",
    "validate_config_file",
]
