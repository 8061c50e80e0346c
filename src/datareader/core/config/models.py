"""
Pydantic configuration models for datareader.

These models provide type-safe configuration with validation for:
- Reader options (timeouts, retries, rate limiting, caching)
- Logging settings
- Application-level defaults and API keys
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from datareader.core.fetch.retries import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
)
from datareader.core.fetch.throttling import RateLimitConfig
from datareader.core.orchestrator.runner import DEFAULT_MAX_WORKERS


# =============================================================================
# Reader Options
# =============================================================================


class ReaderOptions(BaseModel):
    """Per-reader options, fixed at construction time."""

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        ge=0.0,
        description="HTTP request timeout in seconds (0 = no timeout)",
    )
    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        le=20,
        description="Retry attempts after the first failure",
    )
    retry_base_delay: float = Field(
        default=DEFAULT_RETRY_BASE_DELAY,
        ge=0.0,
        description="Linear backoff unit in seconds (delay = base * attempt)",
    )
    requests_per_second: float = Field(
        default=0.0,
        description="Rate limit in requests per second (<= 0 disables)",
    )
    rate_limit_burst: int = Field(
        default=1,
        ge=1,
        description="Requests allowed back-to-back before throttling starts",
    )
    cache_dir: Path | None = Field(
        default=None,
        description="Response cache directory (unset disables caching)",
    )
    cache_ttl: float = Field(
        default=0.0,
        ge=0.0,
        description="Cache entry lifetime in seconds (0 = never expires)",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent header sent with every request",
    )
    max_workers: int = Field(
        default=DEFAULT_MAX_WORKERS,
        ge=1,
        le=100,
        description="Max identifiers fetched concurrently per read",
    )
    api_key: str | None = Field(
        default=None,
        description="API key for sources that require authentication",
    )

    @field_validator("cache_dir", mode="before")
    @classmethod
    def empty_cache_dir_disables(cls, v: Any) -> Any:
        """Treat an empty cache_dir as unset."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @field_validator("user_agent")
    @classmethod
    def user_agent_fallback(cls, v: str) -> str:
        return v.strip() or DEFAULT_USER_AGENT

    @property
    def caching_enabled(self) -> bool:
        return self.cache_dir is not None

    @property
    def rate_limit(self) -> RateLimitConfig:
        return RateLimitConfig(requests_per_second=self.requests_per_second, burst=self.rate_limit_burst)


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root configuration, loaded from datareader.yaml."""

    reader: ReaderOptions = Field(default_factory=ReaderOptions)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    api_keys: dict[str, str] = Field(
        default_factory=dict,
        description="API keys by source name",
    )

    def options_for(self, source: str) -> ReaderOptions:
        """Reader options with the API key for `source` filled in."""
        key = self.api_keys.get(source)
        if key and not self.reader.api_key:
            return self.reader.model_copy(update={"api_key": key})
        return self.reader

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        if self.reader.cache_dir:
            self.reader.cache_dir.mkdir(parents=True, exist_ok=True)
        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
