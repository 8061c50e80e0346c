"""
Logging infrastructure for datareader.

Provides:
- Structured JSON logging for file output
- Rich console output for terminal
- Contextual logging with source/identifier context

The library never configures logging on import; applications call
setup_logging() if they want these handlers.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from rich.console import Console

    from datareader.core.config.models import LoggingConfig


ROOT_LOGGER = "datareader"

# Extra record attributes copied into JSON lines and console prefixes
CONTEXT_FIELDS = ("source", "identifier", "url", "attempt")


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


# =============================================================================
# JSON Formatter for File Logging
# =============================================================================


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        return json_dumps(log_data)


# =============================================================================
# Rich Console Handler
# =============================================================================


class RichConsoleHandler(logging.Handler):
    """Handler that outputs to Rich console with formatting."""

    STYLES = {
        logging.DEBUG: "dim",
        logging.INFO: "default",
        logging.WARNING: "yellow",
        logging.ERROR: "red",
        logging.CRITICAL: "bold red",
    }

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            style = self.STYLES.get(record.levelno, "default")

            prefix = ""
            source = getattr(record, "source", None)
            if source:
                prefix = f"[cyan][{source}][/cyan] "
            identifier = getattr(record, "identifier", None)
            if identifier:
                prefix += f"[magenta]{identifier}[/magenta] "

            self.console.print(f"{prefix}[{style}]{message}[/{style}]", markup=True, highlight=False)

            if record.exc_info:
                self.console.print_exception()

        except Exception:
            self.handleError(record)


# =============================================================================
# Logger Configuration
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Set up logging for datareader.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file (optional)
        json_format: Use JSON format for file logs
        rich_console: Use Rich for console output

    Returns:
        Root logger for datareader
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers.clear()

    if rich_console:
        console_handler: logging.Handler = RichConsoleHandler()
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    console_handler.setLevel(getattr(logging, level.upper()))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # Capture all levels to file

        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )

        logger.addHandler(file_handler)

    return logger


def setup_logging_from_config(config: LoggingConfig) -> logging.Logger:
    """Set up logging from a LoggingConfig model."""
    return setup_logging(
        level=config.level,
        log_file=config.file,
        json_format=config.json_format,
        rich_console=config.rich_console,
    )


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance under the datareader namespace."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logging.getLogger(ROOT_LOGGER)


# =============================================================================
# Contextual Logging Adapter
# =============================================================================


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that adds source/identifier context to log records."""

    def __init__(
        self,
        logger: logging.Logger,
        source: str | None = None,
        identifier: str | None = None,
    ):
        super().__init__(logger, {})
        self.source = source
        self.identifier = identifier

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})

        if self.source:
            extra.setdefault("source", self.source)
        if self.identifier:
            extra.setdefault("identifier", self.identifier)

        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(
        self,
        source: str | None = None,
        identifier: str | None = None,
    ) -> ContextualLogger:
        """Create a new logger with additional context."""
        return ContextualLogger(
            self.logger,
            source=source or self.source,
            identifier=identifier or self.identifier,
        )


def get_contextual_logger(
    name: str | None = None,
    source: str | None = None,
    identifier: str | None = None,
) -> ContextualLogger:
    """Get a contextual logger with source/identifier context."""
    return ContextualLogger(get_logger(name), source=source, identifier=identifier)
