"""
Structured logging setup for llmfanout.

Provides consistent logging across all modules with support for
JSON formatting (production) and pretty printing (development).
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor


def setup_logging(
    level: str = "WARNING",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """
    Configure logging for the entire application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON logs (for production)
        log_file: Optional file path to write logs to

    Example:
        # Development (pretty console output)
        setup_logging(level="DEBUG", json_format=False)

        # Production (JSON for log aggregation)
        setup_logging(level="INFO", json_format=True)
    """
    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    # Logs go to stderr so stdout stays clean for results
    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        logging.getLogger().addHandler(file_handler)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_format:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger for a specific module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger

    Example:
        logger = get_logger(__name__)
        logger.info("Queries started", models=3, timeout_ms=300000)
    """
    return structlog.get_logger(name)


class LogContext:
    """
    Context manager for adding contextual information to logs.

    Example:
        with LogContext(run_name="clever-otter"):
            logger.info("Selecting models")  # Includes run_name
    """

    def __init__(self, **context: Any):
        self.context = context
        self._token: object | None = None

    def __enter__(self) -> LogContext:
        self._token = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token:
            structlog.contextvars.unbind_contextvars(*self.context.keys())


class ProviderLogger:
    """Logger specifically for provider operations."""

    def __init__(self, provider_id: str):
        self.logger = get_logger(f"llmfanout.providers.{provider_id}")
        self.provider_id = provider_id

    def debug(self, message: str, **extra: Any) -> None:
        self.logger.debug(message, provider=self.provider_id, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        self.logger.warning(message, provider=self.provider_id, **extra)

    def log_request(self, model_id: str, prompt_chars: int, **extra: Any) -> None:
        """Log an API request."""
        self.logger.debug(
            "API request",
            provider=self.provider_id,
            model=model_id,
            prompt_chars=prompt_chars,
            **extra,
        )

    def log_response(self, model_id: str, latency_ms: float, **extra: Any) -> None:
        """Log an API response."""
        self.logger.debug(
            "API response",
            provider=self.provider_id,
            model=model_id,
            latency_ms=round(latency_ms, 2),
            **extra,
        )

    def log_error(self, error: Exception, **extra: Any) -> None:
        """Log a provider error."""
        self.logger.warning(
            "Provider error",
            provider=self.provider_id,
            error_type=type(error).__name__,
            error_message=str(error),
            **extra,
        )


# Initialize default logging on import
setup_logging()
