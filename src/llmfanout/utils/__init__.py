"""Utility modules for llmfanout."""

from llmfanout.utils.classify import ErrorContext, classify_error
from llmfanout.utils.errors import (
    ApiError,
    ConfigError,
    ErrorCategory,
    FanoutError,
    FileSystemError,
    ModelSelectionError,
    NetworkError,
    PermissionDeniedError,
)
from llmfanout.utils.logging import get_logger, setup_logging

__all__ = [
    # Errors
    "ErrorCategory",
    "FanoutError",
    "ConfigError",
    "ModelSelectionError",
    "ApiError",
    "FileSystemError",
    "PermissionDeniedError",
    "NetworkError",
    # Classification
    "ErrorContext",
    "classify_error",
    # Logging
    "get_logger",
    "setup_logging",
]
