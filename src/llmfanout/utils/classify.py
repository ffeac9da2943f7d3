"""
Error classification and contextual enrichment.

A raw exception crossing a module boundary is wrapped exactly once into
the nearest category. Errors that are already ``FanoutError`` instances
pass through unchanged apart from context suggestions.
"""

from __future__ import annotations

import errno
import os
import re
from dataclasses import dataclass, field

from llmfanout.utils.errors import (
    EXAMPLE_MODEL_KEYS,
    ApiError,
    ConfigError,
    ErrorCategory,
    FanoutError,
    FileSystemError,
    NetworkError,
    PermissionDeniedError,
)


@dataclass
class ErrorContext:
    """Run-specific details used to enrich a classified error."""

    cwd: str | None = None
    input: str | None = None
    output_directory: str | None = None
    specific_model: str | None = None
    models_list: list[str] = field(default_factory=list)
    run_name: str | None = None


# =============================================================================
# Message Patterns
# =============================================================================

_CATEGORY_PATTERNS: list[tuple[ErrorCategory, list[str]]] = [
    (
        ErrorCategory.NETWORK,
        [r"network", r"econnrefused", r"timeout", r"timed out", r"socket", r"connection",
         r"\bdns\b", r"etimedout", r"connect"],
    ),
    (ErrorCategory.API, [r"\bapi\b(?!\s*key)", r"endpoint", r"service", r"provider"]),
    (
        ErrorCategory.FILESYSTEM,
        [r"\bfile\b", r"directory", r"enoent", r"\bpath\b", r"not\s+found"],
    ),
    (
        ErrorCategory.PERMISSION,
        [r"permission\s+denied", r"access\s+denied", r"forbidden", r"unauthorized"],
    ),
    (
        ErrorCategory.CONFIG,
        [r"config", r"settings", r"option", r"invalid\s+format", r"missing\s+field"],
    ),
]

_RATE_LIMIT = [r"rate\s+limit", r"\b429\b", r"too\s+many\s+requests", r"quota\s+exceeded",
               r"exceeded\s+your\s+(current\s+)?quota"]
_TOKEN_LIMIT = [r"token\s+limit", r"maximum\s+context\s+length", r"maximum\s+token",
                r"context\s+window", r"context\s+length"]
_CONTENT_POLICY = [r"content\s+policy", r"content\s+filter", r"safety\s+system", r"violates",
                   r"harmful", r"inappropriate", r"prohibited"]
_AUTH = [r"authentication", r"\bauth", r"api\s+key", r"apikey", r"unauthorized",
         r"invalid\s+key", r"\b401\b"]
_NETWORK = [r"network", r"connection", r"timeout", r"econnrefused", r"socket", r"\bdns\b",
            r"etimedout", r"connect"]


def _matches(message: str, patterns: list[str]) -> bool:
    return any(re.search(pattern, message, re.IGNORECASE) for pattern in patterns)


def is_rate_limit_error(message: str) -> bool:
    return _matches(message, _RATE_LIMIT)


def is_token_limit_error(message: str) -> bool:
    return _matches(message, _TOKEN_LIMIT)


def is_content_policy_error(message: str) -> bool:
    return _matches(message, _CONTENT_POLICY)


def is_auth_error(message: str) -> bool:
    return _matches(message, _AUTH)


def is_network_error(message: str) -> bool:
    return _matches(message, _NETWORK)


def categorize_message(message: str) -> ErrorCategory:
    """Best-effort category for a free-form error message."""
    for category, patterns in _CATEGORY_PATTERNS:
        if _matches(message, patterns):
            return category
    return ErrorCategory.UNKNOWN


# =============================================================================
# Classification
# =============================================================================


def _add_context(error: FanoutError, context: ErrorContext | None) -> FanoutError:
    if context is None:
        return error
    extra = []
    if context.run_name:
        extra.append(f"This error occurred during run: {context.run_name}")
    if error.category == ErrorCategory.FILESYSTEM and context.output_directory:
        extra.append(f"Output directory: {context.output_directory}")
    error.suggestions.extend([s for s in extra if s not in error.suggestions])
    return error


def _quoted_or(message: str, context: ErrorContext) -> str:
    match = re.search(r'"([^"]+)"', message)
    if match:
        return match.group(1)
    if context.specific_model:
        return context.specific_model
    if context.models_list:
        return context.models_list[0]
    return "unknown"


def _permission_error(
    message: str, cause: BaseException, context: ErrorContext
) -> PermissionDeniedError:
    lowered = message.lower()
    if context.output_directory or "output" in lowered:
        return PermissionDeniedError(
            "Permission denied when accessing output directory: "
            f"{context.output_directory or 'unknown'}",
            cause=cause,
            suggestions=[
                "Check that you have write permissions for the directory",
                "Try specifying a different output directory",
            ],
        )
    if context.input or "input" in lowered:
        return PermissionDeniedError(
            f"Permission denied when accessing input: {context.input or 'unknown'}",
            cause=cause,
            suggestions=[
                "Check that you have read permissions for the file",
                "Try using a different input source",
            ],
        )
    return PermissionDeniedError(
        f"Permission denied: {message}",
        cause=cause,
        suggestions=["Check file and directory permissions"],
    )


def _file_missing(cause: BaseException, context: ErrorContext, message: str) -> FileSystemError:
    detail = f"File not found: {context.input}" if context.input else (
        f"File or directory not found: {message}"
    )
    where = f": {context.input}" if context.input else ""
    return FileSystemError(
        detail,
        file_path=context.input,
        cause=cause,
        suggestions=[
            f"Check that the file exists at the specified path{where}",
            f"Current working directory: {context.cwd or os.getcwd()}",
        ],
    )


def _classify_raw(error: BaseException, context: ErrorContext) -> FanoutError:
    message = str(error) or error.__class__.__name__
    lowered = message.lower()

    code = getattr(error, "errno", None)
    if isinstance(error, OSError) and code is not None:
        if code in (errno.EACCES, errno.EPERM):
            return _permission_error(message, error, context)
        if code == errno.ENOENT:
            return _file_missing(error, context, message)
        if code == errno.ENOSPC:
            return FileSystemError(
                "No space left on device",
                file_path=context.output_directory,
                cause=error,
                suggestions=[
                    "Free up disk space",
                    "Try specifying a different output directory on a drive with more space",
                ],
            )

    if context.input and any(
        marker in lowered
        for marker in ("enoent", "file not found", "directory not found", "not exist")
    ):
        return _file_missing(error, context, message)

    if any(
        marker in lowered for marker in ("eacces", "eperm", "permission denied", "access denied")
    ):
        return _permission_error(message, error, context)

    if is_auth_error(message) or "credentials" in lowered:
        targets = context.specific_model or (
            ", ".join(context.models_list) if context.models_list else "the models"
        )
        return ApiError(
            f"API key error: {message}",
            cause=error,
            suggestions=[
                "Check that you have set the correct environment variables for your API keys",
                "You can set them in your .env file or in your environment",
                f"Verify that your API keys for {targets} are valid and have not expired",
            ],
        )

    if "model" in lowered:
        if "format" in lowered or "invalid" in lowered:
            return ConfigError(
                f"Invalid model format: {_quoted_or(message, context)}",
                cause=error,
                suggestions=[
                    'Model specifications must use the format "provider:modelId" '
                    '(e.g., "openai:gpt-4o")',
                    "Check that the model is correctly spelled",
                ],
                examples=list(EXAMPLE_MODEL_KEYS),
            )
        if "not found" in lowered:
            return ConfigError(
                f'Model "{_quoted_or(message, context)}" not found in configuration',
                cause=error,
                suggestions=[
                    "Check that the model is correctly spelled and exists in your configuration",
                    'Use "llmfanout models" to list all available models',
                ],
            )

    if is_network_error(message):
        return NetworkError(
            f"Network error: {message}",
            cause=error,
            suggestions=[
                "Check your internet connection",
                "Verify that the service endpoints are accessible",
                "Try again later if the service might be experiencing downtime",
            ],
        )

    category = categorize_message(message)
    if category == ErrorCategory.API:
        return ApiError(f"API error: {message}", cause=error)
    if category == ErrorCategory.CONFIG:
        return ConfigError(f"Configuration error: {message}", cause=error)
    if category == ErrorCategory.FILESYSTEM:
        return FileSystemError(f"File system error: {message}", cause=error)
    if category == ErrorCategory.PERMISSION:
        return PermissionDeniedError(f"Permission error: {message}", cause=error)
    if category == ErrorCategory.NETWORK:
        return NetworkError(f"Network error: {message}", cause=error)
    return FanoutError(
        f"Error: {message}",
        cause=error,
        category=ErrorCategory.UNKNOWN,
        suggestions=[
            "This is an unexpected error",
            "If the issue persists, please report it with steps to reproduce",
        ],
    )


def classify_error(
    error: BaseException,
    context: ErrorContext | None = None,
) -> FanoutError:
    """
    Classify ``error`` into the taxonomy.

    An already-classified error is returned as the same object, keeping
    its message, category and cause chain; only run context suggestions
    are appended. Anything else is wrapped exactly once.

    Args:
        error: The error to classify
        context: Optional run details used for messages and suggestions

    Returns:
        A FanoutError whose ``cause`` is the original error when wrapped
    """
    if isinstance(error, FanoutError):
        return _add_context(error, context)
    ctx = context or ErrorContext()
    return _add_context(_classify_raw(error, ctx), context)
