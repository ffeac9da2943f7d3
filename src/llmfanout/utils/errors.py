"""
Error taxonomy for llmfanout.

Every failure the engine reports is a ``FanoutError`` carrying a
``category`` discriminant, an optional ``cause`` chain and remediation
guidance (``suggestions`` and ``examples``). Subclasses only pin the
category and add category-specific fields.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Sequence
from enum import Enum
from typing import Any

# =============================================================================
# Categories
# =============================================================================


class ErrorCategory(str, Enum):
    """Fixed set of error categories."""

    CONFIG = "Configuration"
    API = "API"
    FILESYSTEM = "File System"
    PERMISSION = "Permission"
    NETWORK = "Network"
    UNKNOWN = "Unknown"


EXAMPLE_MODEL_KEYS = [
    "openai:gpt-4o",
    "anthropic:claude-3-7-sonnet-20250219",
    "openrouter:google/gemini-pro",
]


# =============================================================================
# Base Error
# =============================================================================


class FanoutError(Exception):
    """
    Base exception for all llmfanout errors.

    Example:
        err = ConfigError("Bad value", suggestions=["Fix it"])
        print(err.format())
    """

    default_category = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        category: ErrorCategory | None = None,
        suggestions: Sequence[str] | None = None,
        examples: Sequence[str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.category = category or self.default_category
        self.suggestions: list[str] = list(suggestions or [])
        self.examples: list[str] = list(examples or [])
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message

    def format(self) -> str:
        """
        Render the error as a human-readable block.

        Layout: category header, message, bulleted suggestions and
        example invocations when present.
        """
        lines = [f"Error ({self.category.value}): {self.message}"]
        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            lines.extend(f"  - {suggestion}" for suggestion in self.suggestions)
        if self.examples:
            lines.append("")
            lines.append("Examples:")
            lines.extend(f"  {example}" for example in self.examples)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured output."""
        data: dict[str, Any] = {
            "error": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "suggestions": list(self.suggestions),
            "examples": list(self.examples),
        }
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data


def iter_causes(error: BaseException) -> Iterator[BaseException]:
    """Yield ``error`` followed by every error in its cause chain."""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if isinstance(current, FanoutError) and current.cause is not None:
            current = current.cause
        else:
            current = current.__cause__


def cause_depth(error: BaseException) -> int:
    """Number of errors below ``error`` in its cause chain."""
    return sum(1 for _ in iter_causes(error)) - 1


# =============================================================================
# Category Errors
# =============================================================================


class ConfigError(FanoutError):
    """Invalid or missing configuration (model keys, groups, settings)."""

    default_category = ErrorCategory.CONFIG


class ModelSelectionError(ConfigError):
    """Model selection could not produce a usable model list."""


class ApiError(FanoutError):
    """Provider API or credential failure."""

    default_category = ErrorCategory.API

    def __init__(
        self,
        message: str,
        provider_id: str | None = None,
        cause: BaseException | None = None,
        category: ErrorCategory | None = None,
        suggestions: Sequence[str] | None = None,
        examples: Sequence[str] | None = None,
    ):
        super().__init__(message, cause, category, suggestions, examples)
        self.provider_id = provider_id

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["provider_id"] = self.provider_id
        return data


class FileSystemError(FanoutError):
    """File or directory could not be read or written."""

    default_category = ErrorCategory.FILESYSTEM

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        cause: BaseException | None = None,
        category: ErrorCategory | None = None,
        suggestions: Sequence[str] | None = None,
        examples: Sequence[str] | None = None,
    ):
        super().__init__(message, cause, category, suggestions, examples)
        self.file_path = file_path

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["file_path"] = self.file_path
        return data


class PermissionDeniedError(FanoutError):
    """Access to a file, directory or resource was refused."""

    default_category = ErrorCategory.PERMISSION


class NetworkError(FanoutError):
    """Connectivity failure talking to a provider."""

    default_category = ErrorCategory.NETWORK


# =============================================================================
# Factories: configuration
# =============================================================================


def _preview(items: Sequence[str], limit: int) -> str:
    text = ", ".join(items[:limit])
    if len(items) > limit:
        text += ", ..."
    return text


def file_not_found_error(
    file_path: str,
    cause: BaseException | None = None,
    cwd: str | None = None,
) -> FileSystemError:
    """Error for a missing input or configuration file."""
    return FileSystemError(
        f"File not found: {file_path}",
        file_path=file_path,
        cause=cause,
        suggestions=[
            f"Check that the file exists at the specified path: {file_path}",
            f"Current working directory: {cwd or os.getcwd()}",
        ],
    )


def model_format_error(
    model_key: str,
    available_providers: Sequence[str] = (),
    available_models: Sequence[str] = (),
    message: str | None = None,
) -> ConfigError:
    """
    Error for a model key that does not follow ``provider:modelId``.

    Suggestions are tailored to the detected issue (missing separator,
    missing provider, missing model id). Examples are drawn from
    ``available_models`` when given.
    """
    if message is None:
        if ":" not in model_key:
            message = (
                f'Invalid model format: "{model_key}". '
                'Model must be specified as "provider:modelId".'
            )
        elif model_key.endswith(":"):
            message = f'Invalid model format: "{model_key}". Missing model ID after provider.'
        elif model_key.startswith(":"):
            message = (
                f'Invalid model format: "{model_key}". Missing provider name before model ID.'
            )
        else:
            message = f'Invalid model format: "{model_key}". Use "provider:modelId" format.'

    provider = model_key.split(":", 1)[0]
    suggestions = [
        'Model specifications must use the format "provider:modelId" (e.g., "openai:gpt-4o")'
    ]
    if ":" not in model_key:
        suggestions.append(
            f'Add a colon between provider and model ID: "{model_key}" -> "provider:{model_key}"'
        )
    elif model_key.endswith(":"):
        suggestions.append(f'Specify a model ID after the provider: "{model_key}modelId"')
        matching = [m for m in available_models if m.startswith(f"{provider}:")]
        if matching:
            suggestions.append(f"Available models for {provider}: {_preview(matching, 3)}")
    elif model_key.startswith(":"):
        suggestions.append(f'Specify a provider before the model ID: "provider{model_key}"')

    if available_providers:
        suggestions.append(f"Available providers: {', '.join(available_providers)}")
    if available_models:
        suggestions.append(f"Example models: {_preview(list(available_models), 5)}")

    examples = list(available_models[:2]) if available_models else EXAMPLE_MODEL_KEYS[:2]
    return ConfigError(message, suggestions=suggestions, examples=examples)


def model_not_found_error(
    model_key: str,
    available_models: Sequence[str] = (),
    group_name: str | None = None,
) -> ConfigError:
    """Error for a well-formed model key that is not in the configuration."""
    provider, _, model_id = model_key.partition(":")
    if group_name:
        message = f'Model "{model_key}" not found in group "{group_name}".'
    else:
        message = f'Model "{model_key}" not found in configuration.'

    suggestions: list[str] = []
    if available_models:
        same_provider = [m for m in available_models if m.startswith(f"{provider}:")]
        if same_provider:
            suggestions.append(f"Available models from {provider}: {_preview(same_provider, 5)}")
        else:
            suggestions.append(f'Provider "{provider}" not found.')
            providers = sorted({m.split(":", 1)[0] for m in available_models})
            if providers:
                suggestions.append(f"Available providers: {', '.join(providers)}")
        if model_id:
            similar = [m for m in available_models if model_id in m.split(":", 1)[-1]]
            if similar:
                suggestions.append(f"Models with similar IDs: {_preview(similar, 3)}")
    suggestions.extend(
        [
            "Check your configuration file to ensure the model is properly defined",
            'Use "llmfanout models" to list all available models',
        ]
    )
    if group_name:
        suggestions.append(f'Ensure the model is included in the "{group_name}" group configuration')

    examples = list(available_models[:3]) if available_models else list(EXAMPLE_MODEL_KEYS)
    return ConfigError(message, suggestions=suggestions, examples=examples)


def group_not_found_error(
    group_name: str,
    available_groups: Sequence[str] = (),
) -> ModelSelectionError:
    """Error for a group name that is not in the configuration."""
    suggestions = ["Check your configuration file and make sure the group is defined"]
    if available_groups:
        suggestions.append(f"Available groups: {', '.join(available_groups)}")
    else:
        suggestions.append("No groups defined in the configuration")
    suggestions.append('Use "llmfanout models" to list all available models and their groups')
    return ModelSelectionError(
        f'Group "{group_name}" not found in configuration.',
        suggestions=suggestions,
        examples=[f"llmfanout run prompt.txt --group {g}" for g in list(available_groups)[:2]],
    )


def credential_env_var(provider_id: str) -> str:
    """Environment variable expected to hold ``provider_id``'s credential."""
    return f"{provider_id.upper().replace('-', '_')}_API_KEY"


def missing_api_key_error(
    missing_models: Sequence[tuple[str, str]],
    message: str | None = None,
) -> ApiError:
    """
    Aggregate missing credentials across several models into one error.

    Args:
        missing_models: ``(provider, model_id)`` pairs lacking a credential
        message: Optional lead sentence; the affected model keys are appended
    """
    model_keys = [f"{provider}:{model_id}" for provider, model_id in missing_models]
    providers = list(dict.fromkeys(provider for provider, _ in missing_models))

    lead = message or "Missing API keys."
    full_message = f"{lead} Missing API keys for models: {', '.join(model_keys)}"

    suggestions = [
        f"Set the {credential_env_var(provider)} environment variable for the {provider} provider"
        for provider in providers
    ]
    suggestions.append("You can set them in your .env file or in your shell environment")
    examples = [f"export {credential_env_var(provider)}=your_api_key" for provider in providers]

    return ApiError(
        full_message,
        provider_id=providers[0] if len(providers) == 1 else None,
        suggestions=suggestions,
        examples=examples,
    )


# =============================================================================
# Factories: providers
# =============================================================================


def provider_api_key_missing_error(provider_id: str, console_url: str) -> ApiError:
    """Error raised by a provider constructed without a credential."""
    env_var = credential_env_var(provider_id)
    return ApiError(
        f"{provider_id} API key is missing. Set {env_var} environment variable "
        "or provide it when creating the provider.",
        provider_id=provider_id,
        suggestions=[
            f"Set the {env_var} environment variable in your shell or .env file",
            f"Get an API key from the {provider_id} console: {console_url}",
        ],
        examples=[f"export {env_var}=your_api_key"],
    )


def provider_rate_limit_error(provider_id: str, cause: BaseException) -> ApiError:
    return ApiError(
        f"Rate limit exceeded: {cause}",
        provider_id=provider_id,
        cause=cause,
        suggestions=[
            "Wait before sending additional requests",
            f"Reduce the frequency of requests to the {provider_id} API",
            "Consider using a different model with higher rate limits",
        ],
    )


def provider_token_limit_error(provider_id: str, cause: BaseException) -> ApiError:
    return ApiError(
        f"Token limit exceeded: {cause}",
        provider_id=provider_id,
        cause=cause,
        suggestions=[
            "Use a shorter prompt or fewer context documents",
            f"Try a different {provider_id} model with a larger context window",
        ],
    )


def provider_content_policy_error(provider_id: str, cause: BaseException) -> ApiError:
    return ApiError(
        f"Content policy violation: {cause}",
        provider_id=provider_id,
        cause=cause,
        suggestions=[
            "Review and modify content that may violate provider policies",
            f"Check {provider_id}'s content policy guidelines",
        ],
    )


def provider_auth_error(provider_id: str, cause: BaseException) -> ApiError:
    env_var = credential_env_var(provider_id)
    return ApiError(
        f"Authentication failed for {provider_id}: {cause}",
        provider_id=provider_id,
        cause=cause,
        suggestions=[
            f"Check that {env_var} contains a valid, unexpired key",
        ],
        examples=[f"export {env_var}=your_new_api_key"],
    )


def provider_model_not_found_error(
    provider_id: str, model_id: str, cause: BaseException | None = None
) -> ApiError:
    return ApiError(
        f"Model '{model_id}' not found for {provider_id} provider",
        provider_id=provider_id,
        cause=cause,
        suggestions=[
            f"Verify the model ID is correct and supported by {provider_id}",
            f"Try using a different model from {provider_id}",
        ],
    )


def provider_network_error(provider_id: str, cause: BaseException) -> NetworkError:
    return NetworkError(
        f"Network error connecting to {provider_id} API: {cause}",
        cause=cause,
        suggestions=[
            "Check your internet connection",
            "Verify you can access the API endpoint",
            "Try again later or use a different provider",
        ],
    )


def provider_unknown_error(provider_id: str, cause: BaseException | None = None) -> ApiError:
    return ApiError(
        f"Unknown error occurred while generating text from {provider_id}",
        provider_id=provider_id,
        cause=cause,
        suggestions=[
            "Try with a simpler prompt or different model",
            f"Check {provider_id} status for service disruptions",
        ],
    )
