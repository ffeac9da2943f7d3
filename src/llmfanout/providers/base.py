"""
Abstract base class for all LLM providers.

Defines the ``generate`` contract the query executor relies on and the
shared mapping from SDK/HTTP failures onto the error taxonomy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from llmfanout.core.types import LLMResponse, SystemPrompt
from llmfanout.utils.classify import (
    is_auth_error,
    is_content_policy_error,
    is_network_error,
    is_rate_limit_error,
    is_token_limit_error,
)
from llmfanout.utils.errors import (
    ApiError,
    FanoutError,
    provider_auth_error,
    provider_content_policy_error,
    provider_model_not_found_error,
    provider_network_error,
    provider_rate_limit_error,
    provider_token_limit_error,
    provider_unknown_error,
)

# camelCase option names accepted from configuration files
_OPTION_ALIASES = {
    "maxTokens": "max_tokens",
    "topP": "top_p",
    "topK": "top_k",
    "stopSequences": "stop_sequences",
}


class BaseProvider(ABC):
    """
    Abstract base class for LLM providers.

    All provider implementations must inherit from this class and
    implement ``provider_id`` and ``generate``.

    Example implementation:
        class MyProvider(BaseProvider):
            @property
            def provider_id(self) -> str:
                return "my_provider"

            async def generate(self, prompt, model_id, options=None, system_prompt=None):
                return LLMResponse(provider="my_provider", model_id=model_id, text="...")
    """

    console_url: str = ""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: int = 120,
    ):
        """
        Initialize the provider.

        Args:
            api_key: API key for authentication
            base_url: Optional custom base URL for API
            timeout: Transport-level request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """
        Provider identifier.

        Returns:
            Identifier used in model keys (e.g., "anthropic", "openai")
        """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        model_id: str,
        options: dict[str, Any] | None = None,
        system_prompt: SystemPrompt | None = None,
    ) -> LLMResponse:
        """
        Generate a completion for a single prompt.

        Args:
            prompt: Prompt text, already combined with any context documents
            model_id: Provider-specific model identifier
            options: Tuning parameters (temperature, max_tokens, thinking, ...)
            system_prompt: Optional system prompt

        Returns:
            LLMResponse with generated text and metadata

        Raises:
            FanoutError: Classified provider failure
        """

    def supports_thinking(self, model_id: str) -> bool:
        """Whether ``model_id`` accepts an extended reasoning budget."""
        return False

    async def close(self) -> None:
        """Release any client resources."""

    @staticmethod
    def normalize_options(options: dict[str, Any] | None) -> dict[str, Any]:
        """Copy options with camelCase aliases mapped to snake_case names."""
        return {_OPTION_ALIASES.get(k, k): v for k, v in (options or {}).items()}

    def map_error(
        self,
        error: Exception,
        model_id: str,
        status_code: int | None = None,
    ) -> FanoutError:
        """
        Translate an SDK or transport failure into the error taxonomy.

        Status codes win over message inspection when available.
        """
        if isinstance(error, FanoutError):
            return error
        message = str(error)
        provider = self.provider_id

        if status_code in (401, 403) or is_auth_error(message):
            return provider_auth_error(provider, error)
        if status_code == 429 or is_rate_limit_error(message):
            return provider_rate_limit_error(provider, error)
        if status_code == 404:
            return provider_model_not_found_error(provider, model_id, error)
        if is_token_limit_error(message):
            return provider_token_limit_error(provider, error)
        if is_content_policy_error(message):
            return provider_content_policy_error(provider, error)
        if status_code is None and is_network_error(message):
            return provider_network_error(provider, error)
        if status_code is not None:
            return ApiError(
                f"{provider} API error ({status_code}): {message}",
                provider_id=provider,
                cause=error,
            )
        return provider_unknown_error(provider, error)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider_id={self.provider_id!r})"
