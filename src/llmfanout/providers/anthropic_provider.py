"""
Anthropic Claude provider implementation.

Supports the Messages API with system prompts and the extended
reasoning ("thinking") budget on Claude 3.7+ family models.
"""

from __future__ import annotations

import os
import time
from typing import Any

from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic

from llmfanout.core.types import LLMResponse, SystemPrompt
from llmfanout.providers.base import BaseProvider
from llmfanout.utils.errors import (
    FanoutError,
    provider_api_key_missing_error,
    provider_network_error,
)
from llmfanout.utils.logging import ProviderLogger

# Model id fragments that accept a thinking budget
THINKING_MODEL_MARKERS = ("claude-3", "claude-sonnet-4", "claude-opus-4")

DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7


class AnthropicProvider(BaseProvider):
    """
    Anthropic Claude provider.

    The SDK client is created on first use so that listing or selecting
    models never requires a credential.

    Example:
        provider = AnthropicProvider()
        response = await provider.generate(
            "Hello!",
            "claude-3-7-sonnet-20250219",
            system_prompt=SystemPrompt("You are a helpful assistant."),
        )
        print(response.text)
    """

    console_url = "https://console.anthropic.com/settings/keys"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: int = 600,
    ):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key (or use ANTHROPIC_API_KEY env var)
            base_url: Optional custom API base URL
            timeout: Transport-level request timeout in seconds
        """
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout)
        self._client: AsyncAnthropic | None = None
        self.logger = ProviderLogger(self.provider_id)

    @property
    def provider_id(self) -> str:
        return "anthropic"

    def supports_thinking(self, model_id: str) -> bool:
        return any(marker in model_id for marker in THINKING_MODEL_MARKERS)

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            api_key = self.api_key or os.getenv("ANTHROPIC_API_KEY")
            if not api_key:
                raise provider_api_key_missing_error(self.provider_id, self.console_url)
            # max_retries=0: a failed request is reported once
            self._client = AsyncAnthropic(
                api_key=api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    def build_request(
        self,
        prompt: str,
        model_id: str,
        options: dict[str, Any] | None = None,
        system_prompt: SystemPrompt | None = None,
    ) -> dict[str, Any]:
        """Translate generic options into Messages API parameters."""
        opts = self.normalize_options(options)
        request: dict[str, Any] = {
            "model": model_id,
            "max_tokens": opts.pop("max_tokens", DEFAULT_MAX_TOKENS),
            "temperature": opts.pop("temperature", DEFAULT_TEMPERATURE),
            "messages": [{"role": "user", "content": prompt}],
        }
        thinking = opts.pop("thinking", None)
        request.update(opts)
        if system_prompt is not None and system_prompt.text:
            request["system"] = system_prompt.text

        if isinstance(thinking, dict) and thinking.get("type") == "enabled":
            # Thinking requires temperature 1 and room beyond the budget
            request["thinking"] = thinking
            request["temperature"] = 1
            budget = int(thinking.get("budget_tokens", 0))
            if request["max_tokens"] <= budget:
                request["max_tokens"] = budget + DEFAULT_MAX_TOKENS
            request.pop("top_p", None)
            request.pop("top_k", None)
        return request

    async def generate(
        self,
        prompt: str,
        model_id: str,
        options: dict[str, Any] | None = None,
        system_prompt: SystemPrompt | None = None,
    ) -> LLMResponse:
        """Execute a single Claude completion."""
        request = self.build_request(prompt, model_id, options, system_prompt)
        client = self._get_client()
        self.logger.log_request(model_id, len(prompt), thinking="thinking" in request)

        start_time = time.time()
        try:
            response = await client.messages.create(**request)
        except FanoutError:
            raise
        except APIStatusError as e:
            self.logger.log_error(e, model=model_id, status_code=e.status_code)
            raise self.map_error(e, model_id, status_code=e.status_code) from e
        except APIConnectionError as e:
            self.logger.log_error(e, model=model_id)
            raise provider_network_error(self.provider_id, e) from e
        except Exception as e:
            self.logger.log_error(e, model=model_id)
            raise self.map_error(e, model_id) from e

        latency_ms = (time.time() - start_time) * 1000
        self.logger.log_response(model_id, latency_ms)

        text_parts: list[str] = []
        thinking_parts: list[str] = []
        for block in response.content or []:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_parts.append(block.text)
            elif block_type == "thinking":
                thinking_parts.append(getattr(block, "thinking", ""))

        metadata: dict[str, Any] = {
            "id": response.id,
            "model": response.model,
            "stop_reason": response.stop_reason,
            "response_time_ms": round(latency_ms, 2),
        }
        if response.usage is not None:
            metadata["usage"] = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }
        if thinking_parts:
            metadata["thinking"] = "\n".join(thinking_parts)

        return LLMResponse(
            provider=self.provider_id,
            model_id=model_id,
            text="\n".join(text_parts),
            metadata=metadata,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
