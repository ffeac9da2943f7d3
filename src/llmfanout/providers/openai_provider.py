"""
OpenAI provider implementation.

Uses the Chat Completions API of the official async SDK.
"""

from __future__ import annotations

import os
import time
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from llmfanout.core.types import LLMResponse, SystemPrompt
from llmfanout.providers.base import BaseProvider
from llmfanout.utils.errors import (
    FanoutError,
    provider_api_key_missing_error,
    provider_network_error,
)
from llmfanout.utils.logging import ProviderLogger


class OpenAIProvider(BaseProvider):
    """
    OpenAI GPT provider.

    Example:
        provider = OpenAIProvider()
        response = await provider.generate("Hello!", "gpt-4o")
        print(response.text)
    """

    console_url = "https://platform.openai.com/api-keys"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: int = 600,
        organization: str | None = None,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key (or use OPENAI_API_KEY env var)
            base_url: Optional custom API base URL
            timeout: Transport-level request timeout in seconds
            organization: Optional organization ID
        """
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout)
        self.organization = organization or os.getenv("OPENAI_ORG_ID")
        self._client: AsyncOpenAI | None = None
        self.logger = ProviderLogger(self.provider_id)

    @property
    def provider_id(self) -> str:
        return "openai"

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self.api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise provider_api_key_missing_error(self.provider_id, self.console_url)
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.base_url,
                organization=self.organization,
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
        """Chat Completions parameters for one prompt."""
        opts = self.normalize_options(options)
        # thinking budgets are an Anthropic concept
        opts.pop("thinking", None)
        if "stop_sequences" in opts:
            opts["stop"] = opts.pop("stop_sequences")

        messages: list[dict[str, str]] = []
        if system_prompt is not None and system_prompt.text:
            messages.append({"role": "system", "content": system_prompt.text})
        messages.append({"role": "user", "content": prompt})
        return {"model": model_id, "messages": messages, **opts}

    async def generate(
        self,
        prompt: str,
        model_id: str,
        options: dict[str, Any] | None = None,
        system_prompt: SystemPrompt | None = None,
    ) -> LLMResponse:
        """Execute a single chat completion."""
        request = self.build_request(prompt, model_id, options, system_prompt)
        client = self._get_client()
        self.logger.log_request(model_id, len(prompt))

        start_time = time.time()
        try:
            response = await client.chat.completions.create(**request)
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

        choice = response.choices[0] if response.choices else None
        text = (choice.message.content or "") if choice is not None else ""
        metadata: dict[str, Any] = {
            "id": response.id,
            "model": response.model,
            "finish_reason": choice.finish_reason if choice is not None else None,
            "response_time_ms": round(latency_ms, 2),
        }
        if response.usage is not None:
            metadata["usage"] = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            provider=self.provider_id,
            model_id=model_id,
            text=text,
            metadata=metadata,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
