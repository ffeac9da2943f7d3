"""
OpenRouter provider implementation.

OpenRouter exposes an OpenAI-compatible chat completions endpoint in
front of many vendors; model ids look like ``google/gemini-pro``.
Requests go over plain HTTP with httpx.
"""

from __future__ import annotations

import os
import time
from typing import Any

import httpx

from llmfanout.core.types import LLMResponse, SystemPrompt
from llmfanout.providers.base import BaseProvider
from llmfanout.utils.errors import (
    FanoutError,
    provider_api_key_missing_error,
    provider_network_error,
)
from llmfanout.utils.logging import ProviderLogger

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
APP_REFERER = "https://github.com/llmfanout/llmfanout"
APP_TITLE = "llmfanout"


class OpenRouterProvider(BaseProvider):
    """
    OpenRouter provider.

    Example:
        provider = OpenRouterProvider()
        response = await provider.generate("Hello!", "google/gemini-pro")
        print(response.text)
    """

    console_url = "https://openrouter.ai/keys"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: int = 600,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize OpenRouter provider.

        Args:
            api_key: OpenRouter API key (or use OPENROUTER_API_KEY env var)
            base_url: API base URL (defaults to the public endpoint)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(
            api_key=api_key,
            base_url=base_url or OPENROUTER_BASE_URL,
            timeout=timeout,
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.logger = ProviderLogger(self.provider_id)

    @property
    def provider_id(self) -> str:
        return "openrouter"

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            api_key = self.api_key or os.getenv("OPENROUTER_API_KEY")
            if not api_key:
                raise provider_api_key_missing_error(self.provider_id, self.console_url)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "HTTP-Referer": APP_REFERER,
                    "X-Title": APP_TITLE,
                },
            )
        return self._client

    def build_payload(
        self,
        prompt: str,
        model_id: str,
        options: dict[str, Any] | None = None,
        system_prompt: SystemPrompt | None = None,
    ) -> dict[str, Any]:
        opts = self.normalize_options(options)
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
        """Execute a single chat completion through OpenRouter."""
        payload = self.build_payload(prompt, model_id, options, system_prompt)
        client = self._get_client()
        self.logger.log_request(model_id, len(prompt))

        start_time = time.time()
        try:
            response = await client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except FanoutError:
            raise
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            self.logger.log_error(e, model=model_id)
            raise provider_network_error(self.provider_id, e) from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            self.logger.log_error(e, model=model_id, status_code=status_code)
            raise self.map_error(
                _status_error(e), model_id, status_code=status_code
            ) from e
        except Exception as e:
            self.logger.log_error(e, model=model_id)
            raise self.map_error(e, model_id) from e

        # OpenRouter reports upstream failures inside a 200 body
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            failure = RuntimeError(message)
            self.logger.log_error(failure, model=model_id, code=code)
            raise self.map_error(
                failure, model_id, status_code=code if isinstance(code, int) else None
            )

        latency_ms = (time.time() - start_time) * 1000
        self.logger.log_response(model_id, latency_ms)

        choices = data.get("choices") or []
        first = choices[0] if choices else {}
        text = (first.get("message") or {}).get("content") or ""
        metadata: dict[str, Any] = {
            "id": data.get("id"),
            "model": data.get("model", model_id),
            "finish_reason": first.get("finish_reason"),
            "response_time_ms": round(latency_ms, 2),
        }
        if data.get("usage"):
            metadata["usage"] = data["usage"]

        return LLMResponse(
            provider=self.provider_id,
            model_id=model_id,
            text=text,
            metadata=metadata,
        )

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _status_error(error: httpx.HTTPStatusError) -> Exception:
    """Prefer the API's own error message over httpx's generic text."""
    try:
        body = error.response.json()
    except ValueError:
        return error
    detail = body.get("error") if isinstance(body, dict) else None
    if isinstance(detail, dict) and detail.get("message"):
        return RuntimeError(detail["message"])
    return error
