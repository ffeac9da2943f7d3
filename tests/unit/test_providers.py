"""
Unit tests for the Provider Registry and Provider implementations.

Tests provider functionality including:
- Registry registration and lazy instantiation
- Error mapping onto the error taxonomy
- Request building and thinking options
- Response parsing with mocked SDK clients and HTTP transports
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from llmfanout.core.types import LLMResponse, SystemPrompt
from llmfanout.providers.anthropic_provider import AnthropicProvider
from llmfanout.providers.base import BaseProvider
from llmfanout.providers.openai_provider import OpenAIProvider
from llmfanout.providers.openrouter import OpenRouterProvider
from llmfanout.providers.registry import ProviderRegistry, create_default_registry
from llmfanout.utils.errors import ApiError, ErrorCategory, NetworkError

# =============================================================================
# Fixtures
# =============================================================================


class EchoProvider(BaseProvider):
    """Minimal concrete provider."""

    @property
    def provider_id(self) -> str:
        return "echo"

    async def generate(self, prompt, model_id, options=None, system_prompt=None):
        return LLMResponse(provider="echo", model_id=model_id, text=prompt)


def anthropic_message(text: str = "Hello", thinking: str | None = None) -> SimpleNamespace:
    content = []
    if thinking:
        content.append(SimpleNamespace(type="thinking", thinking=thinking))
    content.append(SimpleNamespace(type="text", text=text))
    return SimpleNamespace(
        id="msg_1",
        model="claude-3-7-sonnet-20250219",
        stop_reason="end_turn",
        content=content,
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


def status_response(status: int, url: str = "https://api.anthropic.com/v1/messages") -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", url))


# =============================================================================
# Registry Tests
# =============================================================================


class TestProviderRegistry:
    """Tests for the provider registry."""

    def test_register_and_lookup(self) -> None:
        registry = ProviderRegistry()
        provider = EchoProvider()

        registry.register(provider)

        assert registry.lookup("echo") is provider
        assert "echo" in registry
        assert registry.list_providers() == ["echo"]

    def test_register_under_alias(self) -> None:
        registry = ProviderRegistry()
        registry.register(EchoProvider(), provider_id="alias")

        assert registry.lookup("alias") is not None
        assert registry.lookup("echo") is None

    def test_register_rejects_non_provider(self) -> None:
        with pytest.raises(TypeError):
            ProviderRegistry().register(object())

    def test_factory_instantiated_once(self) -> None:
        """Test that factories run lazily and only once."""
        factory = MagicMock(side_effect=EchoProvider)
        registry = ProviderRegistry(factories={"echo": factory})

        assert "echo" in registry
        factory.assert_not_called()
        first = registry.lookup("echo")
        second = registry.lookup("echo")

        assert first is second
        factory.assert_called_once()

    def test_unknown_provider(self) -> None:
        assert ProviderRegistry().lookup("nope") is None

    def test_default_registry(self) -> None:
        registry = create_default_registry()

        assert registry.list_providers() == ["anthropic", "openai", "openrouter"]
        assert isinstance(registry.lookup("anthropic"), AnthropicProvider)

    @pytest.mark.asyncio
    async def test_close_closes_instances(self) -> None:
        provider = EchoProvider()
        provider.close = AsyncMock()
        registry = ProviderRegistry(providers={"echo": provider})

        await registry.close()

        provider.close.assert_awaited_once()


# =============================================================================
# Error Mapping Tests
# =============================================================================


class TestMapError:
    """Tests for BaseProvider.map_error."""

    @pytest.fixture
    def provider(self) -> EchoProvider:
        return EchoProvider()

    def test_auth_status(self, provider) -> None:
        error = provider.map_error(RuntimeError("denied"), "m", status_code=401)

        assert isinstance(error, ApiError)
        assert error.message.startswith("Authentication failed for echo")

    def test_rate_limit_status(self, provider) -> None:
        error = provider.map_error(RuntimeError("slow down"), "m", status_code=429)

        assert error.message == "Rate limit exceeded: slow down"

    def test_model_not_found_status(self, provider) -> None:
        cause = RuntimeError("no such model")
        error = provider.map_error(cause, "gpt-9", status_code=404)

        assert error.message == "Model 'gpt-9' not found for echo provider"
        assert error.cause is cause

    def test_token_limit_message(self, provider) -> None:
        error = provider.map_error(
            RuntimeError("This model's maximum context length is 8192"), "m", status_code=400
        )

        assert error.message.startswith("Token limit exceeded")

    def test_content_policy_message(self, provider) -> None:
        error = provider.map_error(RuntimeError("flagged by content policy"), "m")

        assert error.message.startswith("Content policy violation")

    def test_network_message(self, provider) -> None:
        error = provider.map_error(RuntimeError("connection reset"), "m")

        assert isinstance(error, NetworkError)

    def test_other_status(self, provider) -> None:
        error = provider.map_error(RuntimeError("overloaded"), "m", status_code=529)

        assert error.message == "echo API error (529): overloaded"
        assert error.provider_id == "echo"

    def test_unknown(self, provider) -> None:
        error = provider.map_error(RuntimeError("???"), "m")

        assert error.message == "Unknown error occurred while generating text from echo"

    def test_classified_passes_through(self, provider) -> None:
        original = ApiError("already classified")

        assert provider.map_error(original, "m", status_code=500) is original

    def test_normalize_options(self) -> None:
        assert BaseProvider.normalize_options({"maxTokens": 5, "temperature": 0.1}) == {
            "max_tokens": 5,
            "temperature": 0.1,
        }


# =============================================================================
# Anthropic Tests
# =============================================================================


class TestAnthropicProvider:
    """Tests for the Anthropic provider."""

    def test_supports_thinking(self) -> None:
        provider = AnthropicProvider(api_key="test")

        assert provider.supports_thinking("claude-3-7-sonnet-20250219")
        assert provider.supports_thinking("claude-sonnet-4-20250514")
        assert not provider.supports_thinking("claude-2.1")

    def test_build_request_defaults(self) -> None:
        request = AnthropicProvider(api_key="test").build_request(
            "Hi", "claude-3-7-sonnet-20250219", system_prompt=SystemPrompt("Be brief.")
        )

        assert request == {
            "model": "claude-3-7-sonnet-20250219",
            "max_tokens": 1000,
            "temperature": 0.7,
            "messages": [{"role": "user", "content": "Hi"}],
            "system": "Be brief.",
        }

    def test_build_request_with_thinking(self) -> None:
        """Test that a thinking budget forces temperature 1 and room for output."""
        request = AnthropicProvider(api_key="test").build_request(
            "Hi",
            "claude-3-7-sonnet-20250219",
            options={
                "maxTokens": 2000,
                "temperature": 0.2,
                "topP": 0.9,
                "thinking": {"type": "enabled", "budget_tokens": 16000},
            },
        )

        assert request["thinking"] == {"type": "enabled", "budget_tokens": 16000}
        assert request["temperature"] == 1
        assert request["max_tokens"] == 17000
        assert "top_p" not in request

    def test_missing_key(self, monkeypatch) -> None:
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with pytest.raises(ApiError, match="ANTHROPIC_API_KEY"):
            AnthropicProvider()._get_client()

    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        """Test response parsing from a mocked client."""
        provider = AnthropicProvider(api_key="test")
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=anthropic_message("Hello", "Let me think"))
        provider._client = client

        response = await provider.generate(
            "Hi", "claude-3-7-sonnet-20250219", system_prompt=SystemPrompt("Be brief.")
        )

        assert response.text == "Hello"
        assert response.provider == "anthropic"
        assert response.metadata["usage"] == {"input_tokens": 10, "output_tokens": 5}
        assert response.metadata["thinking"] == "Let me think"
        assert client.messages.create.await_args.kwargs["system"] == "Be brief."

    @pytest.mark.asyncio
    async def test_generate_status_error(self) -> None:
        """Test that SDK status errors are mapped by status code."""
        provider = AnthropicProvider(api_key="test")
        client = MagicMock()
        client.messages.create = AsyncMock(
            side_effect=anthropic.RateLimitError(
                "rate limited", response=status_response(429), body=None
            )
        )
        provider._client = client

        with pytest.raises(ApiError) as exc_info:
            await provider.generate("Hi", "claude-3-7-sonnet-20250219")

        assert exc_info.value.message.startswith("Rate limit exceeded")
        assert isinstance(exc_info.value.cause, anthropic.RateLimitError)

    @pytest.mark.asyncio
    async def test_generate_connection_error(self) -> None:
        provider = AnthropicProvider(api_key="test")
        client = MagicMock()
        client.messages.create = AsyncMock(
            side_effect=anthropic.APIConnectionError(
                request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
            )
        )
        provider._client = client

        with pytest.raises(NetworkError):
            await provider.generate("Hi", "claude-3-7-sonnet-20250219")


# =============================================================================
# OpenAI Tests
# =============================================================================


class TestOpenAIProvider:
    """Tests for the OpenAI provider."""

    def test_build_request(self) -> None:
        """Test that thinking is dropped and stop sequences are renamed."""
        request = OpenAIProvider(api_key="test").build_request(
            "Hi",
            "gpt-4o",
            options={
                "temperature": 0.3,
                "stopSequences": ["END"],
                "thinking": {"type": "enabled", "budget_tokens": 10},
            },
            system_prompt=SystemPrompt("Be brief."),
        )

        assert request == {
            "model": "gpt-4o",
            "messages": [
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "Hi"},
            ],
            "temperature": 0.3,
            "stop": ["END"],
        }

    def test_no_thinking_support(self) -> None:
        assert not OpenAIProvider(api_key="test").supports_thinking("gpt-4o")

    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        provider = OpenAIProvider(api_key="test")
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                id="chatcmpl-1",
                model="gpt-4o",
                choices=[
                    SimpleNamespace(
                        message=SimpleNamespace(content="Hello there"),
                        finish_reason="stop",
                    )
                ],
                usage=SimpleNamespace(prompt_tokens=3, completion_tokens=2, total_tokens=5),
            )
        )
        provider._client = client

        response = await provider.generate("Hi", "gpt-4o")

        assert response.text == "Hello there"
        assert response.metadata["finish_reason"] == "stop"
        assert response.metadata["usage"]["total_tokens"] == 5

    @pytest.mark.asyncio
    async def test_generate_raw_error(self) -> None:
        provider = OpenAIProvider(api_key="test")
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("Invalid API key"))
        provider._client = client

        with pytest.raises(ApiError) as exc_info:
            await provider.generate("Hi", "gpt-4o")

        assert exc_info.value.message.startswith("Authentication failed for openai")


# =============================================================================
# OpenRouter Tests
# =============================================================================


class TestOpenRouterProvider:
    """Tests for the OpenRouter provider over a mocked HTTP transport."""

    @staticmethod
    def make_provider(handler) -> OpenRouterProvider:
        return OpenRouterProvider(api_key="or-key", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        """Test the request shape and response parsing."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "id": "gen-1",
                    "model": "google/gemini-pro",
                    "choices": [
                        {"message": {"content": "Bonjour"}, "finish_reason": "stop"}
                    ],
                    "usage": {"prompt_tokens": 4, "completion_tokens": 1},
                },
            )

        provider = self.make_provider(handler)
        response = await provider.generate(
            "Hi", "google/gemini-pro", system_prompt=SystemPrompt("Be brief.")
        )
        await provider.close()

        assert response.text == "Bonjour"
        assert response.metadata["usage"] == {"prompt_tokens": 4, "completion_tokens": 1}
        request = seen[0]
        assert request.url.path == "/api/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer or-key"
        assert request.headers["X-Title"] == "llmfanout"
        body = json.loads(request.content)
        assert body["messages"][0] == {"role": "system", "content": "Be brief."}

    @pytest.mark.asyncio
    async def test_status_error_uses_body_message(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": {"message": "Too many requests"}})

        provider = self.make_provider(handler)

        with pytest.raises(ApiError) as exc_info:
            await provider.generate("Hi", "google/gemini-pro")

        assert exc_info.value.message == "Rate limit exceeded: Too many requests"

    @pytest.mark.asyncio
    async def test_error_in_success_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": {"message": "upstream failed", "code": 502}})

        provider = self.make_provider(handler)

        with pytest.raises(ApiError) as exc_info:
            await provider.generate("Hi", "google/gemini-pro")

        assert exc_info.value.message == "openrouter API error (502): upstream failed"

    @pytest.mark.asyncio
    async def test_connect_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = self.make_provider(handler)

        with pytest.raises(NetworkError) as exc_info:
            await provider.generate("Hi", "google/gemini-pro")

        assert exc_info.value.category == ErrorCategory.NETWORK

    def test_missing_key(self, monkeypatch) -> None:
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

        with pytest.raises(ApiError, match="OPENROUTER_API_KEY"):
            OpenRouterProvider()._get_client()
