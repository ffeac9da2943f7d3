"""
Pytest configuration and fixtures for llmfanout tests.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import structlog

from llmfanout.core.config import FanoutConfig, LoggingConfig, set_config
from llmfanout.core.credentials import StaticCredentialStore
from llmfanout.core.types import AppConfig, LLMResponse, SystemPrompt
from llmfanout.providers.base import BaseProvider
from llmfanout.providers.registry import ProviderRegistry

# =============================================================================
# Fake Providers
# =============================================================================


class FakeProvider(BaseProvider):
    """
    Provider double with scripted behaviour.

    Args:
        provider_id: Identifier the provider registers under
        text: Text returned on success
        delay: Seconds to sleep before answering
        error: Exception raised instead of answering
        thinking_models: Model ids that accept a thinking budget
    """

    def __init__(
        self,
        provider_id: str = "fake",
        text: str = "fake response",
        delay: float = 0.0,
        error: Exception | None = None,
        thinking_models: tuple[str, ...] = (),
        response: LLMResponse | None = None,
    ):
        super().__init__()
        self._provider_id = provider_id
        self.text = text
        self.delay = delay
        self.error = error
        self.thinking_models = thinking_models
        self.response = response
        self.calls: list[dict[str, Any]] = []
        self.finished = asyncio.Event()

    @property
    def provider_id(self) -> str:
        return self._provider_id

    def supports_thinking(self, model_id: str) -> bool:
        return model_id in self.thinking_models

    async def generate(
        self,
        prompt: str,
        model_id: str,
        options: dict[str, Any] | None = None,
        system_prompt: SystemPrompt | None = None,
    ) -> LLMResponse:
        self.calls.append(
            {
                "prompt": prompt,
                "model_id": model_id,
                "options": options,
                "system_prompt": system_prompt,
            }
        )
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            if self.response is not None:
                return self.response
            return LLMResponse(
                provider=self.provider_id,
                model_id=model_id,
                text=f"{self.text} from {model_id}",
                metadata={"usage": {"output_tokens": 3}},
            )
        finally:
            self.finished.set()


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def app_config() -> AppConfig:
    """Models and groups used across tests."""
    return AppConfig.from_dict(
        {
            "models": [
                {"provider": "openai", "modelId": "gpt-4o", "enabled": True},
                {"provider": "anthropic", "modelId": "claude-3-7-sonnet-20250219"},
                {"provider": "openai", "modelId": "gpt-3.5-turbo", "enabled": False},
                {
                    "provider": "openrouter",
                    "modelId": "google/gemini-pro",
                    "systemPrompt": "You are Gemini.",
                },
            ],
            "groups": {
                "default": {"systemPrompt": {"text": "You are a helpful assistant."}, "models": []},
                "coding": {
                    "systemPrompt": {"text": "You are a senior engineer."},
                    "models": [
                        {"provider": "anthropic", "modelId": "claude-3-7-sonnet-20250219"},
                        {"provider": "openai", "modelId": "gpt-3.5-turbo", "enabled": False},
                    ],
                },
                "chat": {
                    "systemPrompt": "Be friendly.",
                    "models": [{"provider": "openai", "modelId": "gpt-4o"}],
                },
            },
        }
    )


@pytest.fixture
def all_credentials() -> StaticCredentialStore:
    return StaticCredentialStore({"openai", "anthropic", "openrouter"})


@pytest.fixture
def no_credentials() -> StaticCredentialStore:
    return StaticCredentialStore()


@pytest.fixture
def fake_registry() -> ProviderRegistry:
    """Registry with instant fake providers for every configured provider id."""
    return ProviderRegistry(
        providers={
            "openai": FakeProvider("openai"),
            "anthropic": FakeProvider("anthropic", thinking_models=("claude-3-7-sonnet-20250219",)),
            "openrouter": FakeProvider("openrouter"),
        }
    )


@pytest.fixture
def settings(tmp_path) -> FanoutConfig:
    return FanoutConfig(
        output_dir=str(tmp_path / "out"),
        default_timeout_ms=5_000,
        logging=LoggingConfig(level="WARNING"),
    )


@pytest.fixture(autouse=True)
def reset_global_config():
    """Reset the cached global settings around each test."""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture(autouse=True)
def restore_structlog_config():
    """Restore structlog's global config after tests that reconfigure it (e.g. CLI runs)."""
    saved = structlog.get_config()
    yield
    structlog.configure(**saved)


@pytest.fixture
def make_provider() -> type[FakeProvider]:
    """The FakeProvider class, for tests that script their own behaviour."""
    return FakeProvider
