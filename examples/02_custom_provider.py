#!/usr/bin/env python
"""
Custom Provider Example.

This example shows how to plug a provider into the engine directly:
- Implementing BaseProvider
- Registering it with a ProviderRegistry
- Running QueryExecutor against an in-memory AppConfig

No API keys are needed.

Run:
    python examples/02_custom_provider.py
"""

import asyncio

from llmfanout.core import (
    AppConfig,
    ModelConfig,
    QueryExecutor,
    QueryOptions,
    SystemPrompt,
)
from llmfanout.core.types import LLMResponse
from llmfanout.providers import BaseProvider, ProviderRegistry


class EchoProvider(BaseProvider):
    """Answers with the prompt it received, after a configurable delay."""

    def __init__(self, delay: float = 0.0):
        super().__init__()
        self.delay = delay

    @property
    def provider_id(self) -> str:
        return "echo"

    async def generate(self, prompt, model_id, options=None, system_prompt=None):
        await asyncio.sleep(self.delay)
        system = system_prompt.text if system_prompt else "-"
        return LLMResponse(
            provider=self.provider_id,
            model_id=model_id,
            text=f"[{model_id} | {system}] {prompt}",
        )


async def main() -> None:
    print("=" * 60)
    print("Custom Provider Example")
    print("=" * 60)

    registry = ProviderRegistry()
    registry.register(EchoProvider(delay=0.1))

    config = AppConfig(
        models=[
            ModelConfig(provider="echo", model_id="fast"),
            ModelConfig(
                provider="echo",
                model_id="polite",
                system_prompt=SystemPrompt("Always say please."),
            ),
        ]
    )

    executor = QueryExecutor(registry)
    result = await executor.execute(
        config,
        config.models,
        QueryOptions(prompt="Hello", system_prompt="You are terse.", timeout_ms=1000),
    )

    for response in result.responses:
        print(f"{response.config_key}: {response.text}")
    print(f"Finished in {result.timing.duration_ms}ms")


if __name__ == "__main__":
    asyncio.run(main())
