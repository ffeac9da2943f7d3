"""
Provider registry.

Maps provider identifiers (the part of a model key before the colon) to
provider instances. Built-in providers are registered as classes and
instantiated on first lookup.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from llmfanout.providers.base import BaseProvider
from llmfanout.utils.logging import get_logger

logger = get_logger(__name__)

ProviderFactory = Callable[[], BaseProvider]


def _builtin_factories() -> dict[str, ProviderFactory]:
    """Built-in providers, imported lazily to keep SDK imports off the CLI fast path."""
    from llmfanout.providers.anthropic_provider import AnthropicProvider
    from llmfanout.providers.openai_provider import OpenAIProvider
    from llmfanout.providers.openrouter import OpenRouterProvider

    return {
        "anthropic": AnthropicProvider,
        "openai": OpenAIProvider,
        "openrouter": OpenRouterProvider,
    }


class ProviderRegistry:
    """
    Registry of providers keyed by provider id.

    Example:
        registry = ProviderRegistry()
        registry.register(MyProvider())
        provider = registry.lookup("my_provider")
    """

    def __init__(
        self,
        providers: Mapping[str, BaseProvider] | None = None,
        factories: Mapping[str, ProviderFactory] | None = None,
    ):
        self._instances: dict[str, BaseProvider] = dict(providers or {})
        self._factories: dict[str, ProviderFactory] = dict(factories or {})

    def register(self, provider: BaseProvider, provider_id: str | None = None) -> None:
        """
        Register a provider instance.

        Args:
            provider: Provider instance (must inherit from BaseProvider)
            provider_id: Id to register under (defaults to provider.provider_id)
        """
        if not isinstance(provider, BaseProvider):
            raise TypeError(f"{provider!r} must inherit from BaseProvider")
        self._instances[provider_id or provider.provider_id] = provider

    def register_factory(self, provider_id: str, factory: ProviderFactory) -> None:
        """Register a zero-argument callable that builds the provider on first lookup."""
        self._factories[provider_id] = factory
        self._instances.pop(provider_id, None)

    def lookup(self, provider_id: str) -> BaseProvider | None:
        """Provider registered under ``provider_id``, or None."""
        provider = self._instances.get(provider_id)
        if provider is not None:
            return provider
        factory = self._factories.get(provider_id)
        if factory is None:
            return None
        provider = factory()
        self._instances[provider_id] = provider
        logger.debug("Provider instantiated", provider=provider_id)
        return provider

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._instances or provider_id in self._factories

    def list_providers(self) -> list[str]:
        return list(dict.fromkeys([*self._instances, *self._factories]))

    async def close(self) -> None:
        """Close every instantiated provider."""
        for provider in self._instances.values():
            await provider.close()


def create_default_registry() -> ProviderRegistry:
    """Registry with the built-in providers."""
    return ProviderRegistry(factories=_builtin_factories())
