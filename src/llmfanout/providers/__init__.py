"""LLM provider implementations.

Concrete providers are imported from their own modules
(``llmfanout.providers.anthropic_provider`` and friends) so the SDKs load
only when a provider is actually used.
"""

from llmfanout.providers.base import BaseProvider
from llmfanout.providers.registry import (
    ProviderFactory,
    ProviderRegistry,
    create_default_registry,
)

__all__ = [
    # Base
    "BaseProvider",
    # Registry
    "ProviderFactory",
    "ProviderRegistry",
    "create_default_registry",
]
