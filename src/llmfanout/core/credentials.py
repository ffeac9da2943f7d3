"""
Credential presence checks.

The selector asks a ``CredentialStore`` whether a provider has a
credential instead of reading the environment itself, so tests can
inject a fake.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Protocol

from dotenv import dotenv_values

from llmfanout.core.types import ModelConfig
from llmfanout.utils.errors import credential_env_var


class CredentialStore(Protocol):
    """Answers whether a model's provider has a usable credential."""

    def has_credential(self, provider_id: str, env_var: str | None = None) -> bool: ...


class EnvCredentialStore:
    """
    Credential lookup backed by environment variables.

    Uses the ``<PROVIDER>_API_KEY`` convention unless an explicit variable
    name is given. Values from an optional ``.env`` file are consulted
    after the process environment.

    Example:
        store = EnvCredentialStore()
        store.has_credential("openai")  # True if OPENAI_API_KEY is set
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        dotenv_path: str | None = None,
    ):
        self._environ = environ if environ is not None else os.environ
        self._dotenv: dict[str, str | None] = dict(dotenv_values(dotenv_path)) if dotenv_path else {}

    def get(self, provider_id: str, env_var: str | None = None) -> str | None:
        name = env_var or credential_env_var(provider_id)
        value = self._environ.get(name) or self._dotenv.get(name)
        return value or None

    def has_credential(self, provider_id: str, env_var: str | None = None) -> bool:
        return self.get(provider_id, env_var) is not None


class StaticCredentialStore:
    """Credential store over a fixed set of provider ids."""

    def __init__(self, providers: set[str] | frozenset[str] | None = None):
        self.providers = set(providers or ())

    def has_credential(self, provider_id: str, env_var: str | None = None) -> bool:
        return provider_id in self.providers


def models_missing_credentials(
    models: list[ModelConfig],
    store: CredentialStore,
) -> list[ModelConfig]:
    """Models whose provider credential is absent, in input order."""
    return [m for m in models if not store.has_credential(m.provider, m.api_key_env_var)]
