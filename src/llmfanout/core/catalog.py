"""
Read-only lookups over an AppConfig.

Shared by the selector, the executor (group lookup for system prompts)
and the CLI model listing.
"""

from __future__ import annotations

from dataclasses import dataclass

from llmfanout.core.types import AppConfig, ModelConfig, SystemPrompt

DEFAULT_GROUP_NAME = "default"
DEFAULT_GROUP_PROMPT = "You are a helpful assistant."


@dataclass
class GroupMembership:
    """Group a model belongs to, as seen by the executor."""

    group_name: str
    system_prompt: SystemPrompt


def find_model(config: AppConfig, provider: str, model_id: str) -> ModelConfig | None:
    """First top-level model matching ``provider`` and ``model_id``."""
    for model in config.models:
        if model.provider == provider and model.model_id == model_id:
            return model
    return None


def enabled_models(config: AppConfig) -> list[ModelConfig]:
    return [model for model in config.models if model.enabled]


def available_model_keys(config: AppConfig) -> list[str]:
    """Keys of enabled models, used for suggestions and examples."""
    return [model.key for model in enabled_models(config)]


def available_providers(config: AppConfig) -> list[str]:
    return list(dict.fromkeys(model.provider for model in config.models))


def group_models(
    config: AppConfig,
    group_name: str,
    include_disabled: bool = False,
) -> list[ModelConfig]:
    """
    Models listed in ``group_name``, in group order.

    Returns an empty list for an unknown group; callers that need to
    distinguish that case check ``config.groups`` first.
    """
    group = config.groups.get(group_name)
    if group is None:
        return []
    return [model for model in group.models if include_disabled or model.enabled]


def models_in_groups(
    config: AppConfig,
    group_names: list[str],
    include_disabled: bool = False,
) -> list[ModelConfig]:
    """Union of the models of several groups, first occurrence of each key wins."""
    seen: dict[str, ModelConfig] = {}
    for name in group_names:
        for model in group_models(config, name, include_disabled):
            seen.setdefault(model.key, model)
    return list(seen.values())


def find_group_for(config: AppConfig, model: ModelConfig) -> GroupMembership | None:
    """
    Group lookup used to resolve a model's system prompt.

    A model belongs to the first group that lists it. A model that only
    appears in the top-level ``models`` list belongs to the ``default``
    group, whose prompt comes from ``groups["default"]`` when configured.
    """
    for name, group in config.groups.items():
        if any(member.matches(model) for member in group.models):
            return GroupMembership(group_name=name, system_prompt=group.system_prompt)

    if any(candidate.matches(model) for candidate in config.models):
        default_group = config.groups.get(DEFAULT_GROUP_NAME)
        prompt = (
            default_group.system_prompt
            if default_group is not None
            else SystemPrompt(text=DEFAULT_GROUP_PROMPT)
        )
        return GroupMembership(group_name=DEFAULT_GROUP_NAME, system_prompt=prompt)

    return None
