"""
Core type definitions for llmfanout.

This module contains the Enums and Dataclasses shared by the model
selector, the query executor and their callers.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from llmfanout.utils.errors import ErrorCategory

MODEL_KEY_SEPARATOR = ":"

# =============================================================================
# Enums
# =============================================================================


class QueryStatus(str, Enum):
    """Lifecycle of a single model query."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (QueryStatus.SUCCESS, QueryStatus.ERROR)


class PromptSource(str, Enum):
    """Where the system prompt used for a query came from."""

    CLI_OVERRIDE = "cli-override"
    MODEL_CONFIG = "model-config"
    GROUP_CONFIG = "group-config"
    DEFAULT_FALLBACK = "default-fallback"


# =============================================================================
# Model Identification
# =============================================================================


@dataclass(frozen=True)
class ModelSpec:
    """Provider/model pair; ``key`` is the canonical ``provider:modelId`` form."""

    provider: str
    model_id: str

    @property
    def key(self) -> str:
        return f"{self.provider}{MODEL_KEY_SEPARATOR}{self.model_id}"

    @classmethod
    def parse(cls, model_key: str) -> ModelSpec:
        """
        Parse a ``provider:modelId`` string.

        Raises:
            ValueError: If the key does not contain exactly one separator
                with non-empty text on both sides
        """
        parts = model_key.split(MODEL_KEY_SEPARATOR)
        if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
            raise ValueError(f'Malformed model key "{model_key}"')
        return cls(provider=parts[0].strip(), model_id=parts[1].strip())

    def __str__(self) -> str:
        return self.key


def model_key(provider: str, model_id: str) -> str:
    return f"{provider}{MODEL_KEY_SEPARATOR}{model_id}"


# =============================================================================
# Configuration Types
# =============================================================================


@dataclass
class SystemPrompt:
    """System prompt text plus free-form metadata (e.g. ``source``)."""

    text: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> PromptSource | None:
        value = self.metadata.get("source")
        return PromptSource(value) if value else None

    @classmethod
    def coerce(cls, value: Any) -> SystemPrompt | None:
        """Accept a plain string, a ``{text, metadata}`` mapping or None."""
        if value is None or isinstance(value, SystemPrompt):
            return value
        if isinstance(value, str):
            return cls(text=value)
        if isinstance(value, Mapping) and "text" in value:
            return cls(text=str(value["text"]), metadata=dict(value.get("metadata") or {}))
        raise ValueError(f"Invalid system prompt: {value!r}")

    def with_source(self, source: PromptSource) -> SystemPrompt:
        return SystemPrompt(text=self.text, metadata={**self.metadata, "source": source.value})

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "metadata": dict(self.metadata)}


@dataclass
class ModelConfig:
    """A configured model: identity, eligibility and tuning options."""

    provider: str
    model_id: str
    enabled: bool = True
    options: dict[str, Any] = field(default_factory=dict)
    system_prompt: SystemPrompt | None = None
    api_key_env_var: str | None = None

    @property
    def spec(self) -> ModelSpec:
        return ModelSpec(self.provider, self.model_id)

    @property
    def key(self) -> str:
        return model_key(self.provider, self.model_id)

    def matches(self, other: ModelConfig | ModelSpec) -> bool:
        return self.provider == other.provider and self.model_id == other.model_id

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ModelConfig:
        """Build from a config mapping; camelCase and snake_case keys are accepted."""
        model_id = data.get("model_id", data.get("modelId"))
        if not data.get("provider") or not model_id:
            raise ValueError(f"Model entry requires 'provider' and 'modelId': {dict(data)!r}")
        return cls(
            provider=str(data["provider"]),
            model_id=str(model_id),
            enabled=bool(data.get("enabled", True)),
            options=dict(data.get("options") or {}),
            system_prompt=SystemPrompt.coerce(data.get("system_prompt", data.get("systemPrompt"))),
            api_key_env_var=data.get("api_key_env_var", data.get("apiKeyEnvVar")),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "provider": self.provider,
            "modelId": self.model_id,
            "enabled": self.enabled,
            "options": dict(self.options),
        }
        if self.system_prompt is not None:
            data["systemPrompt"] = self.system_prompt.to_dict()
        if self.api_key_env_var:
            data["apiKeyEnvVar"] = self.api_key_env_var
        return data


@dataclass
class Group:
    """Named bundle of models sharing a default system prompt."""

    name: str
    system_prompt: SystemPrompt
    models: list[ModelConfig] = field(default_factory=list)
    description: str | None = None

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> Group:
        prompt = SystemPrompt.coerce(data.get("system_prompt", data.get("systemPrompt")))
        if prompt is None:
            raise ValueError(f"Group '{name}' requires a systemPrompt")
        return cls(
            name=str(data.get("name", name)),
            system_prompt=prompt,
            models=[ModelConfig.from_dict(m) for m in data.get("models") or []],
            description=data.get("description"),
        )


@dataclass
class AppConfig:
    """
    Models and groups available for a run.

    Treated as read-only by the selector and executor.
    """

    models: list[ModelConfig] = field(default_factory=list)
    groups: dict[str, Group] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> AppConfig:
        data = data or {}
        groups_data = data.get("groups") or {}
        return cls(
            models=[ModelConfig.from_dict(m) for m in data.get("models") or []],
            groups={name: Group.from_dict(name, g or {}) for name, g in groups_data.items()},
        )


# =============================================================================
# Selection Types
# =============================================================================


@dataclass
class SelectionCriteria:
    """
    What to select.

    Precedence: ``models`` > ``specific_model`` > ``group_name`` > ``groups``
    > all configured models. ``group_name`` also filters explicit selections.
    """

    models: list[str] | None = None
    specific_model: str | None = None
    group_name: str | None = None
    groups: list[str] | None = None
    include_disabled: bool = True
    validate_api_keys: bool = True
    throw_on_error: bool = True


@dataclass
class SelectionResult:
    """Outcome of model selection."""

    models: list[ModelConfig] = field(default_factory=list)
    missing_api_key_models: list[ModelConfig] = field(default_factory=list)
    disabled_models: list[ModelConfig] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def model_keys(self) -> list[str]:
        return [m.key for m in self.models]


# =============================================================================
# Query Types
# =============================================================================


@dataclass
class GroupInfo:
    """Group a response was produced under and the prompt actually used."""

    name: str
    system_prompt: SystemPrompt


@dataclass
class ModelQueryStatus:
    """Status of one model's query. Times are epoch milliseconds."""

    status: QueryStatus = QueryStatus.PENDING
    start_time: int | None = None
    end_time: int | None = None
    duration_ms: int | None = None
    message: str | None = None
    detailed_error: BaseException | None = None


StatusCallback = Callable[[str, ModelQueryStatus, dict[str, ModelQueryStatus]], None]


@dataclass
class QueryOptions:
    """Per-run options for the query executor."""

    prompt: str
    system_prompt: str | None = None
    timeout_ms: int | None = None
    enable_thinking: bool = False
    on_status_update: StatusCallback | None = None


@dataclass
class LLMResponse:
    """Result of one provider call; ``text`` is empty on failure."""

    provider: str
    model_id: str
    text: str = ""
    error: str | None = None
    error_category: ErrorCategory | None = None
    error_tip: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    group_info: GroupInfo | None = None
    config_key: str | None = None

    @property
    def key(self) -> str:
        return self.config_key or model_key(self.provider, self.model_id)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "provider": self.provider,
            "model_id": self.model_id,
            "config_key": self.key,
            "text": self.text,
            "error": self.error,
            "error_category": self.error_category.value if self.error_category else None,
            "metadata": self.metadata,
            "group": self.group_info.name if self.group_info else None,
        }


@dataclass
class QueryTiming:
    start_time: int
    end_time: int
    duration_ms: int


@dataclass
class QueryExecutionResult:
    """
    Responses and statuses for every queried model.

    ``responses`` follows input order; ``statuses`` is keyed by model key
    in the same order.
    """

    responses: list[LLMResponse]
    statuses: dict[str, ModelQueryStatus]
    timing: QueryTiming
    combined_content: str | None = None

    @property
    def success_count(self) -> int:
        return sum(1 for s in self.statuses.values() if s.status == QueryStatus.SUCCESS)

    @property
    def failure_count(self) -> int:
        return sum(1 for s in self.statuses.values() if s.status == QueryStatus.ERROR)
