"""
Model selection for llmfanout.

Resolves which configured models take part in a run from a
``SelectionCriteria``. Selection precedence (first match wins):

1. Explicit model-key list
2. Single specific model key
3. Single group name
4. List of group names
5. Every configured model

A group name (or list of group names) supplied together with an explicit
selection acts as a filter; when nothing survives the filter the explicit
selection is used unfiltered and a warning says so.
"""

from __future__ import annotations

from enum import Enum

from llmfanout.core.catalog import (
    available_model_keys,
    available_providers,
    find_model,
    group_models,
    models_in_groups,
)
from llmfanout.core.credentials import (
    CredentialStore,
    EnvCredentialStore,
    models_missing_credentials,
)
from llmfanout.core.types import (
    AppConfig,
    ModelConfig,
    ModelSpec,
    SelectionCriteria,
    SelectionResult,
)
from llmfanout.utils.classify import classify_error
from llmfanout.utils.errors import (
    FanoutError,
    ModelSelectionError,
    group_not_found_error,
    missing_api_key_error,
    model_format_error,
    model_not_found_error,
)
from llmfanout.utils.logging import get_logger

logger = get_logger(__name__)

NO_VALID_KEYS_MESSAGE = "No models with valid API keys available."


class SelectionBranch(str, Enum):
    """Which precedence branch produced the selection."""

    MODEL_LIST = "model_list"
    SPECIFIC_MODEL = "specific_model"
    GROUP = "group"
    GROUP_LIST = "group_list"
    ALL = "all"


def selection_branch(criteria: SelectionCriteria) -> SelectionBranch:
    if criteria.models:
        return SelectionBranch.MODEL_LIST
    if criteria.specific_model:
        return SelectionBranch.SPECIFIC_MODEL
    if criteria.group_name:
        return SelectionBranch.GROUP
    if criteria.groups:
        return SelectionBranch.GROUP_LIST
    return SelectionBranch.ALL


def empty_selection_message(criteria: SelectionCriteria) -> str:
    """Explain an empty selection in terms of the branch that produced it."""
    branch = selection_branch(criteria)
    if branch == SelectionBranch.SPECIFIC_MODEL:
        return f'Specific model "{criteria.specific_model}" is not available or not enabled.'
    if branch == SelectionBranch.GROUP:
        return f"No enabled models found in the specified group: {criteria.group_name}"
    if branch == SelectionBranch.GROUP_LIST:
        return f"No enabled models found in the specified groups: {', '.join(criteria.groups or [])}"
    if branch == SelectionBranch.MODEL_LIST:
        return "No enabled models matched the specified filters."
    return "No enabled models found in configuration."


class ModelSelector:
    """
    Selects models from an AppConfig.

    Example:
        selector = ModelSelector()
        result = selector.select(config, SelectionCriteria(group_name="coding"))
        for model in result.models:
            print(model.key)
    """

    def __init__(self, credentials: CredentialStore | None = None):
        self.credentials = credentials or EnvCredentialStore()

    def select(self, config: AppConfig, criteria: SelectionCriteria) -> SelectionResult:
        """
        Resolve the models to query.

        Args:
            config: Models and groups available for the run
            criteria: What to select and how strictly

        Returns:
            SelectionResult with selected, disabled and missing-credential
            models plus warnings

        Raises:
            ModelSelectionError: Invalid keys, unknown model or group, or an
                empty selection, when ``criteria.throw_on_error`` is set
            ApiError: Every selected model lacks a credential, when
                ``criteria.throw_on_error`` is set
        """
        result = SelectionResult()
        try:
            result.models = self._select_candidates(config, criteria, result)

            if not result.models:
                message = empty_selection_message(criteria)
                result.warnings.append(message)
                if criteria.throw_on_error:
                    raise ModelSelectionError(
                        message,
                        suggestions=[
                            "Check your configuration to ensure there are enabled models",
                            "Set enabled: true on the models you want to query",
                            'Use "llmfanout models" to list all available models',
                        ],
                        examples=["llmfanout run prompt.txt --model openai:gpt-4o"],
                    )

            if criteria.validate_api_keys and result.models:
                self._drop_missing_credentials(criteria, result)

        except FanoutError as e:
            if criteria.throw_on_error:
                raise
            result.warnings.append(e.message)
            return self._empty(result)
        except Exception as e:
            error = classify_error(e)
            if criteria.throw_on_error:
                raise error from e
            result.warnings.append(error.message)
            return self._empty(result)

        logger.debug(
            "Models selected",
            branch=selection_branch(criteria).value,
            selected=result.model_keys,
            warnings=len(result.warnings),
        )
        return result

    # =========================================================================
    # Branches
    # =========================================================================

    def _select_candidates(
        self,
        config: AppConfig,
        criteria: SelectionCriteria,
        result: SelectionResult,
    ) -> list[ModelConfig]:
        branch = selection_branch(criteria)

        if branch == SelectionBranch.MODEL_LIST:
            selected = self._select_model_list(config, criteria, result)
            return self._apply_group_filter(config, criteria, selected, result)

        if branch == SelectionBranch.SPECIFIC_MODEL:
            selected = self._select_specific_model(config, criteria, result)
            return self._apply_group_filter(config, criteria, selected, result)

        if branch == SelectionBranch.GROUP:
            return self._select_group(config, criteria, result)

        if branch == SelectionBranch.GROUP_LIST:
            names = criteria.groups or []
            for name in names:
                if name not in config.groups:
                    result.warnings.append(f'Group "{name}" not found in configuration.')
            members = models_in_groups(config, names, include_disabled=True)
            return self._split_disabled(members, criteria.include_disabled, result)

        return self._split_disabled(config.models, criteria.include_disabled, result)

    def _select_model_list(
        self,
        config: AppConfig,
        criteria: SelectionCriteria,
        result: SelectionResult,
    ) -> list[ModelConfig]:
        selected: list[ModelConfig] = []
        errors: list[str] = []

        for key in criteria.models or []:
            try:
                spec = ModelSpec.parse(key)
            except ValueError:
                errors.append(model_format_error(key).message)
                continue

            model = find_model(config, spec.provider, spec.model_id)
            if model is None:
                errors.append(model_not_found_error(key).message)
                continue

            if not model.enabled:
                result.disabled_models.append(model)
                if not criteria.include_disabled:
                    continue
            selected.append(model)

        if errors and not selected and criteria.throw_on_error:
            keys = ", ".join(criteria.models or [])
            format_error = model_format_error(
                keys,
                available_providers(config),
                available_model_keys(config),
                message=f"None of the specified models could be used: {' '.join(errors)}",
            )
            raise ModelSelectionError(
                format_error.message,
                cause=format_error,
                suggestions=[
                    "Check that you have specified valid models in provider:modelId format",
                    "Make sure the models exist in your configuration and are enabled",
                    *format_error.suggestions,
                ],
                examples=format_error.examples,
            )

        result.warnings.extend(errors)
        return selected

    def _select_specific_model(
        self,
        config: AppConfig,
        criteria: SelectionCriteria,
        result: SelectionResult,
    ) -> list[ModelConfig]:
        key = criteria.specific_model or ""
        try:
            model = self._resolve_single(config, key)
        except ModelSelectionError as e:
            if criteria.throw_on_error:
                raise
            result.warnings.append(e.message)
            return []

        if model.enabled:
            return [model]

        result.disabled_models.append(model)
        if criteria.include_disabled:
            result.warnings.append(f'Model "{key}" is disabled in configuration.')
            return [model]

        error = ModelSelectionError(
            f'Model "{key}" is disabled in configuration.',
            suggestions=[
                "Set enabled: true for the model in your configuration",
                "Pass --include-disabled to query it anyway",
                "Or use an enabled model instead",
            ],
            examples=[f"llmfanout run prompt.txt --model {key} --include-disabled"],
        )
        if criteria.throw_on_error:
            raise error
        result.warnings.append(error.message)
        return []

    def _resolve_single(self, config: AppConfig, key: str) -> ModelConfig:
        try:
            spec = ModelSpec.parse(key)
        except ValueError as e:
            format_error = model_format_error(
                key, available_providers(config), available_model_keys(config)
            )
            raise ModelSelectionError(
                format_error.message,
                cause=format_error,
                suggestions=format_error.suggestions,
                examples=format_error.examples,
            ) from e

        model = find_model(config, spec.provider, spec.model_id)
        if model is None:
            not_found = model_not_found_error(key, available_model_keys(config))
            raise ModelSelectionError(
                not_found.message,
                cause=not_found,
                suggestions=[
                    "Check that the model is correctly spelled and exists in your configuration",
                    *not_found.suggestions,
                ],
                examples=not_found.examples,
            )
        return model

    def _select_group(
        self,
        config: AppConfig,
        criteria: SelectionCriteria,
        result: SelectionResult,
    ) -> list[ModelConfig]:
        name = criteria.group_name or ""
        if name not in config.groups:
            error = group_not_found_error(name, list(config.groups))
            if criteria.throw_on_error:
                raise error
            result.warnings.append(error.message)
            return []

        members = group_models(config, name, include_disabled=True)
        return self._split_disabled(members, criteria.include_disabled, result)

    # =========================================================================
    # Filters
    # =========================================================================

    def _split_disabled(
        self,
        candidates: list[ModelConfig],
        include_disabled: bool,
        result: SelectionResult,
    ) -> list[ModelConfig]:
        disabled = [m for m in candidates if not m.enabled]
        result.disabled_models.extend(disabled)
        if include_disabled:
            return list(candidates)
        return [m for m in candidates if m.enabled]

    def _apply_group_filter(
        self,
        config: AppConfig,
        criteria: SelectionCriteria,
        selected: list[ModelConfig],
        result: SelectionResult,
    ) -> list[ModelConfig]:
        names = [criteria.group_name] if criteria.group_name else list(criteria.groups or [])
        if not names or not selected:
            return selected
        return self._filter_by_groups(config, selected, names, result)

    def _filter_by_groups(
        self,
        config: AppConfig,
        selected: list[ModelConfig],
        group_names: list[str],
        result: SelectionResult,
    ) -> list[ModelConfig]:
        known = [name for name in group_names if name in config.groups]
        for name in group_names:
            if name not in config.groups:
                result.warnings.append(f'Group "{name}" not found in configuration.')
        if not known:
            result.warnings.append("Using models without group filtering.")
            return selected

        label = ", ".join(f'"{name}"' for name in known)
        label = f"group {label}" if len(known) == 1 else f"groups {label}"
        member_keys = {m.key for m in models_in_groups(config, known, include_disabled=True)}
        kept = [m for m in selected if m.key in member_keys]

        if not kept:
            result.warnings.append(
                f"None of the specified models are in {label}; "
                "the group filter was ignored and the specified models are used."
            )
            return selected

        for model in selected:
            if model.key not in member_keys:
                result.warnings.append(
                    f'Model "{model.key}" is not in {label} and will be skipped.'
                )
        return kept

    def _drop_missing_credentials(
        self,
        criteria: SelectionCriteria,
        result: SelectionResult,
    ) -> None:
        missing = models_missing_credentials(result.models, self.credentials)
        if not missing:
            return

        missing_keys = {m.key for m in missing}
        unique_missing = list({m.key: m for m in missing}.values())
        result.missing_api_key_models = unique_missing
        result.warnings.append(
            f"Missing API keys for models: {', '.join(m.key for m in unique_missing)}"
        )

        remaining = [m for m in result.models if m.key not in missing_keys]
        if not remaining and criteria.throw_on_error:
            error = missing_api_key_error(
                [(m.provider, m.model_id) for m in unique_missing],
                NO_VALID_KEYS_MESSAGE,
            )
            error.suggestions.insert(
                0, "Check that you have set the correct environment variables for your API keys"
            )
            raise error

        result.models = remaining

    @staticmethod
    def _empty(result: SelectionResult) -> SelectionResult:
        return SelectionResult(
            models=[],
            missing_api_key_models=[],
            disabled_models=result.disabled_models,
            warnings=result.warnings,
        )


def select_models(
    config: AppConfig,
    criteria: SelectionCriteria | None = None,
    credentials: CredentialStore | None = None,
) -> SelectionResult:
    """
    Functional entry point for model selection.

    Args:
        config: Models and groups available for the run
        criteria: Selection criteria (defaults select every configured model)
        credentials: Credential store (defaults to environment variables)

    Returns:
        SelectionResult
    """
    return ModelSelector(credentials).select(config, criteria or SelectionCriteria())
