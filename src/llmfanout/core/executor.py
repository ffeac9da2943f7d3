"""
Query Executor.

Fans one prompt out to every selected model concurrently. Each model runs
its own race between the provider call and a timer; failures of one model
(missing provider, provider error, timeout) are captured into that
model's response and status and never abort the run.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from llmfanout.core.catalog import GroupMembership, find_group_for
from llmfanout.core.config import DEFAULT_QUERY_TIMEOUT_MS, DEFAULT_THINKING_BUDGET_TOKENS
from llmfanout.core.types import (
    AppConfig,
    GroupInfo,
    LLMResponse,
    ModelConfig,
    ModelQueryStatus,
    PromptSource,
    QueryExecutionResult,
    QueryOptions,
    QueryStatus,
    QueryTiming,
    SystemPrompt,
)
from llmfanout.providers.base import BaseProvider
from llmfanout.providers.registry import ProviderRegistry, create_default_registry
from llmfanout.utils.errors import ConfigError, ErrorCategory, FanoutError, NetworkError
from llmfanout.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful, accurate, and intelligent assistant. "
    "Provide clear, concise, and correct information."
)

GroupLookup = Callable[[AppConfig, ModelConfig], GroupMembership | None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def timeout_message(model_key: str, timeout_ms: int) -> str:
    return f"Model {model_key} timed out after {timeout_ms}ms. The API might be unresponsive."


def status_keys(models: list[ModelConfig]) -> list[str]:
    """
    One status key per model, in input order.

    Repeated models get ``#2``, ``#3``... suffixes so every input entry
    keeps its own status and response.
    """
    counts: dict[str, int] = {}
    keys = []
    for model in models:
        counts[model.key] = counts.get(model.key, 0) + 1
        n = counts[model.key]
        keys.append(model.key if n == 1 else f"{model.key}#{n}")
    return keys


class QueryExecutor:
    """
    Runs queries against many models concurrently.

    Example:
        executor = QueryExecutor(create_default_registry())
        result = await executor.execute(config, models, QueryOptions(prompt="Hi"))
        for response in result.responses:
            print(response.key, response.text or response.error)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        group_lookup: GroupLookup = find_group_for,
        thinking_budget_tokens: int = DEFAULT_THINKING_BUDGET_TOKENS,
    ):
        self.registry = registry
        self.group_lookup = group_lookup
        self.thinking_budget_tokens = thinking_budget_tokens

    def resolve_system_prompt(
        self,
        config: AppConfig,
        model: ModelConfig,
        override: str | None,
    ) -> tuple[SystemPrompt, GroupMembership | None]:
        """
        System prompt for ``model`` and the group it came from, if any.

        Precedence: explicit override, the model's own prompt, its group's
        prompt, then the built-in default.
        """
        if override:
            return SystemPrompt(text=override).with_source(PromptSource.CLI_OVERRIDE), None
        if model.system_prompt is not None:
            return model.system_prompt.with_source(PromptSource.MODEL_CONFIG), None
        membership = self.group_lookup(config, model)
        if membership is not None:
            prompt = membership.system_prompt.with_source(PromptSource.GROUP_CONFIG)
            return prompt, GroupMembership(membership.group_name, prompt)
        return SystemPrompt(text=DEFAULT_SYSTEM_PROMPT).with_source(
            PromptSource.DEFAULT_FALLBACK
        ), None

    def build_options(
        self,
        provider: BaseProvider,
        model: ModelConfig,
        enable_thinking: bool,
    ) -> dict[str, Any]:
        """Copy of the model options, with a reasoning budget when requested and supported."""
        options = dict(model.options)
        if enable_thinking and provider.supports_thinking(model.model_id):
            options["thinking"] = {
                "type": "enabled",
                "budget_tokens": self.thinking_budget_tokens,
            }
        return options

    async def execute(
        self,
        config: AppConfig,
        models: list[ModelConfig],
        options: QueryOptions,
    ) -> QueryExecutionResult:
        """
        Query every model and collect one response and status per model.

        Never raises for per-model failures.
        """
        timeout_ms = options.timeout_ms or DEFAULT_QUERY_TIMEOUT_MS
        keys = status_keys(models)
        statuses: dict[str, ModelQueryStatus] = {}
        clocks: dict[str, float] = {}
        for key in keys:
            statuses[key] = ModelQueryStatus()
        for key in keys:
            self._emit(options, key, statuses)

        logger.info("Queries started", models=len(models), timeout_ms=timeout_ms)
        started = _now_ms()
        started_clock = time.monotonic()

        responses = await asyncio.gather(
            *(
                self._query_model(config, model, key, options, statuses, clocks, timeout_ms)
                for model, key in zip(models, keys)
            )
        )

        elapsed_ms = int((time.monotonic() - started_clock) * 1000)
        timing = self._overall_timing(statuses, started, elapsed_ms)
        result = QueryExecutionResult(
            responses=list(responses),
            statuses=statuses,
            timing=timing,
            combined_content=options.prompt,
        )
        logger.info(
            "Queries finished",
            succeeded=result.success_count,
            failed=result.failure_count,
            duration_ms=timing.duration_ms,
        )
        return result

    async def _query_model(
        self,
        config: AppConfig,
        model: ModelConfig,
        key: str,
        options: QueryOptions,
        statuses: dict[str, ModelQueryStatus],
        clocks: dict[str, float],
        timeout_ms: int,
    ) -> LLMResponse:
        try:
            provider = self.registry.lookup(model.provider)
        except Exception as e:
            logger.warning("Provider could not be created", provider=model.provider, error=str(e))
            self._start(options, key, statuses, clocks)
            return self._fail(options, key, model, statuses, clocks, e)

        if provider is None:
            message = f"Provider '{model.provider}' not found for model {model.key}"
            error = ConfigError(
                message,
                suggestions=[
                    f"Registered providers: {', '.join(self.registry.list_providers()) or 'none'}",
                    "Check the provider name in your configuration",
                ],
            )
            self._start(options, key, statuses, clocks)
            return self._fail(options, key, model, statuses, clocks, error)

        self._start(options, key, statuses, clocks)
        try:
            system_prompt, membership = self.resolve_system_prompt(
                config, model, options.system_prompt
            )
            request_options = self.build_options(provider, model, options.enable_thinking)
            task = asyncio.ensure_future(
                provider.generate(options.prompt, model.model_id, request_options, system_prompt)
            )
        except Exception as e:
            return self._fail(options, key, model, statuses, clocks, e)

        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        if task not in done:
            # The call is abandoned rather than cancelled; its late result is dropped
            task.add_done_callback(self._discard_late_result(key))
            message = timeout_message(key, timeout_ms)
            logger.warning("Model timed out", model=key, timeout_ms=timeout_ms)
            error = NetworkError(
                message,
                suggestions=[
                    "Retry later or raise the timeout with --timeout",
                    "Check the provider status page for outages",
                ],
            )
            return self._fail(options, key, model, statuses, clocks, error)

        try:
            response = task.result()
        except Exception as e:
            return self._fail(options, key, model, statuses, clocks, e)

        self._finish(options, key, statuses, clocks, QueryStatus.SUCCESS)
        logger.debug("Model succeeded", model=key, duration_ms=statuses[key].duration_ms)

        group_info = response.group_info
        if group_info is None and membership is not None:
            group_info = GroupInfo(
                name=membership.group_name, system_prompt=membership.system_prompt
            )
        return replace(response, config_key=key, group_info=group_info)

    def _fail(
        self,
        options: QueryOptions,
        key: str,
        model: ModelConfig,
        statuses: dict[str, ModelQueryStatus],
        clocks: dict[str, float],
        error: BaseException,
    ) -> LLMResponse:
        if isinstance(error, FanoutError):
            message = error.message
            category = error.category
            tip = error.suggestions[0] if error.suggestions else None
        else:
            message = str(error) or type(error).__name__
            category = ErrorCategory.UNKNOWN
            tip = None

        self._finish(
            options, key, statuses, clocks, QueryStatus.ERROR, message=message, error=error
        )
        logger.warning("Model failed", model=key, category=category.value, error=message)
        return LLMResponse(
            provider=model.provider,
            model_id=model.model_id,
            error=message,
            error_category=category,
            error_tip=tip,
            config_key=key,
        )

    def _start(
        self,
        options: QueryOptions,
        key: str,
        statuses: dict[str, ModelQueryStatus],
        clocks: dict[str, float],
    ) -> None:
        clocks[key] = time.monotonic()
        statuses[key] = ModelQueryStatus(status=QueryStatus.RUNNING, start_time=_now_ms())
        self._emit(options, key, statuses)

    def _finish(
        self,
        options: QueryOptions,
        key: str,
        statuses: dict[str, ModelQueryStatus],
        clocks: dict[str, float],
        status: QueryStatus,
        message: str | None = None,
        error: BaseException | None = None,
    ) -> None:
        # Wall-clock stamps are for display; the duration comes from the monotonic clock
        now = _now_ms()
        start_time = statuses[key].start_time
        if start_time is None:
            start_time = now
        started = clocks.get(key)
        duration_ms = int((time.monotonic() - started) * 1000) if started is not None else 0
        statuses[key] = ModelQueryStatus(
            status=status,
            start_time=start_time,
            end_time=max(now, start_time),
            duration_ms=duration_ms,
            message=message,
            detailed_error=error,
        )
        self._emit(options, key, statuses)

    @staticmethod
    def _emit(
        options: QueryOptions,
        key: str,
        statuses: dict[str, ModelQueryStatus],
    ) -> None:
        if options.on_status_update is not None:
            options.on_status_update(key, statuses[key], dict(statuses))

    @staticmethod
    def _discard_late_result(key: str) -> Callable[[asyncio.Future], None]:
        def _callback(task: asyncio.Future) -> None:
            if task.cancelled():
                logger.debug("Abandoned call cancelled", model=key)
                return
            error = task.exception()
            logger.debug(
                "Discarded late result of timed-out call",
                model=key,
                outcome="error" if error is not None else "success",
            )

        return _callback

    @staticmethod
    def _overall_timing(
        statuses: dict[str, ModelQueryStatus],
        started: int,
        elapsed_ms: int,
    ) -> QueryTiming:
        starts = [s.start_time for s in statuses.values() if s.start_time is not None]
        ends = [s.end_time for s in statuses.values() if s.end_time is not None]
        start_time = min(starts) if starts else started
        end_time = max(ends + [start_time])
        return QueryTiming(
            start_time=start_time,
            end_time=end_time,
            duration_ms=elapsed_ms if starts else 0,
        )


async def execute_queries(
    config: AppConfig,
    models: list[ModelConfig],
    options: QueryOptions,
    registry: ProviderRegistry | None = None,
    thinking_budget_tokens: int = DEFAULT_THINKING_BUDGET_TOKENS,
) -> QueryExecutionResult:
    """Convenience wrapper around ``QueryExecutor`` with the default registry."""
    executor = QueryExecutor(
        registry if registry is not None else create_default_registry(),
        thinking_budget_tokens=thinking_budget_tokens,
    )
    return await executor.execute(config, models, options)
