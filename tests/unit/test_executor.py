"""
Unit tests for the Query Executor.

Tests executor functionality including:
- Result ordering under concurrency
- Missing providers, rejections and timeouts
- Status-callback transitions
- System prompt precedence and thinking options
"""

from __future__ import annotations

import asyncio
import itertools
from unittest.mock import MagicMock, patch

import pytest

from llmfanout.core.catalog import GroupMembership
from llmfanout.core.executor import (
    DEFAULT_SYSTEM_PROMPT,
    QueryExecutor,
    execute_queries,
    status_keys,
)
from llmfanout.core.types import (
    AppConfig,
    GroupInfo,
    LLMResponse,
    ModelConfig,
    ModelQueryStatus,
    PromptSource,
    QueryOptions,
    QueryStatus,
    SystemPrompt,
)
from llmfanout.providers.registry import ProviderRegistry
from llmfanout.utils.errors import ApiError, ErrorCategory

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def three_models() -> list[ModelConfig]:
    return [
        ModelConfig(provider="alpha", model_id="a"),
        ModelConfig(provider="missing", model_id="b"),
        ModelConfig(provider="slow", model_id="c"),
    ]


class StatusRecorder:
    """Collects every status-callback invocation."""

    def __init__(self):
        self.events: list[tuple[str, ModelQueryStatus]] = []

    def __call__(self, key: str, status: ModelQueryStatus, statuses: dict) -> None:
        self.events.append((key, status))

    def sequence(self, key: str) -> list[QueryStatus]:
        return [status.status for k, status in self.events if k == key]


# =============================================================================
# Outcome Tests
# =============================================================================


class TestExecutionOutcomes:
    """Tests for per-model outcomes."""

    @pytest.mark.asyncio
    async def test_success_missing_provider_and_timeout(self, make_provider, three_models) -> None:
        """Test one success, one unregistered provider and one timeout in a single run."""
        slow = make_provider("slow", delay=5.0)
        registry = ProviderRegistry(
            providers={"alpha": make_provider("alpha"), "slow": slow}
        )
        executor = QueryExecutor(registry)

        result = await executor.execute(
            AppConfig(models=three_models),
            three_models,
            QueryOptions(prompt="hi", timeout_ms=50),
        )

        assert len(result.responses) == 3
        assert [r.key for r in result.responses] == ["alpha:a", "missing:b", "slow:c"]
        assert result.responses[0].ok
        assert result.statuses["alpha:a"].status == QueryStatus.SUCCESS

        assert result.statuses["missing:b"].status == QueryStatus.ERROR
        assert "not found" in result.statuses["missing:b"].message
        assert result.responses[1].error == "Provider 'missing' not found for model missing:b"

        assert result.statuses["slow:c"].status == QueryStatus.ERROR
        assert "timed out after" in result.statuses["slow:c"].message
        assert result.responses[2].error == (
            "Model slow:c timed out after 50ms. The API might be unresponsive."
        )
        assert result.success_count == 1
        assert result.failure_count == 2

    @pytest.mark.asyncio
    async def test_missing_provider_makes_no_call(self, make_provider) -> None:
        """Test that an unregistered provider never reaches any provider."""
        other = make_provider("other")
        registry = ProviderRegistry(providers={"other": other})
        models = [ModelConfig(provider="ghost", model_id="m")]

        result = await QueryExecutor(registry).execute(
            AppConfig(models=models), models, QueryOptions(prompt="hi")
        )

        assert other.calls == []
        assert result.responses[0].error_category == ErrorCategory.CONFIG
        assert result.responses[0].text == ""

    @pytest.mark.asyncio
    async def test_failing_provider_factory_is_per_model(self, make_provider) -> None:
        """Test that a provider that cannot be built fails only its own models."""

        def broken():
            raise ApiError("acme SDK could not be initialised", suggestions=["Install acme"])

        registry = ProviderRegistry(
            providers={"alpha": make_provider("alpha")}, factories={"acme": broken}
        )
        models = [
            ModelConfig(provider="acme", model_id="m1"),
            ModelConfig(provider="alpha", model_id="a"),
        ]
        recorder = StatusRecorder()

        result = await QueryExecutor(registry).execute(
            AppConfig(models=models),
            models,
            QueryOptions(prompt="hi", on_status_update=recorder),
        )

        assert result.statuses["acme:m1"].status == QueryStatus.ERROR
        assert result.responses[0].error == "acme SDK could not be initialised"
        assert result.responses[0].error_category == ErrorCategory.API
        assert result.responses[0].error_tip == "Install acme"
        assert recorder.sequence("acme:m1") == [
            QueryStatus.PENDING,
            QueryStatus.RUNNING,
            QueryStatus.ERROR,
        ]
        assert result.statuses["alpha:a"].status == QueryStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_failing_capability_check_is_per_model(self, make_provider) -> None:
        provider = make_provider("p")
        provider.supports_thinking = MagicMock(side_effect=RuntimeError("capability lookup failed"))
        models = [ModelConfig(provider="p", model_id="m")]

        result = await QueryExecutor(ProviderRegistry(providers={"p": provider})).execute(
            AppConfig(models=models), models, QueryOptions(prompt="hi", enable_thinking=True)
        )

        assert result.responses[0].error == "capability lookup failed"
        assert result.statuses["p:m"].status == QueryStatus.ERROR
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_classified_rejection_is_copied(self, make_provider) -> None:
        """Test that a classified provider error keeps its message, category and tip."""
        error = ApiError("Rate limit exceeded: slow down", suggestions=["Wait a bit"])
        registry = ProviderRegistry(providers={"p": make_provider("p", error=error)})
        models = [ModelConfig(provider="p", model_id="m")]

        result = await QueryExecutor(registry).execute(
            AppConfig(models=models), models, QueryOptions(prompt="hi")
        )

        response = result.responses[0]
        assert response.error == "Rate limit exceeded: slow down"
        assert response.error_category == ErrorCategory.API
        assert response.error_tip == "Wait a bit"
        assert result.statuses["p:m"].detailed_error is error

    @pytest.mark.asyncio
    async def test_raw_rejection_is_unknown(self, make_provider) -> None:
        """Test that an unclassified provider error is reported as Unknown."""
        registry = ProviderRegistry(
            providers={"p": make_provider("p", error=RuntimeError("boom"))}
        )
        models = [ModelConfig(provider="p", model_id="m")]

        result = await QueryExecutor(registry).execute(
            AppConfig(models=models), models, QueryOptions(prompt="hi")
        )

        assert result.responses[0].error == "boom"
        assert result.responses[0].error_category == ErrorCategory.UNKNOWN
        assert result.statuses["p:m"].message == "boom"

    @pytest.mark.asyncio
    async def test_timed_out_call_is_abandoned_not_cancelled(self, make_provider) -> None:
        """Test that the provider call keeps running after its timeout fires."""
        slow = make_provider("slow", delay=0.2)
        registry = ProviderRegistry(providers={"slow": slow})
        models = [ModelConfig(provider="slow", model_id="m")]

        result = await QueryExecutor(registry).execute(
            AppConfig(models=models), models, QueryOptions(prompt="hi", timeout_ms=20)
        )
        assert result.statuses["slow:m"].status == QueryStatus.ERROR

        await asyncio.wait_for(slow.finished.wait(), timeout=2)
        # The late success does not change the reported outcome
        assert result.responses[0].error is not None
        assert result.responses[0].text == ""


# =============================================================================
# Ordering and Timing Tests
# =============================================================================


class TestOrderingAndTiming:
    """Tests for ordering guarantees and timing bookkeeping."""

    @pytest.mark.asyncio
    async def test_reverse_completion_keeps_input_order(self, make_provider) -> None:
        """Test that responses follow input order when completion order is reversed."""
        providers = {f"p{i}": make_provider(f"p{i}", delay=0.05 * (5 - i)) for i in range(5)}
        models = [ModelConfig(provider=f"p{i}", model_id="m") for i in range(5)]

        result = await QueryExecutor(ProviderRegistry(providers=providers)).execute(
            AppConfig(models=models), models, QueryOptions(prompt="hi")
        )

        assert [r.provider for r in result.responses] == [f"p{i}" for i in range(5)]
        assert list(result.statuses) == [f"p{i}:m" for i in range(5)]
        end_times = [result.statuses[f"p{i}:m"].end_time for i in range(5)]
        assert end_times[-1] <= end_times[0]

    @pytest.mark.asyncio
    async def test_overall_timing_spans_models(self, make_provider) -> None:
        """Test that overall timing covers the earliest start and the latest end."""
        providers = {"a": make_provider("a", delay=0.01), "b": make_provider("b", delay=0.05)}
        models = [ModelConfig(provider="a", model_id="m"), ModelConfig(provider="b", model_id="m")]

        result = await QueryExecutor(ProviderRegistry(providers=providers)).execute(
            AppConfig(models=models), models, QueryOptions(prompt="hi")
        )

        starts = [s.start_time for s in result.statuses.values()]
        ends = [s.end_time for s in result.statuses.values()]
        assert result.timing.start_time == min(starts)
        assert result.timing.end_time == max(ends)
        assert result.timing.duration_ms >= 40

    @pytest.mark.asyncio
    async def test_wall_clock_step_back_keeps_timing_consistent(self, make_provider) -> None:
        """Test that durations come from a monotonic clock when wall time goes backwards."""
        models = [ModelConfig(provider="p", model_id="m")]
        registry = ProviderRegistry(providers={"p": make_provider("p", delay=0.02)})

        with patch("llmfanout.core.executor._now_ms", side_effect=itertools.count(10_000, -1_000)):
            result = await QueryExecutor(registry).execute(
                AppConfig(models=models), models, QueryOptions(prompt="hi")
            )

        status = result.statuses["p:m"]
        assert status.end_time >= status.start_time
        assert status.duration_ms >= 15
        assert result.timing.end_time >= result.timing.start_time
        assert result.timing.duration_ms >= 15

    @pytest.mark.asyncio
    async def test_duplicate_models_get_distinct_keys(self, fake_registry) -> None:
        """Test that repeated models each keep a response and a status."""
        model = ModelConfig(provider="openai", model_id="gpt-4o")
        models = [model, model]

        result = await QueryExecutor(fake_registry).execute(
            AppConfig(models=[model]), models, QueryOptions(prompt="hi")
        )

        assert len(result.responses) == 2
        assert list(result.statuses) == ["openai:gpt-4o", "openai:gpt-4o#2"]
        assert [r.config_key for r in result.responses] == ["openai:gpt-4o", "openai:gpt-4o#2"]

    def test_status_keys(self) -> None:
        """Test status key generation."""
        a = ModelConfig(provider="p", model_id="a")
        b = ModelConfig(provider="p", model_id="b")

        assert status_keys([a, b, a, a]) == ["p:a", "p:b", "p:a#2", "p:a#3"]

    @pytest.mark.asyncio
    async def test_empty_model_list(self, fake_registry) -> None:
        """Test that no models produce an empty, well-formed result."""
        result = await QueryExecutor(fake_registry).execute(
            AppConfig(), [], QueryOptions(prompt="hi")
        )

        assert result.responses == []
        assert result.statuses == {}
        assert result.timing.duration_ms == 0


# =============================================================================
# Status Callback Tests
# =============================================================================


class TestStatusCallback:
    """Tests for status transitions reported through the callback."""

    @pytest.mark.asyncio
    async def test_transitions_per_model(self, make_provider, three_models) -> None:
        """Test pending -> running -> terminal for every model, whatever the outcome."""
        registry = ProviderRegistry(
            providers={"alpha": make_provider("alpha"), "slow": make_provider("slow", delay=5)}
        )
        recorder = StatusRecorder()

        await QueryExecutor(registry).execute(
            AppConfig(models=three_models),
            three_models,
            QueryOptions(prompt="hi", timeout_ms=30, on_status_update=recorder),
        )

        assert recorder.sequence("alpha:a") == [
            QueryStatus.PENDING,
            QueryStatus.RUNNING,
            QueryStatus.SUCCESS,
        ]
        for key in ("missing:b", "slow:c"):
            assert recorder.sequence(key) == [
                QueryStatus.PENDING,
                QueryStatus.RUNNING,
                QueryStatus.ERROR,
            ]

    @pytest.mark.asyncio
    async def test_terminal_status_timing(self, fake_registry, app_config) -> None:
        """Test that terminal statuses carry consistent timing."""
        recorder = StatusRecorder()

        await QueryExecutor(fake_registry).execute(
            app_config,
            app_config.models,
            QueryOptions(prompt="hi", on_status_update=recorder),
        )

        terminal = [s for _, s in recorder.events if s.status.is_terminal]
        assert len(terminal) == len(app_config.models)
        for status in terminal:
            assert status.end_time >= status.start_time
            assert status.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_callback_receives_all_statuses(self, fake_registry, app_config) -> None:
        """Test that the callback context holds every model key."""
        seen: list[dict] = []

        def callback(key, status, statuses):
            seen.append(statuses)

        await QueryExecutor(fake_registry).execute(
            app_config,
            app_config.models,
            QueryOptions(prompt="hi", on_status_update=callback),
        )

        assert all(set(s) == {m.key for m in app_config.models} for s in seen)


# =============================================================================
# System Prompt and Options Tests
# =============================================================================


class TestSystemPromptResolution:
    """Tests for system prompt precedence."""

    @pytest.mark.asyncio
    async def test_override_wins(self, fake_registry, app_config) -> None:
        """Test that an explicit override is used for every model."""
        result = await QueryExecutor(fake_registry).execute(
            app_config,
            app_config.models[:2],
            QueryOptions(prompt="hi", system_prompt="Be terse."),
        )

        for provider_id in ("openai", "anthropic"):
            prompt = fake_registry.lookup(provider_id).calls[0]["system_prompt"]
            assert prompt.text == "Be terse."
            assert prompt.source == PromptSource.CLI_OVERRIDE
        assert all(r.group_info is None for r in result.responses)

    def test_model_prompt_before_group(self, fake_registry, app_config) -> None:
        """Test that the model's own prompt beats its group's."""
        model = app_config.models[3]
        prompt, membership = QueryExecutor(fake_registry).resolve_system_prompt(
            app_config, model, None
        )

        assert prompt.text == "You are Gemini."
        assert prompt.source == PromptSource.MODEL_CONFIG
        assert membership is None

    def test_group_prompt(self, fake_registry, app_config) -> None:
        """Test that a group member gets the group's prompt."""
        model = app_config.models[1]
        prompt, membership = QueryExecutor(fake_registry).resolve_system_prompt(
            app_config, model, None
        )

        assert prompt.text == "You are a senior engineer."
        assert prompt.source == PromptSource.GROUP_CONFIG
        assert membership.group_name == "coding"

    def test_default_fallback(self, fake_registry) -> None:
        """Test the built-in prompt when no group claims the model."""
        model = ModelConfig(provider="openai", model_id="orphan")
        prompt, membership = QueryExecutor(fake_registry).resolve_system_prompt(
            AppConfig(), model, None
        )

        assert prompt.text == DEFAULT_SYSTEM_PROMPT
        assert prompt.source == PromptSource.DEFAULT_FALLBACK
        assert membership is None

    def test_custom_group_lookup(self, fake_registry) -> None:
        """Test that the group lookup collaborator is injectable."""
        executor = QueryExecutor(
            fake_registry,
            group_lookup=lambda config, model: GroupMembership("custom", SystemPrompt("Custom.")),
        )
        prompt, membership = executor.resolve_system_prompt(
            AppConfig(), ModelConfig(provider="openai", model_id="x"), None
        )

        assert prompt.text == "Custom."
        assert membership.group_name == "custom"

    @pytest.mark.asyncio
    async def test_group_info_attached(self, fake_registry, app_config) -> None:
        """Test that the resolved group is attached to the response."""
        result = await QueryExecutor(fake_registry).execute(
            app_config, [app_config.models[1]], QueryOptions(prompt="hi")
        )

        group_info = result.responses[0].group_info
        assert group_info.name == "coding"
        assert group_info.system_prompt.text == "You are a senior engineer."

    @pytest.mark.asyncio
    async def test_provider_group_info_wins(self, make_provider, app_config) -> None:
        """Test that group info set by the provider is left untouched."""
        preset = GroupInfo(name="provider-set", system_prompt=SystemPrompt("x"))
        provider = make_provider(
            "anthropic",
            response=LLMResponse(
                provider="anthropic",
                model_id="claude-3-7-sonnet-20250219",
                text="ok",
                group_info=preset,
            ),
        )
        registry = ProviderRegistry(providers={"anthropic": provider})

        result = await QueryExecutor(registry).execute(
            app_config, [app_config.models[1]], QueryOptions(prompt="hi")
        )

        assert result.responses[0].group_info is preset


class TestThinkingOption:
    """Tests for the extended reasoning option."""

    @pytest.mark.asyncio
    async def test_thinking_added_for_capable_model(self, fake_registry, app_config) -> None:
        """Test that a capable model receives a reasoning budget."""
        await QueryExecutor(fake_registry, thinking_budget_tokens=1234).execute(
            app_config,
            [app_config.models[1]],
            QueryOptions(prompt="hi", enable_thinking=True),
        )

        options = fake_registry.lookup("anthropic").calls[0]["options"]
        assert options["thinking"] == {"type": "enabled", "budget_tokens": 1234}

    @pytest.mark.asyncio
    async def test_thinking_omitted_for_other_models(self, fake_registry, app_config) -> None:
        """Test that the option is absent for models that cannot use it."""
        await QueryExecutor(fake_registry).execute(
            app_config,
            [app_config.models[0]],
            QueryOptions(prompt="hi", enable_thinking=True),
        )

        assert "thinking" not in fake_registry.lookup("openai").calls[0]["options"]

    @pytest.mark.asyncio
    async def test_thinking_omitted_when_disabled(self, fake_registry, app_config) -> None:
        """Test that the option is absent unless requested."""
        await QueryExecutor(fake_registry).execute(
            app_config, [app_config.models[1]], QueryOptions(prompt="hi")
        )

        assert "thinking" not in fake_registry.lookup("anthropic").calls[0]["options"]

    @pytest.mark.asyncio
    async def test_model_options_not_mutated(self, fake_registry) -> None:
        """Test that request options are a copy of the model options."""
        model = ModelConfig(
            provider="anthropic",
            model_id="claude-3-7-sonnet-20250219",
            options={"temperature": 0.2},
        )

        await QueryExecutor(fake_registry).execute(
            AppConfig(models=[model]), [model], QueryOptions(prompt="hi", enable_thinking=True)
        )

        assert model.options == {"temperature": 0.2}


class TestExecuteQueries:
    """Tests for the functional entry point."""

    @pytest.mark.asyncio
    async def test_execute_queries_with_registry(self, fake_registry, app_config) -> None:
        """Test the convenience wrapper."""
        result = await execute_queries(
            app_config,
            app_config.models[:1],
            QueryOptions(prompt="hello"),
            registry=fake_registry,
        )

        assert result.responses[0].text == "fake response from gpt-4o"
        assert result.combined_content == "hello"
