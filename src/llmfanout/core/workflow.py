"""
Workflow coordinator.

One run: read input, load configuration, select models, fan out the
queries, write one file per response and build the console summary.
Every stage failure goes through ``handle_workflow_error`` so the caller
receives a single classified error enriched with run context.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from llmfanout.core.config import FanoutConfig, get_config, load_app_config
from llmfanout.core.credentials import CredentialStore, EnvCredentialStore
from llmfanout.core.executor import QueryExecutor
from llmfanout.core.formatting import format_console_summary
from llmfanout.core.inputs import InputResult, process_input
from llmfanout.core.output import (
    WriteResult,
    create_output_directory,
    generate_run_name,
    write_responses,
)
from llmfanout.core.selector import ModelSelector
from llmfanout.core.types import (
    AppConfig,
    QueryExecutionResult,
    QueryOptions,
    SelectionCriteria,
    SelectionResult,
    StatusCallback,
)
from llmfanout.providers.registry import ProviderRegistry, create_default_registry
from llmfanout.utils.classify import ErrorContext, classify_error
from llmfanout.utils.errors import FanoutError
from llmfanout.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class RunOptions:
    """
    Options for a single run.

    Attributes:
        prompt: Prompt text or path of a file containing it
        context_paths: Files or directories to include as context
        models: Explicit model keys (``provider:modelId``)
        specific_model: Single model key
        group_name: Single group name
        groups: Several group names
        system_prompt: System prompt override for every model
        timeout_ms: Per-model timeout (defaults to the configured value)
        enable_thinking: Request an extended reasoning budget where supported
        include_disabled: Query models marked ``enabled: false``
        output_dir: Base directory for run output
        include_metadata: Add a metadata section to each response file
        include_thinking: Add a thinking section to each response file
        config_path: Models/groups file (defaults to the configured location)
        write_files: Write response files
        on_status_update: Per-model status callback
    """

    prompt: str
    context_paths: list[str] = field(default_factory=list)
    models: list[str] | None = None
    specific_model: str | None = None
    group_name: str | None = None
    groups: list[str] | None = None
    system_prompt: str | None = None
    timeout_ms: int | None = None
    enable_thinking: bool = False
    include_disabled: bool = False
    output_dir: str | None = None
    include_metadata: bool = False
    include_thinking: bool = False
    config_path: str | None = None
    write_files: bool = True
    on_status_update: StatusCallback | None = None

    def criteria(self) -> SelectionCriteria:
        return SelectionCriteria(
            models=list(self.models) if self.models else None,
            specific_model=self.specific_model,
            group_name=self.group_name,
            groups=list(self.groups) if self.groups else None,
            include_disabled=self.include_disabled,
        )


@dataclass
class RunResult:
    """Everything a run produced."""

    run_name: str
    input: InputResult
    selection: SelectionResult
    execution: QueryExecutionResult
    output_directory: Path | None = None
    write_result: WriteResult | None = None
    summary: str = ""

    @property
    def has_failures(self) -> bool:
        return self.execution.failure_count > 0


# =============================================================================
# Error Handling
# =============================================================================


def handle_workflow_error(error: BaseException, context: ErrorContext) -> FanoutError:
    """
    Single exit point for stage failures.

    Already-classified errors keep their message and category and only
    gain run-context suggestions; raw errors are wrapped exactly once.
    """
    classified = classify_error(error, context)
    logger.debug(
        "Workflow error",
        category=classified.category.value,
        error_type=type(error).__name__,
        run_name=context.run_name,
    )
    return classified


# =============================================================================
# Coordinator
# =============================================================================


class FanoutWorkflow:
    """
    Runs the full input → selection → query → output pipeline.

    Example:
        workflow = FanoutWorkflow()
        result = await workflow.run(RunOptions(prompt="Hello", group_name="chat"))
        print(result.summary)
    """

    def __init__(
        self,
        settings: FanoutConfig | None = None,
        registry: ProviderRegistry | None = None,
        credentials: CredentialStore | None = None,
        app_config: AppConfig | None = None,
    ):
        self.settings = settings or get_config()
        self._owns_registry = registry is None
        self.registry = registry if registry is not None else create_default_registry()
        self.credentials = credentials if credentials is not None else EnvCredentialStore()
        self.app_config = app_config

    async def run(self, options: RunOptions, run_name: str | None = None) -> RunResult:
        """
        Execute one run.

        Raises:
            FanoutError: a stage failed before queries could complete
        """
        run_name = run_name or generate_run_name()
        context = ErrorContext(
            cwd=os.getcwd(),
            input=options.prompt,
            specific_model=options.specific_model,
            models_list=list(options.models or []),
            run_name=run_name,
        )

        with LogContext(run_name=run_name):
            try:
                return await self._run(options, run_name, context)
            except Exception as e:
                classified = handle_workflow_error(e, context)
                if classified is e:
                    raise
                raise classified from e
            finally:
                if self._owns_registry:
                    await self.registry.close()

    async def _run(
        self,
        options: RunOptions,
        run_name: str,
        context: ErrorContext,
    ) -> RunResult:
        input_result = process_input(options.prompt, options.context_paths)

        config = self.app_config
        if config is None:
            config = load_app_config(options.config_path or self.settings.config_path)

        selection = ModelSelector(self.credentials).select(config, options.criteria())
        for warning in selection.warnings:
            logger.warning("Model selection warning", detail=warning)
        logger.info("Models selected", models=selection.model_keys)

        output_directory = None
        if options.write_files:
            output_directory = create_output_directory(
                options.output_dir or self.settings.output_dir, run_name
            )
            context.output_directory = str(output_directory)

        executor = QueryExecutor(
            self.registry,
            thinking_budget_tokens=self.settings.thinking_budget_tokens,
        )
        execution = await executor.execute(
            config,
            selection.models,
            QueryOptions(
                prompt=input_result.combined_content,
                system_prompt=options.system_prompt,
                timeout_ms=options.timeout_ms or self.settings.default_timeout_ms,
                enable_thinking=options.enable_thinking,
                on_status_update=options.on_status_update,
            ),
        )

        write_result = None
        if output_directory is not None:
            write_result = write_responses(
                execution.responses,
                output_directory,
                include_metadata=options.include_metadata,
                include_thinking=options.include_thinking,
            )

        summary = format_console_summary(
            execution,
            run_name=run_name,
            output_directory=str(output_directory) if output_directory else None,
            file_errors=write_result.errors if write_result else None,
        )
        return RunResult(
            run_name=run_name,
            input=input_result,
            selection=selection,
            execution=execution,
            output_directory=output_directory,
            write_result=write_result,
            summary=summary,
        )


async def run_fanout(
    options: RunOptions,
    settings: FanoutConfig | None = None,
    registry: ProviderRegistry | None = None,
) -> RunResult:
    """Functional entry point: run once with default collaborators."""
    return await FanoutWorkflow(settings=settings, registry=registry).run(options)
