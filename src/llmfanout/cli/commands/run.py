"""
Run command for the llmfanout CLI.

Sends one prompt to the selected models and writes one file per response.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from pydantic import BaseModel, Field, ValidationError, field_validator
from rich.console import Console
from rich.markup import escape

from llmfanout.core.formatting import format_duration
from llmfanout.core.types import ModelQueryStatus, QueryStatus
from llmfanout.core.workflow import FanoutWorkflow, RunOptions, RunResult
from llmfanout.utils.errors import FanoutError

console = Console()
error_console = Console(stderr=True)


class CLIRunArgs(BaseModel):
    """CLI run command arguments."""

    prompt: str = Field(..., description="Prompt text or prompt file")
    context: list[str] = Field(default_factory=list, description="Context files or directories")
    models: list[str] = Field(default_factory=list, description="Model keys")
    group: Optional[str] = Field(default=None, description="Group name")
    system_prompt: Optional[str] = Field(default=None, description="System prompt override")
    timeout: Optional[float] = Field(default=None, description="Per-model timeout in seconds")
    thinking: bool = Field(default=False, description="Enable extended reasoning")
    include_disabled: bool = Field(default=False, description="Query disabled models")
    output_dir: Optional[str] = Field(default=None, description="Base output directory")
    metadata: bool = Field(default=False, description="Include metadata in output files")
    show_thinking: bool = Field(default=False, description="Include thinking in output files")
    config: Optional[str] = Field(default=None, description="Models/groups file")

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("timeout must be greater than zero")
        return value

    def to_run_options(self) -> RunOptions:
        """One ``--model`` is a specific-model run; several form an explicit list."""
        specific = self.models[0] if len(self.models) == 1 else None
        return RunOptions(
            prompt=self.prompt,
            context_paths=list(self.context),
            models=list(self.models) if len(self.models) > 1 else None,
            specific_model=specific,
            group_name=self.group,
            system_prompt=self.system_prompt,
            timeout_ms=int(self.timeout * 1000) if self.timeout is not None else None,
            enable_thinking=self.thinking,
            include_disabled=self.include_disabled,
            output_dir=self.output_dir,
            include_metadata=self.metadata,
            include_thinking=self.show_thinking,
            config_path=self.config,
        )


def _print_status(model_key: str, status: ModelQueryStatus, _: dict) -> None:
    """Status callback: one line per finished model."""
    if status.status == QueryStatus.SUCCESS:
        console.print(f"  [green]✓[/green] {model_key} [dim]({format_duration(status.duration_ms)})[/dim]")
    elif status.status == QueryStatus.ERROR:
        console.print(f"  [red]✗[/red] {model_key} [dim]{escape(status.message or '')}[/dim]")


def _print_result(result: RunResult) -> None:
    for warning in result.selection.warnings:
        console.print(f"[yellow]! {escape(warning)}[/yellow]")
    context_errors = result.input.context_errors
    if context_errors:
        console.print(f"[yellow]! Skipped {len(context_errors)} unreadable context file(s)[/yellow]")
    console.print()
    console.print(result.summary, markup=False, highlight=False)


async def _run_async(args: CLIRunArgs) -> RunResult:
    options = args.to_run_options()
    options.on_status_update = _print_status
    return await FanoutWorkflow().run(options)


def run(
    prompt: Annotated[
        str,
        typer.Argument(help="Prompt text, or a file containing the prompt"),
    ],
    context: Annotated[
        Optional[List[Path]],
        typer.Argument(help="Context files or directories"),
    ] = None,
    model: Annotated[
        Optional[List[str]],
        typer.Option("--model", "-m", help="Model key provider:modelId (repeatable)"),
    ] = None,
    group: Annotated[
        Optional[str],
        typer.Option("--group", "-g", help="Query the models of this group"),
    ] = None,
    system_prompt: Annotated[
        Optional[str],
        typer.Option("--system-prompt", help="System prompt for every model"),
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Per-model timeout in seconds"),
    ] = None,
    thinking: Annotated[
        bool,
        typer.Option("--thinking", help="Enable extended reasoning on supported models"),
    ] = False,
    show_thinking: Annotated[
        bool,
        typer.Option("--show-thinking", help="Write thinking output to the response files"),
    ] = False,
    include_disabled: Annotated[
        bool,
        typer.Option("--include-disabled", help="Also query models marked disabled"),
    ] = False,
    output_dir: Annotated[
        Optional[str],
        typer.Option("--output-dir", "-o", help="Base directory for run output"),
    ] = None,
    metadata: Annotated[
        bool,
        typer.Option("--metadata", help="Include response metadata in output files"),
    ] = False,
    config: Annotated[
        Optional[str],
        typer.Option("--config", "-c", help="Models/groups YAML file"),
    ] = None,
) -> None:
    """
    Send a prompt to several models concurrently.

    Examples:
        llmfanout run "Explain CRDTs" --group chat
        llmfanout run prompt.md src/ -m openai:gpt-4o -m anthropic:claude-3-7-sonnet-20250219
    """
    try:
        args = CLIRunArgs(
            prompt=prompt,
            context=[str(p) for p in context] if context else [],
            models=model or [],
            group=group,
            system_prompt=system_prompt,
            timeout=timeout,
            thinking=thinking,
            include_disabled=include_disabled,
            output_dir=output_dir,
            metadata=metadata,
            show_thinking=show_thinking,
            config=config,
        )
    except ValidationError as e:
        error_console.print(f"[red]Error:[/red] {e.errors()[0]['msg']}")
        raise typer.Exit(code=1)

    try:
        result = asyncio.run(_run_async(args))
    except FanoutError as e:
        error_console.print(e.format(), style="red", markup=False, highlight=False)
        raise typer.Exit(code=1)

    _print_result(result)


__all__ = ["run", "CLIRunArgs"]
