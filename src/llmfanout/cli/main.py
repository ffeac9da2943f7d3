"""
Main llmfanout CLI application.

Provides the entry point for the llmfanout command-line interface.
"""

from __future__ import annotations

import sys
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from llmfanout.cli.commands import models, run
from llmfanout.core.config import get_config
from llmfanout.utils.errors import FanoutError
from llmfanout.utils.logging import setup_logging

# =============================================================================
# CLI Application Setup
# =============================================================================

app = typer.Typer(
    name="llmfanout",
    help="llmfanout - send one prompt to many LLMs at once",
    add_completion=False,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

console = Console()
error_console = Console(stderr=True)

app.command(name="run")(run.run)
app.add_typer(models.app, name="models")


# =============================================================================
# Version and Settings
# =============================================================================


def _get_version() -> str:
    from llmfanout import __version__

    return __version__


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]llmfanout[/bold blue] version [green]{_get_version()}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging on stderr"),
    ] = False,
) -> None:
    """
    llmfanout - send one prompt to many LLMs at once.

    Models are configured in a YAML file (models and groups); API keys are
    read from <PROVIDER>_API_KEY environment variables or a .env file.

    Examples:
        llmfanout run "Explain CRDTs" --group chat
        llmfanout run prompt.md src/ -m openai:gpt-4o
        llmfanout models
    """
    try:
        settings = get_config()
    except FanoutError as e:
        error_console.print(e.format(), style="red", markup=False, highlight=False)
        raise typer.Exit(code=1)
    setup_logging(
        level="DEBUG" if verbose else settings.logging.level,
        json_format=settings.logging.json_format,
        log_file=settings.logging.log_file,
    )


@app.command()
def version() -> None:
    """Show version."""
    version_callback(True)


@app.command()
def config() -> None:
    """Display resolved settings."""
    settings = get_config()

    table = Table(title="llmfanout Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    values = settings.to_dict()
    table.add_row("Models File", values["config_path"])
    table.add_row("Output Directory", values["output_dir"])
    table.add_row("Timeout", f"{settings.default_timeout_ms:,} ms")
    table.add_row("Thinking Budget", f"{settings.thinking_budget_tokens:,} tokens")
    table.add_row("Log Level", settings.logging.level)
    table.add_row("JSON Logs", "Yes" if settings.logging.json_format else "No")

    console.print()
    console.print(table)
    console.print()


# =============================================================================
# Entry Point
# =============================================================================


def cli() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        error_console.print(f"[red]Unexpected error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()


__all__ = ["app", "cli", "main"]
