"""
Models command for the llmfanout CLI.

Lists configured models with their group, enabled flag and whether a
credential is available.
"""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from llmfanout.core.catalog import find_group_for, group_models
from llmfanout.core.config import get_config, load_app_config
from llmfanout.core.credentials import CredentialStore, EnvCredentialStore
from llmfanout.core.types import AppConfig, ModelConfig
from llmfanout.utils.errors import FanoutError, credential_env_var, group_not_found_error

app = typer.Typer(help="List configured models")
console = Console()
error_console = Console(stderr=True)


def build_models_table(
    config: AppConfig,
    credentials: CredentialStore,
    group: str | None = None,
) -> Table:
    """Rich table of the configured (or one group's) models."""
    if group is not None:
        if group not in config.groups:
            raise group_not_found_error(group, list(config.groups))
        models: list[ModelConfig] = group_models(config, group, include_disabled=True)
        title = f"Models in group '{group}'"
    else:
        models = config.models
        title = "Configured Models"

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Model", style="cyan")
    table.add_column("Group")
    table.add_column("Enabled")
    table.add_column("API Key")

    for model in models:
        membership = find_group_for(config, model)
        enabled = "[green]Yes[/green]" if model.enabled else "[dim]No[/dim]"
        env_var = model.api_key_env_var or credential_env_var(model.provider)
        has_key = credentials.has_credential(model.provider, model.api_key_env_var)
        key_status = "[green]Set[/green]" if has_key else f"[yellow]Missing ({env_var})[/yellow]"
        table.add_row(
            model.key,
            membership.group_name if membership else "-",
            enabled,
            key_status,
        )
    return table


@app.callback(invoke_without_command=True)
def models(
    group: Annotated[
        Optional[str],
        typer.Option("--group", "-g", help="Only list the models of this group"),
    ] = None,
    config: Annotated[
        Optional[str],
        typer.Option("--config", "-c", help="Models/groups YAML file"),
    ] = None,
) -> None:
    """List configured models and whether they can be queried."""
    try:
        app_config = load_app_config(config or get_config().config_path)
        table = build_models_table(app_config, EnvCredentialStore(), group)
    except FanoutError as e:
        error_console.print(e.format(), style="red", markup=False, highlight=False)
        raise typer.Exit(code=1)

    console.print()
    console.print(table)
    if app_config.groups:
        console.print()
        console.print(f"[dim]Groups: {', '.join(app_config.groups)}[/dim]")
    console.print()


__all__ = ["app", "models", "build_models_table"]
