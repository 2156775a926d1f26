"""Command groups for the codespan CLI.

  cspan config -- persisted ``[engine]`` defaults
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from . import config, config_manager
from .errors import UsageError

console = Console()

# ── Configuration group ──────────────────────────────────────
config_grp = typer.Typer(
    help="⚙️  Configuration: engine defaults stored in config.toml.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@config_grp.command("show")
def show_config():
    """Show effective engine defaults and where they come from."""
    stored = config_manager.load_engine_section()
    try:
        effective = config.load_engine_config()
    except UsageError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)

    table = Table(title="Engine defaults", show_header=True, show_lines=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Source", style="dim")
    for key, value in effective.to_dict().items():
        source = "config" if key in stored else "default"
        table.add_row(key, str(value), source)
    console.print(table)
    typer.echo(f"Config file: {config_manager.CONFIG_FILE}")


@config_grp.command("set")
def set_config(
    key: str = typer.Argument(..., help="Setting name, e.g. context_lines or import_mode."),
    value: str = typer.Argument(..., help="New value."),
):
    """Persist one engine default."""
    try:
        effective = config_manager.save_engine_setting(key, value)
    except KeyError:
        known = ", ".join(config.EngineConfig.__dataclass_fields__)
        raise typer.BadParameter(f"Unknown setting '{key}'. Known settings: {known}")
    except UsageError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(f"Set {key} = {getattr(effective, key)}")


@config_grp.command("reset")
def reset_config():
    """Remove stored engine defaults."""
    if config_manager.clear_engine_config():
        typer.echo("Engine defaults reset.")
    else:
        typer.echo("Could not write config file.", err=True)
        raise typer.Exit(code=1)
