"""CLI config commands for managed-ai.

Provides subcommands for configuration management:
- show: Display resolved configuration values
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from managed_ai.cli.server import load_settings_or_exit
from managed_ai.config.loader import CONFIG_FILENAME, USER_CONFIG_PATH, discover_config_path
from managed_ai.logging import configure_logging, get_logger
from managed_ai.output import console

_logger = get_logger("CLI.config")

config_app = typer.Typer(
    name="config",
    help="Manage configuration",
    no_args_is_help=True,
)


def _display(value: object) -> str:
    if value is None:
        return "[dim]not set[/dim]"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or "[dim]none[/dim]"
    return str(getattr(value, "value", value))


@config_app.command()
def show(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Config file path"),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option("--log-level", "-l", help="Log level"),
    ] = "WARNING",
) -> None:
    """Show resolved configuration values.

    Examples:
        managed-ai config show
        managed-ai config show --config /path/to/managed-ai.toml
    """
    configure_logging(log_level=log_level, console=False)
    _logger.info("CLI config show command")

    config_file = config or discover_config_path()
    settings = load_settings_or_exit(config)

    console.print()
    if config_file:
        console.print(f"[cyan]Configuration file:[/cyan] {config_file}\n")
    else:
        console.print("[yellow]No configuration file found[/yellow]")
        console.print("[dim]Using default values[/dim]\n")

    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    for section, model in (("Server", settings.server), ("Lifecycle", settings.lifecycle)):
        table.add_row(f"[bold]{section}[/bold]", "")
        for key, value in model.model_dump().items():
            table.add_row(f"  {key}", _display(value))
        table.add_row("", "")

    table.add_row("[bold]Models[/bold]", "" if settings.models else "[dim]none[/dim]")
    for model in settings.models:
        preload = " [green](preload)[/green]" if model.preload else ""
        table.add_row("", f"{model.full_name}{preload}")

    console.print(Panel(table, title="[bold cyan]Configuration[/bold cyan]", border_style="cyan"))
    console.print()

    console.print("[dim]Config search paths:[/dim]")
    console.print(f"  [dim]1.[/dim] ./{CONFIG_FILENAME}")
    console.print(f"  [dim]2.[/dim] {USER_CONFIG_PATH}")
    console.print()
