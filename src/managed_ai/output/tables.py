"""Table factory methods for the managed-ai CLI.

Provides consistent table styling across all commands.
"""

from rich.table import Table

from managed_ai.lifecycle.orchestrator import StatusReport
from managed_ai.models.schema import ModelInfo


def create_local_models_table(
    models: list[ModelInfo],
    title: str = "Local Models",
) -> Table:
    """Create a table for models available on the server.

    Args:
        models: Models as listed by the server.
        title: Table title.

    Returns:
        A Rich Table with local model data.
    """
    table = Table(title=title, expand=True)
    table.add_column("Model", style="cyan", no_wrap=True, ratio=3)
    table.add_column("Size", style="green", justify="right", width=8)
    table.add_column("Modified", style="dim", no_wrap=True)

    for model in models:
        modified = (model.modified_at or "-")[:19].replace("T", " ")
        table.add_row(model.name, model.size_gb, modified)

    return table


def create_status_table(report: StatusReport, log_file: str | None = None) -> Table:
    """Create a two-column table describing server status."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value")

    running = "[green]running[/green]" if report.process_running else "[red]not running[/red]"
    health_style = {"healthy": "green", "unhealthy": "red"}.get(report.health, "yellow")
    table.add_row("Process", running)
    table.add_row("Health", f"[{health_style}]{report.health}[/{health_style}]")
    table.add_row("Endpoint", report.endpoint)
    if report.pid is not None:
        table.add_row("PID", str(report.pid))
    table.add_row("Models", ", ".join(report.models) if report.models else "[dim]none[/dim]")
    if log_file:
        table.add_row("Log", log_file)
    return table
