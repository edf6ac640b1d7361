"""Shared console and output helpers for the managed-ai CLI.

Provides a single Console instance and formatting utilities.
"""

from rich.console import Console

from managed_ai.models.schema import PullProgress

# Shared console instance - use this everywhere for consistent output
console = Console()


def format_bytes(size: int | None) -> str:
    """Format a byte count for display.

    Args:
        size: Number of bytes, or None if unknown.

    Returns:
        Formatted string (e.g., "4.7 GB", "512.0 MB", "-").
    """
    if size is None:
        return "-"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def format_progress(progress: PullProgress) -> str:
    """One-line description of a pull progress record."""
    if progress.total and progress.completed is not None and not progress.error:
        return (
            f"{progress.label} "
            f"[dim]{format_bytes(progress.completed)} / {format_bytes(progress.total)}[/dim]"
        )
    return progress.label


def print_success(message: str) -> None:
    """Print a success message with green checkmark.

    Args:
        message: The message to display.
    """
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str, suggestion: str | None = None) -> None:
    """Print an error message with red X and optional suggestion.

    Args:
        message: The error message.
        suggestion: Optional suggestion for how to fix the error.
    """
    console.print(f"[red]✗ {message}[/red]")
    if suggestion:
        console.print(f"\n{suggestion}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str) -> None:
    console.print(f"[blue]ℹ[/blue] {message}")
