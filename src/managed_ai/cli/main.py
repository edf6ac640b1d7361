"""CLI entry point for managed-ai."""

import typer

from managed_ai.cli.config import config_app
from managed_ai.cli.models import models_app
from managed_ai.cli.server import setup, status, teardown

app = typer.Typer(
    name="managed-ai",
    help="Lifecycle management for a local Ollama server",
    no_args_is_help=True,
)

app.command()(setup)
app.command()(teardown)
app.command()(status)
app.add_typer(models_app, name="models")
app.add_typer(config_app, name="config")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from managed_ai import __version__

        typer.echo(f"managed-ai version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """managed-ai: Install, start and stop a local Ollama server."""
    pass
