"""CLI models commands for managed-ai.

Provides subcommands for models on the managed server:
- pull: Download a model if it is not present yet
- list: List models available on the server
- delete: Remove a model from the server
"""

from pathlib import Path
from typing import Annotated

import typer

from managed_ai.cli.server import load_settings_or_exit, print_progress
from managed_ai.exceptions import ManagedAIError
from managed_ai.lifecycle.orchestrator import LifecycleOrchestrator
from managed_ai.logging import configure_logging, get_logger
from managed_ai.models.client import OllamaClient
from managed_ai.output import console, create_local_models_table, print_error, print_success
from managed_ai.server.instance import ServerInstance

_logger = get_logger("CLI.models")

models_app = typer.Typer(
    name="models",
    help="Pull and manage models on the Ollama server",
    no_args_is_help=True,
)


def _client(config: Path | None, host: str | None, port: int | None) -> OllamaClient:
    settings = load_settings_or_exit(config, host=host)
    try:
        resolved_port = port or LifecycleOrchestrator(settings).current_port()
    except ManagedAIError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None
    return OllamaClient(ServerInstance.from_settings(settings, port=resolved_port))


@models_app.command()
def pull(
    name: Annotated[str, typer.Argument(help="Model name, e.g. llama3.2")],
    version: Annotated[str, typer.Option("--version", "-v", help="Model version tag")] = "latest",
    config: Annotated[Path | None, typer.Option("--config", "-c", help="Config file path")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Server port")] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Pull a model onto the running server.

    Uses the port recorded by the last setup unless --port is given.

    Examples:
        managed-ai models pull llama3.2
        managed-ai models pull qwen2.5 --version 7b
    """
    configure_logging(log_level=log_level, console=False)
    _logger.info("CLI models pull: name={}, version={}, port={}", name, version, port)

    settings = load_settings_or_exit(config)
    try:
        outcome = LifecycleOrchestrator(settings).pull_model(
            name, version, on_progress=print_progress, port=port
        )
    except ManagedAIError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None

    if not outcome.success:
        print_error(f"Failed to pull {name}", suggestion=outcome.message)
        raise typer.Exit(code=1)
    print_success(outcome.message)


@models_app.command("list")
def list_models(
    config: Annotated[Path | None, typer.Option("--config", "-c", help="Config file path")] = None,
    host: Annotated[str | None, typer.Option("--host", "-h", help="Server host")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Server port")] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "WARNING",
) -> None:
    """List models available on the server.

    Examples:
        managed-ai models list
        managed-ai models list --port 11500
    """
    configure_logging(log_level=log_level, console=False)
    client = _client(config, host, port)
    try:
        models = client.list_models()
    except ManagedAIError as e:
        print_error(str(e), suggestion="Is the server running? Try: managed-ai setup")
        raise typer.Exit(code=1) from None

    if not models:
        console.print("[yellow]No models found on the server[/yellow]")
        console.print("[dim]Pull one with: managed-ai models pull <name>[/dim]")
        return
    console.print(create_local_models_table(models, title=f"Models at {client.instance.base_url}"))


@models_app.command()
def delete(
    name: Annotated[str, typer.Argument(help="Model name including tag, e.g. llama3.2:latest")],
    config: Annotated[Path | None, typer.Option("--config", "-c", help="Config file path")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Server port")] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Delete a model from the server."""
    configure_logging(log_level=log_level, console=False)
    client = _client(config, None, port)
    try:
        deleted = client.delete_model(name)
    except ManagedAIError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None

    if not deleted:
        print_error(f"Model {name} not found")
        raise typer.Exit(code=1)
    print_success(f"Deleted model {name}")
