"""CLI lifecycle commands for managed-ai.

Provides the top-level commands for the managed server:
- setup: Install if needed, start, wait until ready, preload models
- teardown: Stop the server
- status: Show whether the server runs and answers requests
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel

from managed_ai.config.loader import load_config
from managed_ai.config.schema import InstallationStrategy, ManagedAISettings
from managed_ai.exceptions import ConfigError, ManagedAIError
from managed_ai.lifecycle.orchestrator import LifecycleOrchestrator
from managed_ai.logging import configure_logging, get_logger
from managed_ai.models.schema import PullProgress
from managed_ai.output import (
    console,
    create_status_table,
    format_progress,
    print_error,
    print_success,
    print_warning,
)

_logger = get_logger("CLI.server")


def load_settings_or_exit(
    config: Path | None,
    port: int | None = None,
    host: str | None = None,
    strategy: InstallationStrategy | None = None,
) -> ManagedAISettings:
    """Load configuration, printing the problem and exiting 1 on error."""
    try:
        return load_config(config_path=config, port=port, host=host, strategy=strategy)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None


def print_progress(progress: PullProgress) -> None:
    console.print(f"  {format_progress(progress)}")


def setup(
    config: Annotated[Path | None, typer.Option("--config", "-c", help="Config file path")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Server port")] = None,
    host: Annotated[str | None, typer.Option("--host", "-h", help="Server host")] = None,
    strategy: Annotated[
        InstallationStrategy | None,
        typer.Option("--strategy", "-s", help="Installation strategy", case_sensitive=False),
    ] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Install (if needed) and start Ollama, then preload configured models.

    Examples:
        managed-ai setup
        managed-ai setup --port 11500 --strategy isolated_only
    """
    configure_logging(log_level=log_level, console=False)
    _logger.info("CLI setup command: port={}, host={}, strategy={}, config={}", port, host, strategy, config)

    settings = load_settings_or_exit(config, port=port, host=host, strategy=strategy)
    orchestrator = LifecycleOrchestrator(settings)

    console.print(
        f"[cyan]Setting up Ollama on {settings.server.host}:{settings.server.port} "
        f"(strategy: {settings.server.installation_strategy.value})...[/cyan]"
    )
    outcome = orchestrator.setup(on_progress=print_progress)

    if not outcome.success:
        _logger.error("Setup failed: {}", outcome.error)
        console.print(
            Panel(
                outcome.message or "Unknown error",
                title="[bold red]Setup Failed[/bold red]",
                border_style="red",
            )
        )
        raise typer.Exit(code=1)

    if outcome.bound_port is not None and outcome.bound_port != settings.server.port:
        print_warning(f"Port {settings.server.port} was busy, using port {outcome.bound_port}")
    first_line, _, rest = outcome.message.partition("\n")
    print_success(first_line)
    if outcome.installation_type is not None:
        console.print(f"[dim]Installation: {outcome.installation_type.value}[/dim]")
    if outcome.failed_models:
        print_warning(rest.strip())


def teardown(
    config: Annotated[Path | None, typer.Option("--config", "-c", help="Config file path")] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Stop the managed Ollama server."""
    configure_logging(log_level=log_level, console=False)
    _logger.info("CLI teardown command")

    settings = load_settings_or_exit(config)
    try:
        outcome = LifecycleOrchestrator(settings).teardown()
    except ManagedAIError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None

    if outcome.error is not None:
        print_warning(outcome.message)
    else:
        print_success(outcome.message)


def status(
    config: Annotated[Path | None, typer.Option("--config", "-c", help="Config file path")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Server port")] = None,
    host: Annotated[str | None, typer.Option("--host", "-h", help="Server host")] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "WARNING",
) -> None:
    """Show whether the Ollama server is running and healthy."""
    configure_logging(log_level=log_level, console=False)

    settings = load_settings_or_exit(config, port=port, host=host)
    orchestrator = LifecycleOrchestrator(settings)
    try:
        report = orchestrator.status()
        log_file = str(orchestrator.supervisor.log_file)
    except ManagedAIError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None

    border = "green" if report.service_healthy else "red"
    console.print(
        Panel(
            create_status_table(report, log_file=log_file),
            title="[bold]Ollama Server[/bold]",
            border_style=border,
        )
    )
