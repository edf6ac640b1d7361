"""Setup and teardown of a managed Ollama server.

Composes the port resolver, installer, supervisor, health prober and model
puller into the four operations a pipeline calls: setup, teardown, status
and pull_model. Each returns an outcome value; failures carry the error and
a remediation message instead of raising.
"""

from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path

from managed_ai.config.schema import ManagedAISettings
from managed_ai.exceptions import (
    InstallationError,
    ManagedAIError,
    ModelPullError,
    NoPortAvailableError,
    PortConflictError,
    ProcessStopError,
    ServerError,
    StartupTimeoutError,
    UnsupportedPlatformError,
)
from managed_ai.host.ops import PlatformOps, get_platform_ops
from managed_ai.lifecycle import diagnostics
from managed_ai.lifecycle.cache import TaskCache
from managed_ai.logging import get_logger
from managed_ai.models.client import OllamaClient
from managed_ai.models.puller import ModelPuller, ProgressCallback, PullState
from managed_ai.server.health import check_health, get_models, wait_for_health
from managed_ai.server.installer import InstallationResult, InstallationType, Installer
from managed_ai.server.instance import ServerInstance
from managed_ai.server.locator import ExecutableLocator
from managed_ai.server.ports import PortResolver, PortStatus
from managed_ai.server.supervisor import ProcessSupervisor

_logger = get_logger("Orchestrator")


@dataclass
class SetupOutcome:
    """Result of a setup run."""

    success: bool
    bound_port: int | None = None
    installation_type: InstallationType | None = None
    message: str = ""
    error: ManagedAIError | None = None
    failed_models: list[str] = field(default_factory=list)


@dataclass
class TeardownOutcome:
    """Result of a teardown run."""

    success: bool
    message: str = ""
    error: ProcessStopError | None = None


@dataclass
class StatusReport:
    """Current state of the managed server."""

    process_running: bool
    service_healthy: bool
    endpoint: str
    health: str = "unknown"  # "healthy" | "unhealthy" | "unknown"
    models: list[str] = field(default_factory=list)
    pid: int | None = None


@dataclass
class PullOutcome:
    """Result of a model pull."""

    success: bool
    message: str = ""
    state: PullState = PullState.NOT_REQUESTED
    error: ModelPullError | None = None


class LifecycleOrchestrator:
    """Runs the managed server lifecycle for one set of settings.

    Collaborators can be injected; anything not given is built from the
    settings on first use.
    """

    def __init__(
        self,
        settings: ManagedAISettings,
        ops: PlatformOps | None = None,
        port_resolver: PortResolver | None = None,
        locator: ExecutableLocator | None = None,
        installer: Installer | None = None,
        supervisor: ProcessSupervisor | None = None,
        cache: TaskCache | None = None,
        state_dir: Path | None = None,
        project_dir: Path | None = None,
    ) -> None:
        self._settings = settings
        self._ops = ops
        self._port_resolver = port_resolver or PortResolver()
        self._locator = locator
        self._installer = installer
        self._supervisor = supervisor
        self._cache = cache or TaskCache(default_ttl=settings.lifecycle.cache_ttl)
        self._state_dir = state_dir
        self._project_dir = project_dir or Path.cwd()

    @property
    def settings(self) -> ManagedAISettings:
        return self._settings

    @cached_property
    def ops(self) -> PlatformOps:
        """Platform operations. Raises UnsupportedPlatformError on unknown hosts."""
        return self._ops or get_platform_ops()

    @cached_property
    def locator(self) -> ExecutableLocator:
        return self._locator or ExecutableLocator(
            self.ops,
            project_dir=self._project_dir,
            install_path=self._settings.server.install_path,
        )

    @cached_property
    def installer(self) -> Installer:
        return self._installer or Installer(
            self.locator, self.ops, version=self._settings.server.version
        )

    @cached_property
    def supervisor(self) -> ProcessSupervisor:
        return self._supervisor or ProcessSupervisor(
            self.ops,
            state_dir=self._state_dir,
            settle_delay=self._settings.lifecycle.settle_delay,
        )

    def _context(self, port: int | None = None) -> dict[str, object]:
        server = self._settings.server
        return {
            "host": server.host,
            "port": port if port is not None else server.port,
            "strategy": server.installation_strategy.value,
            "environment": server.environment_type.value,
        }

    def _install_context(self, port: int) -> dict[str, object]:
        server = self._settings.server
        return {
            **self._context(port),
            "version": server.version,
            "isolated_executable": self.locator.isolated_path,
            "install_path": server.install_path or "(not set)",
        }

    def _instance(self, port: int) -> ServerInstance:
        instance = ServerInstance.from_settings(self._settings, port=port)
        data_path = instance.isolated_data_path
        if data_path is not None and not Path(data_path).is_absolute():
            return ServerInstance(
                host=instance.host,
                port=instance.port,
                protocol=instance.protocol,
                timeout=instance.timeout,
                is_isolated=True,
                isolated_data_path=str(self._project_dir / data_path),
            )
        return instance

    def current_port(self) -> int:
        """Port recorded by the last setup, or the configured one."""
        return self.supervisor.read_port() or self._settings.server.port

    def setup(self, on_progress: ProgressCallback | None = None) -> SetupOutcome:
        """Bring up a ready server and pull preload models.

        Args:
            on_progress: Optional callback receiving model pull progress.
        """
        _logger.info("Setting up managed Ollama server")
        try:
            return self._setup(on_progress)
        except UnsupportedPlatformError as e:
            message = diagnostics.contextual_error("setup", e, self._context())
            _logger.error("Setup failed: {}", e)
            return SetupOutcome(success=False, message=message, error=e)

    def _setup(self, on_progress: ProgressCallback | None) -> SetupOutcome:
        server = self._settings.server
        lifecycle = self._settings.lifecycle

        resolution = self._port_resolver.resolve(server.port, server.host, server.allow_port_change)
        port = resolution.port

        if resolution.status == PortStatus.SERVICE_RUNNING:
            _logger.info("Ollama is already running on {}:{}, skipping startup", server.host, port)
            self.supervisor.record_port(port)
            return self._finish_setup(
                port, None, f"Ollama is already running at {self._instance(port).base_url}", on_progress
            )
        if resolution.status == PortStatus.CONFLICT:
            return self._fail(
                PortConflictError(f"Port {port} is in use"),
                diagnostics.port_conflict(port, server.host, allow_port_change=False),
                port,
            )
        if resolution.status == PortStatus.NO_ALTERNATIVE:
            return self._fail(
                NoPortAvailableError(f"No port available near {port}"),
                diagnostics.port_conflict(port, server.host, allow_port_change=True),
                port,
            )
        if port != server.port:
            _logger.info("Using alternative port {} instead of {}", port, server.port)

        installation = self._ensure_installed()
        executable = installation.executable_path
        if not installation.success or executable is None:
            return self._fail(
                InstallationError(installation.message),
                diagnostics.installation_failure(
                    installation.message,
                    lifecycle.auto_install,
                    failure=installation.failure,
                    context=self._install_context(port),
                ),
                port,
            )

        if not lifecycle.auto_start:
            _logger.info("auto_start is disabled, not starting the server")
            return SetupOutcome(
                success=True,
                bound_port=port,
                installation_type=installation.installation_type,
                message=f"Ollama available at {executable} (not started)",
            )

        instance = self._instance(port)
        started = self.supervisor.start(
            executable,
            server.host,
            port,
            extra_args=server.additional_args,
            isolated_data_path=instance.isolated_data_path,
            data_path=server.data_path,
        )
        if not started:
            log_tail = self.supervisor.log_tail(30)
            reason = "Server process exited during startup"
            if log_tail:
                reason += f"\n\nServer log:\n{log_tail}"
            return self._fail(
                ServerError(reason),
                diagnostics.startup_failure(reason, server.host, port),
                port,
                installation.installation_type,
            )

        if not wait_for_health(instance, lifecycle.ready_timeout, lifecycle.health_interval):
            # Only a process spawned here is stopped; a server found already running is left alone
            if self.supervisor.managed is not None:
                self.supervisor.stop()
            reason = f"Server did not become healthy within {lifecycle.ready_timeout}s"
            return self._fail(
                StartupTimeoutError(reason),
                diagnostics.startup_failure(reason, server.host, port),
                port,
                installation.installation_type,
            )

        self.supervisor.record_port(port)
        return self._finish_setup(
            port,
            installation.installation_type,
            f"Ollama is running at {instance.base_url}",
            on_progress,
        )

    def _ensure_installed(self) -> InstallationResult:
        server = self._settings.server
        lifecycle = self._settings.lifecycle
        if not lifecycle.auto_install:
            existing = self.installer.locate_existing()
            if existing is None:
                return InstallationResult(
                    success=False,
                    executable_path=None,
                    installation_type=InstallationType.EXISTING_SYSTEM,
                    message="Ollama executable not found and auto_install is disabled",
                )
            return existing

        self._cache.cleanup_expired()
        key = f"install:{server.installation_strategy.value}:{self.locator.isolated_path}"
        return self._cache.execute(
            key,
            lambda: self.installer.install(server.installation_strategy),
            ttl=lifecycle.cache_ttl,
            should_cache=lambda result: result.success,
        )

    def _finish_setup(
        self,
        port: int,
        installation_type: InstallationType | None,
        message: str,
        on_progress: ProgressCallback | None,
    ) -> SetupOutcome:
        failed: list[str] = []
        for model in self._settings.preload_models:
            outcome = self.pull_model(model.name, model.version, on_progress=on_progress, port=port)
            if not outcome.success:
                _logger.warning("Preloading {} failed", model.full_name)
                failed.append(model.full_name)
        if failed:
            message += f"\nFailed to preload models: {', '.join(failed)}"
        _logger.info("Setup complete on port {}", port)
        return SetupOutcome(
            success=True,
            bound_port=port,
            installation_type=installation_type,
            message=message,
            failed_models=failed,
        )

    def _fail(
        self,
        error: ManagedAIError,
        message: str,
        port: int,
        installation_type: InstallationType | None = None,
    ) -> SetupOutcome:
        _logger.error("Setup failed (port {}): {}", port, error)
        return SetupOutcome(
            success=False,
            bound_port=None,
            installation_type=installation_type,
            message=message,
            error=error,
        )

    def teardown(self) -> TeardownOutcome:
        """Stop the server. Stop problems are logged, never fatal."""
        server = self._settings.server
        if server.graceful_shutdown:
            stopped = self.supervisor.stop_gracefully(server.shutdown_timeout)
        else:
            stopped = self.supervisor.stop()
        _logger.debug("Clearing task cache: {}", self._cache.stats())
        self._cache.clear_all()

        if not stopped:
            error = ProcessStopError("Stop reported a failure; Ollama processes may still be running")
            _logger.warning("Teardown: {}", error)
            return TeardownOutcome(success=True, message=str(error), error=error)
        return TeardownOutcome(success=True, message="Ollama server stopped")

    def status(self) -> StatusReport:
        """Report whether the server process runs and answers requests."""
        port = self.current_port()
        instance = self._instance(port)
        running = self.supervisor.is_running(port)
        health = check_health(instance, timeout=2.0)
        models = get_models(instance, timeout=2.0) if health == "healthy" else []
        return StatusReport(
            process_running=running,
            service_healthy=health == "healthy",
            endpoint=instance.base_url,
            health=health,
            models=models,
            pid=self.supervisor.read_pid(),
        )

    def pull_model(
        self,
        name: str,
        version: str = "latest",
        on_progress: ProgressCallback | None = None,
        port: int | None = None,
    ) -> PullOutcome:
        """Make sure a model is present on the server, pulling it if needed."""
        full_name = name if ":" in name or not version else f"{name}:{version}"
        port = port if port is not None else self.current_port()
        client = OllamaClient(self._instance(port), pull_timeout=self._settings.lifecycle.timeout)
        puller = ModelPuller(client, progress_step=self._settings.lifecycle.progress_step)

        if on_progress is not None:
            pulled = puller.pull_with_progress(full_name, on_progress)
        else:
            pulled = puller.pull(full_name)

        if pulled:
            return PullOutcome(
                success=True, message=f"Model {full_name} is available", state=puller.last_state
            )
        error = puller.last_error or "unknown error"
        return PullOutcome(
            success=False,
            message=diagnostics.model_failure(error, full_name),
            state=puller.last_state,
            error=ModelPullError(error),
        )
