"""Multi-line remediation messages for lifecycle failures.

Each builder classifies the underlying failure and returns a message with
probable causes and concrete steps, referring to managed-ai.toml settings.
"""

from collections.abc import Mapping

from managed_ai.server.installer import InstallFailure

DOWNLOAD_URL = "https://ollama.com/download"
LIBRARY_URL = "https://ollama.com/library"


def _steps(
    title: str,
    steps: list[str],
    causes: list[str] | None = None,
    heading: str = "To resolve this",
    detail: str | None = None,
) -> str:
    lines = [title, ""]
    if detail:
        lines.extend([f"Error: {detail}", ""])
    if causes:
        lines.append("Possible causes:")
        lines.extend(f"{i}. {c}" for i, c in enumerate(causes, 1))
        lines.append("")
    lines.append(f"{heading}:")
    lines.extend(f"{i}. {s}" for i, s in enumerate(steps, 1))
    return "\n".join(lines)


def _context_lines(context: Mapping[str, object] | None) -> list[str]:
    if not context:
        return []
    return ["", "Context:", *(f"  {key}: {value}" for key, value in context.items())]


def installation_failure(
    error: str,
    auto_install: bool = True,
    failure: InstallFailure | None = None,
    context: Mapping[str, object] | None = None,
) -> str:
    """Explain why no Ollama executable is available.

    The failure kind reported by the installer picks the remediation steps;
    the error text and the settings in context are always included.
    """
    if not auto_install:
        message = _steps(
            "Ollama is not installed and auto-installation is disabled.",
            [
                f"Install Ollama manually from {DOWNLOAD_URL}",
                "Or enable auto-installation: set auto_install = true under [lifecycle]",
                "Or point install_path under [server] at an existing executable",
            ],
            detail=error,
        )
    elif failure == InstallFailure.PERMISSION:
        message = _steps(
            "Ollama installation failed due to permission issues.",
            [
                "Run with elevated permissions for system-wide installs",
                f"Or install Ollama manually: {DOWNLOAD_URL}",
                "Or use a user-writable install_path or the isolated_only strategy",
            ],
            detail=error,
        )
    elif failure == InstallFailure.NETWORK:
        message = _steps(
            "Ollama installation failed due to network issues.",
            [
                "Check your internet connection",
                "Check whether a proxy or corporate firewall blocks github.com",
                "Check that version under [server] names a published Ollama release",
                f"Try installing manually: {DOWNLOAD_URL}",
            ],
            detail=error,
        )
    elif failure == InstallFailure.ARCHIVE:
        message = _steps(
            "The downloaded Ollama release archive is unusable.",
            [
                "Run setup again in case the download was truncated",
                "Check that version under [server] names a release with a build for this platform",
                f"Try installing manually: {DOWNLOAD_URL}",
            ],
            detail=error,
        )
    elif failure == InstallFailure.TIMEOUT:
        message = _steps(
            "The system-wide Ollama installer did not finish in time.",
            [
                "Run the installer manually to see where it stalls",
                "Or use the isolated_only strategy to avoid the system installer",
            ],
            detail=error,
        )
    else:
        message = _steps(
            f"Ollama installation failed: {error}",
            [
                f"Install Ollama manually from {DOWNLOAD_URL}",
                "Check system requirements and compatibility",
                "Verify disk space and permissions",
            ],
        )
    return "\n".join([message, *_context_lines(context)])


def startup_failure(error: str, host: str, port: int) -> str:
    """Explain why the server did not start or become ready."""
    lowered = error.lower()
    if "port" in lowered or "address already in use" in lowered:
        return _steps(
            f"Ollama failed to start on port {port}.",
            [
                f"Use a different port: set port = {port + 1} under [server]",
                f"Stop other services using port {port}",
                "Check firewall settings",
            ],
            causes=[
                f"Port {port} is already in use by another service",
                f"Insufficient permissions to bind to port {port}",
                "Firewall blocking the port",
            ],
        )
    if "executable" in lowered or "no such file" in lowered:
        return _steps(
            "Ollama executable not found or not executable.",
            [
                f"Reinstall Ollama from {DOWNLOAD_URL}",
                "Check file permissions on the Ollama executable",
                "Verify the PATH environment variable",
            ],
        )
    if "timeout" in lowered or "timed out" in lowered or "healthy" in lowered:
        return _steps(
            f"Ollama startup on {host}:{port} timed out.",
            [
                "Increase ready_timeout under [lifecycle]",
                "Check system resources (CPU, memory)",
                "Try starting manually to diagnose issues: ollama serve",
            ],
            causes=[
                "System is under heavy load",
                "Insufficient system resources",
                "Ollama is taking longer than expected to start",
            ],
        )
    return _steps(
        f"Ollama startup failed: {error}",
        [
            "Try starting Ollama manually: ollama serve",
            "Check the server log: managed-ai status shows its location",
            "Verify system requirements are met",
        ],
        heading="To diagnose",
    )


def port_conflict(port: int, host: str, allow_port_change: bool) -> str:
    """Explain a port that cannot be used."""
    if allow_port_change:
        return _steps(
            f"Port {port} is already in use on {host} and no alternative port was found.",
            [
                "Free a port near the configured one",
                "Configure a different port: set port under [server]",
                "Check for leftover Ollama processes: managed-ai teardown",
            ],
        )
    return _steps(
        f"Port {port} is already in use on {host} and port changes are not allowed.",
        [
            f"Stop the service using port {port}",
            "Configure a different port: set port under [server]",
            "Enable automatic port resolution: set allow_port_change = true under [server]",
        ],
    )


def model_failure(error: str, model_name: str) -> str:
    """Explain a failed model pull."""
    lowered = error.lower()
    if "not found" in lowered or "file does not exist" in lowered:
        return _steps(
            f"Model '{model_name}' not found.",
            [
                "Check the model name spelling",
                f"Browse available models at {LIBRARY_URL}",
                "Try a different model version or tag",
            ],
        )
    if any(word in lowered for word in ("network", "connect", "interrupted", "timed out")):
        return _steps(
            f"Failed to download model '{model_name}' due to network issues.",
            [
                "Check your internet connection",
                "Verify firewall and proxy settings",
                f"Try downloading manually: ollama pull {model_name}",
            ],
        )
    if "space" in lowered:
        return _steps(
            f"Insufficient disk space to download model '{model_name}'.",
            [
                "Free up disk space",
                "Move the model store: set data_path under [server]",
                "Use a smaller model variant",
            ],
        )
    return _steps(
        f"Model operation failed for '{model_name}': {error}",
        [
            "Check the server status: managed-ai status",
            f"Try the operation manually: ollama pull {model_name}",
            "Check the server log for more details",
        ],
        heading="To diagnose",
    )


def contextual_error(
    operation: str,
    error: BaseException | str,
    context: Mapping[str, object] | None = None,
) -> str:
    """Describe a failed operation together with the settings it ran with."""
    lines = [f"Operation '{operation}' failed: {error}", *_context_lines(context)]
    lines.extend(["", "For more information, run with --log-level DEBUG"])
    return "\n".join(lines)
