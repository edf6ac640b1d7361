"""OS-level probes and process control, one implementation per OS family.

Wraps the platform tools the lifecycle relies on (which/where, lsof/netstat,
pkill/taskkill, package managers). Every subprocess runs with a bounded
timeout so a hung tool cannot stall the calling pipeline.
"""

import re
import subprocess
from typing import Protocol

import psutil

from managed_ai.host.detector import OperatingSystem, Platform, detect_platform
from managed_ai.logging import get_logger

_logger = get_logger("PlatformOps")

# Timeout for probing tools; package managers get their own, longer budget
PROBE_TIMEOUT = 10.0

LINUX_INSTALL_SCRIPT = "curl -fsSL https://ollama.com/install.sh | sh"

DEFAULT_SERVER_PORT = 11434


def host_port(ollama_host: str | None) -> int:
    """Port `ollama serve` binds for an OLLAMA_HOST value.

    Accepts "host:port", "scheme://host:port/" and bare hosts; anything
    without an explicit port binds the default.
    """
    if not ollama_host:
        return DEFAULT_SERVER_PORT
    address = ollama_host.split("://", 1)[-1].rstrip("/")
    _, sep, port = address.rpartition(":")
    if sep and port.isdigit():
        return int(port)
    return DEFAULT_SERVER_PORT


class PlatformOps(Protocol):
    """Capabilities the supervisor and installer need from the host OS."""

    platform: Platform

    def which(self, name: str) -> str | None:
        """Resolve an executable on the OS search path, or None."""
        ...

    def is_port_listening(self, port: int) -> bool:
        """Whether a process is listening on the TCP port.

        Raises:
            OSError: If the probing tool is unavailable.
            subprocess.SubprocessError: If the probe times out.
        """
        ...

    def kill_matching(self, pattern: str) -> bool:
        """Terminate server processes matching the pattern. True if none remain."""
        ...

    def is_process_running(self, pattern: str, port: int | None = None) -> bool:
        """Whether any process command line matches the pattern.

        With a port, only processes whose OLLAMA_HOST binds that port count.
        """
        ...

    def system_install_command(self) -> list[str] | None:
        """Command that installs Ollama system-wide, or None if unsupported."""
        ...


def run_command(cmd: list[str], timeout: float = PROBE_TIMEOUT) -> subprocess.CompletedProcess[str]:
    """Run a command with captured text output and a hard timeout.

    Raises:
        OSError: If the executable cannot be started.
        subprocess.TimeoutExpired: If the command outlives the timeout.
    """
    _logger.debug("Running: {} (timeout={}s)", " ".join(cmd), timeout)
    return subprocess.run(cmd, capture_output=True, text=True, timeout=timeout, check=False)


class _BasePlatformOps:
    """Behavior shared by all OS families."""

    def __init__(self, platform: Platform, probe_timeout: float = PROBE_TIMEOUT) -> None:
        self.platform = platform
        self._timeout = probe_timeout

    def _lookup_command(self) -> str:
        raise NotImplementedError

    def which(self, name: str) -> str | None:
        try:
            result = run_command([self._lookup_command(), name], timeout=self._timeout)
        except (OSError, subprocess.SubprocessError) as e:
            _logger.debug("Search path lookup for {} failed: {}", name, e)
            return None
        if result.returncode != 0:
            return None
        # `where` may list several matches; the first one is what the shell runs
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        return lines[0] if lines else None

    def is_process_running(self, pattern: str, port: int | None = None) -> bool:
        regex = re.compile(pattern)
        attrs = ["cmdline"] if port is None else ["cmdline", "environ"]
        for proc in psutil.process_iter(attrs):
            # Inaccessible attributes come back as None
            cmdline = proc.info.get("cmdline") or []
            if not cmdline or not regex.search(" ".join(cmdline)):
                continue
            if port is None:
                return True
            environ = proc.info.get("environ")
            if environ is None:
                _logger.debug("Cannot read environment of PID {}, not attributing it to port {}", proc.pid, port)
                continue
            if host_port(environ.get("OLLAMA_HOST")) == port:
                return True
        return False


class UnixPlatformOps(_BasePlatformOps):
    """macOS and Linux."""

    def _lookup_command(self) -> str:
        return "which"

    def is_port_listening(self, port: int) -> bool:
        result = run_command(
            ["lsof", "-nP", f"-iTCP:{port}", "-sTCP:LISTEN"], timeout=self._timeout
        )
        return result.returncode == 0 and bool(result.stdout.strip())

    def kill_matching(self, pattern: str) -> bool:
        try:
            result = run_command(["pkill", "-f", pattern], timeout=self._timeout)
        except (OSError, subprocess.SubprocessError) as e:
            _logger.error("Failed to kill processes matching {}: {}", pattern, e)
            return False
        # pkill exits 1 when nothing matched
        if result.returncode in (0, 1):
            _logger.debug("pkill -f {} exited {}", pattern, result.returncode)
            return True
        _logger.error("pkill -f {} failed with exit code {}", pattern, result.returncode)
        return False

    def system_install_command(self) -> list[str] | None:
        if self.platform.os == OperatingSystem.MACOS:
            return ["brew", "install", "ollama"]
        return ["bash", "-c", LINUX_INSTALL_SCRIPT]


class WindowsPlatformOps(_BasePlatformOps):
    """Windows. Process matching is by image name rather than command line."""

    def _lookup_command(self) -> str:
        return "where"

    def is_port_listening(self, port: int) -> bool:
        result = run_command(["netstat", "-an"], timeout=self._timeout)
        suffix = f":{port}"
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) >= 4 and parts[1].endswith(suffix) and "LISTENING" in parts[3:]:
                return True
        return False

    def kill_matching(self, pattern: str) -> bool:
        image = self.platform.executable_name
        try:
            result = run_command(["taskkill", "/F", "/IM", image], timeout=self._timeout)
        except (OSError, subprocess.SubprocessError) as e:
            _logger.error("Failed to kill {} processes: {}", image, e)
            return False
        # 128: no such process
        if result.returncode in (0, 128):
            return True
        _logger.error("taskkill /IM {} failed with exit code {}", image, result.returncode)
        return False

    def system_install_command(self) -> list[str] | None:
        return [
            "winget", "install", "--id", "Ollama.Ollama", "-e", "--silent",
            "--accept-package-agreements", "--accept-source-agreements",
        ]


def get_platform_ops(platform: Platform | None = None) -> PlatformOps:
    """Return the PlatformOps implementation for the (detected) platform.

    Raises:
        UnsupportedPlatformError: If detection fails.
    """
    platform = platform or detect_platform()
    if platform.is_windows:
        return WindowsPlatformOps(platform)
    return UnixPlatformOps(platform)
