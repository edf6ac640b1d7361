"""Server process supervision for managed-ai.

Spawns `ollama serve`, tracks the one process this supervisor owns, and
stops it again. The PID, start time and bound port are written to the state
directory so a later run (for example a separate `teardown` invocation) can
find the process it did not spawn itself.
"""

import os
import subprocess
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import psutil

from managed_ai.host.ops import PlatformOps
from managed_ai.logging import get_logger

_logger = get_logger("Supervisor")

STATE_DIR = Path.home() / ".local" / "state" / "managed-ai"
SERVE_PATTERN = "ollama.*serve"
SETTLE_DELAY = 2.0
KILL_WAIT = 10.0


class ProcessState(str, Enum):
    """Lifecycle states of a supervised server process."""

    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class ManagedProcess:
    """The server process owned by a supervisor."""

    process: subprocess.Popen[bytes]
    port: int
    started_at: float
    state: ProcessState = ProcessState.STARTING

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_alive(self) -> bool:
        return self.process.poll() is None


def build_server_env(
    host: str,
    port: int,
    isolated_data_path: Path | str | None = None,
    data_path: Path | str | None = None,
    base_env: dict[str, str] | None = None,
) -> dict[str, str]:
    """Environment for the spawned server.

    OLLAMA_HOST always carries the bind address. An isolated environment
    moves OLLAMA_HOME and the model store under its own directory; an
    explicit data path overrides the model store location.
    """
    env = dict(os.environ if base_env is None else base_env)
    env["OLLAMA_HOST"] = f"{host}:{port}"
    if isolated_data_path is not None:
        home = Path(isolated_data_path)
        env["OLLAMA_HOME"] = str(home)
        env["OLLAMA_MODELS"] = str(home / "models")
    if data_path is not None:
        env["OLLAMA_MODELS"] = str(data_path)
    return env


class ProcessSupervisor:
    """Starts and stops the Ollama server process.

    All start/stop calls are serialized on one lock; a supervisor owns at
    most one process at a time.
    """

    def __init__(
        self,
        ops: PlatformOps,
        state_dir: Path | None = None,
        settle_delay: float = SETTLE_DELAY,
    ) -> None:
        self._ops = ops
        self._state_dir = state_dir or STATE_DIR
        self._settle_delay = settle_delay
        self._lock = threading.Lock()
        self._managed: ManagedProcess | None = None
        _logger.debug("Initialized with state_dir={}", self._state_dir)

    @property
    def managed(self) -> ManagedProcess | None:
        """The process started by this supervisor, if any."""
        return self._managed

    @property
    def pid_file(self) -> Path:
        return self._state_dir / "server.pid"

    @property
    def log_file(self) -> Path:
        return self._state_dir / "server.log"

    @property
    def _start_time_file(self) -> Path:
        return self._state_dir / "server.start_time"

    @property
    def _port_file(self) -> Path:
        return self._state_dir / "server.port"

    def _read_int(self, path: Path) -> int | None:
        if not path.exists():
            return None
        try:
            return int(path.read_text().strip())
        except (ValueError, OSError):
            return None

    def read_pid(self) -> int | None:
        """PID recorded by the last start, if any."""
        return self._read_int(self.pid_file)

    def read_start_time(self) -> float | None:
        if not self._start_time_file.exists():
            return None
        try:
            return float(self._start_time_file.read_text().strip())
        except (ValueError, OSError):
            return None

    def record_port(self, port: int) -> None:
        """Persist the port the server is bound to for later commands."""
        self._state_dir.mkdir(parents=True, exist_ok=True)
        self._port_file.write_text(str(port))
        _logger.debug("Recorded bound port {}", port)

    def read_port(self) -> int | None:
        """Port recorded by the last successful setup, if any."""
        return self._read_int(self._port_file)

    def _clear_state_files(self) -> None:
        for path in (self.pid_file, self._start_time_file, self._port_file):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                _logger.warning("Could not remove state file {}: {}", path, e)

    def log_tail(self, num_lines: int = 20) -> str:
        """Last lines of the server log, or an empty string."""
        if not self.log_file.exists():
            return ""
        try:
            lines = self.log_file.read_text(errors="replace").strip().split("\n")
            return "\n".join(lines[-num_lines:])
        except OSError:
            return ""

    def is_running(self, port: int) -> bool:
        """Whether a server is listening on the port.

        Falls back to the process table when the port probe itself fails;
        only a server configured for this port counts then.
        """
        try:
            return self._ops.is_port_listening(port)
        except (OSError, subprocess.SubprocessError) as e:
            _logger.debug("Port probe failed ({}), checking process table for port {}", e, port)
            return self._ops.is_process_running(SERVE_PATTERN, port=port)

    def start(
        self,
        executable_path: str,
        host: str,
        port: int,
        extra_args: Sequence[str] = (),
        isolated_data_path: Path | str | None = None,
        data_path: Path | str | None = None,
    ) -> bool:
        """Start `ollama serve` on host:port.

        Returns True without spawning anything when the owned process is
        still alive or something already listens on the port.

        Returns:
            True if a live server process exists after the settle delay.
        """
        with self._lock:
            if self._managed is not None and self._managed.is_alive():
                _logger.info("Server already running with PID {}", self._managed.pid)
                return True
            if self.is_running(port):
                _logger.info("Server already running on port {}", port)
                return True

            cmd = [executable_path, "serve", *extra_args]
            env = build_server_env(host, port, isolated_data_path, data_path)
            _logger.info("Starting server: {} (OLLAMA_HOST={})", " ".join(cmd), env["OLLAMA_HOST"])

            try:
                self._state_dir.mkdir(parents=True, exist_ok=True)
                self.log_file.write_text("")
                with open(self.log_file, "a") as log:
                    process = subprocess.Popen(
                        cmd,
                        stdout=log,
                        stderr=log,
                        env=env,
                        start_new_session=True,
                    )
            except OSError as e:
                _logger.error("Failed to spawn server process: {}", e)
                return False

            managed = ManagedProcess(process=process, port=port, started_at=time.time())
            self._managed = managed
            try:
                self.pid_file.write_text(str(process.pid))
                self._start_time_file.write_text(str(managed.started_at))
            except OSError as e:
                # The owned handle still lets this supervisor stop the process
                _logger.warning("Could not record PID {} in {}: {}", process.pid, self._state_dir, e)
            _logger.debug("Process started with PID {}, settling for {}s", process.pid, self._settle_delay)

            time.sleep(self._settle_delay)

            if not managed.is_alive():
                managed.state = ProcessState.FAILED
                self._clear_state_files()
                _logger.error(
                    "Server process exited with code {} during startup\n{}",
                    process.returncode,
                    self.log_tail(30),
                )
                return False

            managed.state = ProcessState.RUNNING
            _logger.info("Server process running with PID {}", process.pid)
            return True

    def stop(self) -> bool:
        """Force-stop the server. Succeeds when nothing is running."""
        return self._stop(graceful=False, timeout=KILL_WAIT)

    def stop_gracefully(self, timeout_seconds: float = 30.0) -> bool:
        """Terminate the server, escalating to kill after timeout_seconds."""
        return self._stop(graceful=True, timeout=timeout_seconds)

    def _stop(self, graceful: bool, timeout: float) -> bool:
        with self._lock:
            _logger.info("Stopping server (graceful={})", graceful)
            if self._managed is not None:
                stopped = self._stop_owned(self._managed, graceful, timeout)
            else:
                stopped = self._stop_unowned(graceful, timeout)
            if stopped:
                self._managed = None
                self._clear_state_files()
                _logger.info("Server stopped")
            return stopped

    def _stop_owned(self, managed: ManagedProcess, graceful: bool, timeout: float) -> bool:
        if not managed.is_alive():
            managed.state = ProcessState.STOPPED
            return True

        managed.state = ProcessState.STOPPING
        process = managed.process
        try:
            if graceful:
                process.terminate()
                try:
                    process.wait(timeout=timeout)
                except subprocess.TimeoutExpired:
                    _logger.warning("Server did not exit within {}s, killing it", timeout)
                    process.kill()
                    process.wait(timeout=KILL_WAIT)
            else:
                process.kill()
                process.wait(timeout=KILL_WAIT)
        except (OSError, subprocess.TimeoutExpired) as e:
            managed.state = ProcessState.FAILED
            _logger.error("Failed to stop server PID {}: {}", managed.pid, e)
            return False

        managed.state = ProcessState.STOPPED
        return True

    def _stop_unowned(self, graceful: bool, timeout: float) -> bool:
        pid = self.read_pid()
        if pid is not None and self._stop_pid(pid, graceful, timeout):
            return True
        _logger.debug("Falling back to stopping processes matching '{}'", SERVE_PATTERN)
        return self._ops.kill_matching(SERVE_PATTERN)

    def _stop_pid(self, pid: int, graceful: bool, timeout: float) -> bool:
        try:
            proc = psutil.Process(pid)
            cmdline = " ".join(proc.cmdline())
            if "ollama" not in cmdline or "serve" not in cmdline:
                _logger.debug("Recorded PID {} is not an Ollama server, ignoring", pid)
                return False
            if graceful:
                proc.terminate()
                try:
                    proc.wait(timeout=timeout)
                except psutil.TimeoutExpired:
                    _logger.warning("PID {} did not exit within {}s, killing it", pid, timeout)
                    proc.kill()
                    proc.wait(timeout=KILL_WAIT)
            else:
                proc.kill()
                proc.wait(timeout=KILL_WAIT)
        except psutil.NoSuchProcess:
            _logger.debug("Recorded PID {} is already gone", pid)
            return True
        except (psutil.AccessDenied, psutil.TimeoutExpired) as e:
            _logger.warning("Could not stop recorded PID {}: {}", pid, e)
            return False
        _logger.debug("Stopped recorded PID {}", pid)
        return True
