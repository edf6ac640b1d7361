"""Find or install the Ollama executable according to an installation strategy.

Each strategy maps to an ordered list of attempts (locate existing, install
isolated, install system-wide) tried until one succeeds. Attempts never raise:
download, extraction and subprocess faults become failed results so the next
attempt in the chain still runs.
"""

import os
import shutil
import stat
import subprocess
import tarfile
import tempfile
import zipfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from functools import partial
from pathlib import Path

import httpx

from managed_ai.config.schema import InstallationStrategy
from managed_ai.host.detector import DEFAULT_VERSION
from managed_ai.host.ops import PlatformOps, run_command
from managed_ai.logging import get_logger
from managed_ai.server.locator import ExecutableLocator

_logger = get_logger("Installer")

SYSTEM_INSTALL_TIMEOUT = 300.0
DOWNLOAD_TIMEOUT = httpx.Timeout(30.0, read=120.0)


class InstallationType(str, Enum):
    """Where the executable in an InstallationResult came from."""

    EXISTING_SYSTEM = "existing_system"
    EXISTING_ISOLATED = "existing_isolated"
    NEW_ISOLATED = "new_isolated"
    NEW_SYSTEM_WIDE = "new_system_wide"


class InstallFailure(str, Enum):
    """Why an installation attempt failed."""

    NETWORK = "network"
    PERMISSION = "permission"
    ARCHIVE = "archive"
    FILESYSTEM = "filesystem"
    TIMEOUT = "timeout"
    COMMAND = "command"
    UNSUPPORTED = "unsupported"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class InstallationResult:
    """Outcome of one installation attempt or strategy run."""

    success: bool
    executable_path: str | None
    installation_type: InstallationType
    message: str
    failure: InstallFailure | None = None

    def __post_init__(self) -> None:
        if self.success and not self.executable_path:
            raise ValueError("A successful installation must have an executable path")


# An attempt returns None when it found nothing and did not try to install
Attempt = Callable[[], InstallationResult | None]


class Installer:
    """Guarantees an Ollama executable exists, following a strategy."""

    def __init__(
        self,
        locator: ExecutableLocator,
        ops: PlatformOps,
        version: str = DEFAULT_VERSION,
        download_timeout: httpx.Timeout | float = DOWNLOAD_TIMEOUT,
        system_install_timeout: float = SYSTEM_INSTALL_TIMEOUT,
    ) -> None:
        self._locator = locator
        self._ops = ops
        self._platform = ops.platform
        self._version = version
        self._download_timeout = download_timeout
        self._system_install_timeout = system_install_timeout

    def install(
        self,
        strategy: InstallationStrategy,
        isolated_path: Path | str | None = None,
    ) -> InstallationResult:
        """Find or install Ollama according to the strategy.

        Args:
            strategy: Search/install order to follow.
            isolated_path: Target for an isolated install. Defaults to the
                locator's project-local isolated path.

        Returns:
            The first successful attempt, or a failed result describing why
            every attempt failed.
        """
        target = Path(isolated_path) if isolated_path else self._locator.isolated_path
        _logger.info("Resolving Ollama installation (strategy={})", strategy.value)

        failures: list[InstallationResult] = []
        for attempt in self._attempts_for(strategy, target):
            result = attempt()
            if result is None:
                continue
            if result.success:
                _logger.info("{}", result.message)
                return result
            _logger.warning("Installation attempt failed: {}", result.message)
            failures.append(result)

        return self._all_failed(failures)

    def _attempts_for(self, strategy: InstallationStrategy, target: Path) -> list[Attempt]:
        locate = self.locate_existing
        isolated = partial(self.install_isolated, target)
        system_wide = self.install_system_wide
        return {
            InstallationStrategy.PREFER_EXISTING: [locate, isolated],
            InstallationStrategy.ISOLATED_ONLY: [isolated],
            InstallationStrategy.PREFER_EXISTING_THEN_SYSTEM_WIDE: [locate, system_wide],
            InstallationStrategy.SYSTEM_WIDE_ONLY: [system_wide],
            InstallationStrategy.FULL_PRIORITY: [locate, isolated, system_wide],
        }[strategy]

    def _all_failed(self, failures: list[InstallationResult]) -> InstallationResult:
        if not failures:
            return InstallationResult(
                success=False,
                executable_path=None,
                installation_type=InstallationType.EXISTING_SYSTEM,
                message="No Ollama installation found",
                failure=InstallFailure.NOT_FOUND,
            )
        if len(failures) == 1:
            _logger.error("Installation failed: {}", failures[0].message)
            return failures[0]
        details = "\n".join(f"- {f.message}" for f in failures)
        kinds = {f.failure for f in failures}
        _logger.error("All installation attempts failed")
        return InstallationResult(
            success=False,
            executable_path=None,
            installation_type=failures[0].installation_type,
            message=(
                "All installation attempts failed. Consider installing Ollama manually.\n"
                f"{details}"
            ),
            failure=kinds.pop() if len(kinds) == 1 else None,
        )

    def locate_existing(self) -> InstallationResult | None:
        """Use an existing installation if one can be found."""
        existing = self._locator.find()
        if existing is None:
            _logger.info("No existing Ollama installation found")
            return None
        installation_type = (
            InstallationType.EXISTING_SYSTEM
            if self._locator.is_system_wide_path(existing)
            else InstallationType.EXISTING_ISOLATED
        )
        return InstallationResult(
            success=True,
            executable_path=existing,
            installation_type=installation_type,
            message=f"Using existing Ollama installation at: {existing}",
        )

    def install_isolated(self, target: Path) -> InstallationResult:
        """Download the release archive and install the executable at target.

        Temporary download and extraction files are removed on every path.
        """
        url = self._platform.download_url(self._version)
        archive: Path | None = None
        extract_dir: Path | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, archive_name = tempfile.mkstemp(
                prefix="ollama-download-", suffix=self._platform.archive_ext
            )
            os.close(fd)
            archive = Path(archive_name)

            _logger.info("Downloading Ollama from: {}", url)
            self._download(url, archive)

            _logger.info("Download completed, extracting archive...")
            extract_dir = Path(tempfile.mkdtemp(prefix="ollama-extract-"))
            self._extract(archive, extract_dir)

            executable = self._find_in_tree(extract_dir)
            if executable is None:
                return self._isolated_failure(
                    f"{self._platform.executable_name} not found in downloaded archive {url}",
                    InstallFailure.ARCHIVE,
                )

            target.unlink(missing_ok=True)
            shutil.move(str(executable), str(target))
            target.chmod(target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except httpx.HTTPError as e:
            return self._isolated_failure(f"Download of {url} failed: {e}", InstallFailure.NETWORK)
        except (tarfile.TarError, zipfile.BadZipFile) as e:
            return self._isolated_failure(
                f"Archive {url} could not be extracted: {e}", InstallFailure.ARCHIVE
            )
        except PermissionError as e:
            return self._isolated_failure(
                f"Isolated installation failed: {e}", InstallFailure.PERMISSION
            )
        except (OSError, shutil.Error) as e:
            return self._isolated_failure(
                f"Isolated installation failed: {e}", InstallFailure.FILESYSTEM
            )
        finally:
            if archive is not None:
                archive.unlink(missing_ok=True)
            if extract_dir is not None:
                shutil.rmtree(extract_dir, ignore_errors=True)

        return InstallationResult(
            success=True,
            executable_path=str(target),
            installation_type=InstallationType.NEW_ISOLATED,
            message=f"Ollama installed in isolated environment at: {target}",
        )

    def _isolated_failure(self, message: str, failure: InstallFailure) -> InstallationResult:
        return InstallationResult(
            success=False,
            executable_path=None,
            installation_type=InstallationType.NEW_ISOLATED,
            message=message,
            failure=failure,
        )

    def _download(self, url: str, destination: Path) -> None:
        with httpx.stream(
            "GET", url, follow_redirects=True, timeout=self._download_timeout
        ) as response:
            response.raise_for_status()
            size = 0
            with open(destination, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
                    size += len(chunk)
        _logger.debug("Downloaded {} bytes to {}", size, destination)

    def _extract(self, archive: Path, destination: Path) -> None:
        if self._platform.archive_ext == ".zip":
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(destination)
        else:
            with tarfile.open(archive, "r:*") as tf:
                tf.extractall(destination, filter="data")

    def _find_in_tree(self, root: Path) -> Path | None:
        name = self._platform.executable_name
        for path in sorted(root.rglob(name)):
            if path.is_file() and path.name == name:
                return path
        return None

    def install_system_wide(self) -> InstallationResult:
        """Install through the platform package manager or official script."""
        command = self._ops.system_install_command()
        if command is None:
            return self._system_failure(
                "System-wide installation is not supported on this platform",
                InstallFailure.UNSUPPORTED,
            )

        _logger.info("Installing Ollama system-wide: {}", " ".join(command))
        try:
            result = run_command(command, timeout=self._system_install_timeout)
        except subprocess.TimeoutExpired:
            return self._system_failure(
                f"System-wide installation timed out after {self._system_install_timeout:.0f}s",
                InstallFailure.TIMEOUT,
            )
        except PermissionError as e:
            return self._system_failure(
                f"System-wide installation could not run {command[0]}: {e}", InstallFailure.PERMISSION
            )
        except OSError as e:
            return self._system_failure(
                f"System-wide installation could not run {command[0]}: {e}", InstallFailure.COMMAND
            )

        if result.returncode != 0:
            output = (result.stdout + result.stderr).strip().splitlines()[-5:]
            detail = "\n".join(output)
            return self._system_failure(
                f"System-wide installation failed with exit code {result.returncode}"
                + (f":\n{detail}" if detail else ""),
                InstallFailure.COMMAND,
            )

        executable = self._locator.find()
        if executable is None:
            return self._system_failure(
                "System-wide installation finished but the Ollama executable was not found",
                InstallFailure.NOT_FOUND,
            )
        return InstallationResult(
            success=True,
            executable_path=executable,
            installation_type=InstallationType.NEW_SYSTEM_WIDE,
            message=f"Ollama installed system-wide at: {executable}",
        )

    def _system_failure(self, message: str, failure: InstallFailure) -> InstallationResult:
        return InstallationResult(
            success=False,
            executable_path=None,
            installation_type=InstallationType.NEW_SYSTEM_WIDE,
            message=message,
            failure=failure,
        )
