"""Search for an existing Ollama executable."""

import os
from pathlib import Path

from managed_ai.host.detector import Platform
from managed_ai.host.ops import PlatformOps
from managed_ai.logging import get_logger

_logger = get_logger("Locator")


def _is_executable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


class ExecutableLocator:
    """Finds an Ollama executable in a fixed, prioritized set of locations.

    Search order:
    1. Project-local isolated path (or the configured install path)
    2. Known system-wide install locations for the platform
    3. Home-relative install locations
    4. The OS search path (which/where, bounded by the probe timeout)
    """

    def __init__(
        self,
        ops: PlatformOps,
        project_dir: Path | None = None,
        install_path: Path | None = None,
    ) -> None:
        self._ops = ops
        self._platform: Platform = ops.platform
        self._project_dir = project_dir or Path.cwd()
        self._install_path = install_path

    @property
    def isolated_path(self) -> Path:
        """Where an isolated installation lives for this project."""
        if self._install_path is not None:
            path = Path(self._install_path)
        else:
            path = Path(self._platform.default_isolated_path)
        return path if path.is_absolute() else self._project_dir / path

    def candidates(self) -> list[Path]:
        """Filesystem locations checked before the OS search path, in order."""
        return [
            self.isolated_path,
            *(Path(p) for p in self._platform.system_search_paths),
            *(Path(p) for p in self._platform.home_search_paths),
        ]

    def find(self) -> str | None:
        """Return the first existing executable, or None if there is none.

        Absence is an expected outcome that callers use to trigger installation.
        """
        for candidate in self.candidates():
            if _is_executable_file(candidate):
                _logger.debug("Found Ollama executable at {}", candidate)
                return str(candidate)

        found = self._ops.which(self._platform.executable_name)
        if found and _is_executable_file(Path(found)):
            _logger.debug("Found Ollama on search path: {}", found)
            return found

        _logger.debug("No Ollama executable found")
        return None

    def is_system_wide_path(self, path: str) -> bool:
        """Whether the path lies in a known system-wide install directory."""
        if self._platform.is_windows:
            lowered = path.lower()
            return any(lowered.startswith(d.lower()) for d in self._platform.system_dirs)
        return any(path.startswith(d) for d in self._platform.system_dirs)
