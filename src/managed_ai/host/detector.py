"""Host platform detection for Ollama installation and supervision.

Identifies the operating system family and CPU architecture, and derives
everything that differs between them:
- Release archive name and download URL
- Default install locations (user-level and project-isolated)
- Known system-wide install directories used for search and classification
"""

import os
import platform as _platform
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath, PurePosixPath, PureWindowsPath

from managed_ai.exceptions import UnsupportedPlatformError
from managed_ai.logging import get_logger

_logger = get_logger("Platform")

# Overrides platform.system(); lets CI exercise other platforms' code paths
OS_ENV_VAR = "MANAGED_AI_OS"

RELEASES_URL = "https://github.com/ollama/ollama/releases/download"
DEFAULT_VERSION = "v0.9.6"


class OperatingSystem(str, Enum):
    """Supported operating system families."""

    MACOS = "macos"
    LINUX = "linux"
    WINDOWS = "windows"

    @property
    def platform_name(self) -> str:
        """Name used in Ollama release artifacts."""
        return {
            OperatingSystem.MACOS: "darwin",
            OperatingSystem.LINUX: "linux",
            OperatingSystem.WINDOWS: "windows",
        }[self]


_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "arm64": "arm64",
    "aarch64": "arm64",
}


@dataclass(frozen=True)
class Platform:
    """Platform-specific facts about the host."""

    os: OperatingSystem
    arch: str
    home: str
    env: Mapping[str, str] = field(default_factory=dict, repr=False)

    @property
    def is_windows(self) -> bool:
        return self.os == OperatingSystem.WINDOWS

    def _path(self, *parts: str) -> PurePath:
        cls = PureWindowsPath if self.is_windows else PurePosixPath
        return cls(*parts)

    @property
    def executable_name(self) -> str:
        return "ollama.exe" if self.is_windows else "ollama"

    @property
    def archive_ext(self) -> str:
        return ".zip" if self.is_windows else ".tgz"

    @property
    def archive_name(self) -> str:
        """Release asset name, e.g. ollama-linux-amd64.tgz."""
        if self.os == OperatingSystem.MACOS:
            # macOS ships a single universal archive
            return f"ollama-darwin{self.archive_ext}"
        return f"ollama-{self.os.platform_name}-{self.arch}{self.archive_ext}"

    def download_url(self, version: str = DEFAULT_VERSION) -> str:
        """Download URL of the release archive for this platform."""
        return f"{RELEASES_URL}/{version}/{self.archive_name}"

    @property
    def _local_app_data(self) -> str:
        return self.env.get("LOCALAPPDATA") or str(self._path(self.home, "AppData", "Local"))

    @property
    def _program_files(self) -> list[str]:
        return [
            self.env.get("PROGRAMFILES") or "C:\\Program Files",
            self.env.get("PROGRAMFILES(X86)") or "C:\\Program Files (x86)",
        ]

    @property
    def default_isolated_path(self) -> str:
        """Project-relative location of an isolated installation."""
        return str(self._path(".ollama", "bin", self.executable_name))

    @property
    def default_install_path(self) -> str:
        """User-level install location used when no path is configured."""
        if self.os == OperatingSystem.MACOS:
            return str(self._path(self.home, ".ollama", "bin", self.executable_name))
        if self.os == OperatingSystem.LINUX:
            return str(self._path(self.home, ".local", "bin", self.executable_name))
        return str(self._path(self._local_app_data, "Programs", "Ollama", self.executable_name))

    @property
    def system_dirs(self) -> list[str]:
        """Directory prefixes that identify a system-wide installation."""
        if self.os == OperatingSystem.MACOS:
            return ["/usr/local/bin/", "/opt/homebrew/bin/", "/usr/bin/"]
        if self.os == OperatingSystem.LINUX:
            return ["/usr/local/bin/", "/usr/bin/", "/bin/"]
        return [d.rstrip("\\") + "\\" for d in self._program_files]

    @property
    def system_search_paths(self) -> list[str]:
        """Known system-wide executable locations, searched in order."""
        if self.is_windows:
            return [
                str(self._path(self._local_app_data, "Programs", "Ollama", self.executable_name)),
                *(str(self._path(d, "Ollama", self.executable_name)) for d in self._program_files),
            ]
        if self.os == OperatingSystem.MACOS:
            return ["/usr/local/bin/ollama", "/opt/homebrew/bin/ollama"]
        return ["/usr/local/bin/ollama", "/usr/bin/ollama"]

    @property
    def home_search_paths(self) -> list[str]:
        """Home-relative executable locations, searched after system paths."""
        if self.is_windows:
            return [str(self._path(self.home, ".ollama", "bin", self.executable_name))]
        return [
            str(self._path(self.home, ".ollama", "bin", self.executable_name)),
            str(self._path(self.home, ".local", "bin", self.executable_name)),
        ]


def _parse_os(os_name: str) -> OperatingSystem:
    name = os_name.strip().lower()
    if "darwin" in name or "mac" in name:
        return OperatingSystem.MACOS
    if "linux" in name:
        return OperatingSystem.LINUX
    if "windows" in name or name == "win32":
        return OperatingSystem.WINDOWS
    raise UnsupportedPlatformError(f"Unsupported operating system: {os_name}")


def detect_platform(
    os_name: str | None = None,
    machine: str | None = None,
    env: Mapping[str, str] | None = None,
) -> Platform:
    """Detect the host platform.

    Args:
        os_name: OS identifier. Defaults to $MANAGED_AI_OS, then platform.system().
        machine: CPU architecture. Defaults to platform.machine().
        env: Environment used for Windows install locations. Defaults to os.environ.

    Returns:
        Platform for the host.

    Raises:
        UnsupportedPlatformError: If the OS is not macOS, Linux or Windows.
    """
    env = os.environ if env is None else env
    raw_os = os_name or env.get(OS_ENV_VAR) or _platform.system()
    operating_system = _parse_os(raw_os)

    raw_machine = (machine or _platform.machine() or "amd64").lower()
    arch = _ARCH_ALIASES.get(raw_machine, raw_machine)

    home = env.get("USERPROFILE") if operating_system == OperatingSystem.WINDOWS else None
    home = home or env.get("HOME") or os.path.expanduser("~")

    detected = Platform(os=operating_system, arch=arch, home=home, env=dict(env))
    _logger.debug("Detected platform: os={}, arch={}", detected.os.value, detected.arch)
    return detected
