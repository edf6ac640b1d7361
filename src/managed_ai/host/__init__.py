"""Host platform module for managed-ai.

Detects the operating system and provides OS-specific probes and process control.
"""

from managed_ai.host.detector import OperatingSystem, Platform, detect_platform
from managed_ai.host.ops import (
    PlatformOps,
    UnixPlatformOps,
    WindowsPlatformOps,
    get_platform_ops,
    run_command,
)

__all__ = [
    "OperatingSystem",
    "Platform",
    "PlatformOps",
    "UnixPlatformOps",
    "WindowsPlatformOps",
    "detect_platform",
    "get_platform_ops",
    "run_command",
]
