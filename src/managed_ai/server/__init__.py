"""Server installation and process management for managed-ai."""

from managed_ai.server.health import check_health, get_models, wait_for_health
from managed_ai.server.installer import (
    InstallationResult,
    InstallationType,
    Installer,
    InstallFailure,
)
from managed_ai.server.instance import ServerInstance
from managed_ai.server.locator import ExecutableLocator
from managed_ai.server.ports import PortResolution, PortResolver, PortStatus
from managed_ai.server.supervisor import ManagedProcess, ProcessState, ProcessSupervisor

__all__ = [
    "check_health",
    "ExecutableLocator",
    "get_models",
    "InstallationResult",
    "InstallationType",
    "Installer",
    "InstallFailure",
    "ManagedProcess",
    "PortResolution",
    "PortResolver",
    "PortStatus",
    "ProcessState",
    "ProcessSupervisor",
    "ServerInstance",
    "wait_for_health",
]
