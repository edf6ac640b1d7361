"""Port availability checks and port-conflict resolution.

Decides, for a preferred port, whether the server can bind it, whether an
Ollama (or something else answering TCP) is already serving there, or
whether an alternative port has to be found.
"""

import random
import socket
import sys
from dataclasses import dataclass
from enum import Enum

from managed_ai.exceptions import NoPortAvailableError
from managed_ai.logging import get_logger

_logger = get_logger("PortResolver")

# IANA dynamic/private range used for the random fallback (upper bound exclusive)
DYNAMIC_PORT_MIN = 49152
DYNAMIC_PORT_MAX = 65535


class PortStatus(str, Enum):
    """Outcome of resolving a preferred port."""

    AVAILABLE = "available"  # Preferred port is free
    SERVICE_RUNNING = "service_running"  # Something already serves on the preferred port
    CONFLICT = "conflict"  # Occupied by an unresponsive holder, port change not allowed
    ALTERNATIVE_FOUND = "alternative_found"  # Occupied, a different free port was found
    NO_ALTERNATIVE = "no_alternative"  # Occupied, no free port found


@dataclass(frozen=True)
class PortResolution:
    """Resolved port for a startup attempt. `port` is authoritative downstream."""

    port: int
    status: PortStatus

    @property
    def should_start(self) -> bool:
        """Whether the caller should go on to start a server on `port`."""
        return self.status in (PortStatus.AVAILABLE, PortStatus.ALTERNATIVE_FOUND)


class PortResolver:
    """Probes the OS socket table. Stateless and safe to share between runs."""

    def __init__(self, connect_timeout: float = 1.0) -> None:
        self._connect_timeout = connect_timeout

    def is_port_free(self, port: int, host: str = "localhost") -> bool:
        """Check whether a listening socket can be bound on the port.

        Bind failures of any kind mean "not free"; they are not errors.
        """
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                if sys.platform != "win32":
                    # Ignore TIME_WAIT leftovers; active listeners still block the bind
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind((host, port))
                sock.listen(1)
            return True
        except OSError as e:
            _logger.debug("Port {} on {} is not free: {}", port, host, e)
            return False

    def is_service_running(self, port: int, host: str = "localhost") -> bool:
        """Check whether something accepts TCP connections on the port."""
        try:
            with socket.create_connection((host, port), timeout=self._connect_timeout):
                return True
        except OSError:
            return False

    def find_available(
        self,
        preferred_port: int,
        host: str = "localhost",
        max_attempts: int = 100,
    ) -> int:
        """Find a free port near the preferred one.

        Tries preferred..preferred+max_attempts in order, then max_attempts
        random ports in the dynamic range [49152, 65535).

        Raises:
            NoPortAvailableError: If every attempt is taken.
        """
        for port in range(preferred_port, min(preferred_port + max_attempts, 65535) + 1):
            if self.is_port_free(port, host):
                if port != preferred_port:
                    _logger.info("Found available port: {}", port)
                return port

        _logger.info(
            "No free port in {}-{}, trying random ports",
            preferred_port,
            preferred_port + max_attempts,
        )
        for _ in range(max_attempts):
            port = random.randrange(DYNAMIC_PORT_MIN, DYNAMIC_PORT_MAX)
            if self.is_port_free(port, host):
                _logger.info("Found available random port: {}", port)
                return port

        raise NoPortAvailableError(
            f"Unable to find an available port near {preferred_port} "
            f"after {max_attempts} sequential and {max_attempts} random attempts"
        )

    def resolve(
        self,
        preferred_port: int,
        host: str = "localhost",
        allow_port_change: bool = True,
    ) -> PortResolution:
        """Resolve the port a server should use.

        Decision order:
        1. Preferred port free -> AVAILABLE
        2. Something answers on it -> SERVICE_RUNNING (skip startup)
        3. Occupied, port change not allowed -> CONFLICT
        4. Occupied, port change allowed -> ALTERNATIVE_FOUND or NO_ALTERNATIVE
        """
        if self.is_port_free(preferred_port, host):
            _logger.debug("Port {} is available", preferred_port)
            return PortResolution(preferred_port, PortStatus.AVAILABLE)

        if self.is_service_running(preferred_port, host):
            _logger.info("A service is already running on port {}", preferred_port)
            return PortResolution(preferred_port, PortStatus.SERVICE_RUNNING)

        if not allow_port_change:
            _logger.warning("Port {} is occupied and port changes are not allowed", preferred_port)
            return PortResolution(preferred_port, PortStatus.CONFLICT)

        _logger.info("Port {} is not available, searching for alternative...", preferred_port)
        try:
            alternative = self.find_available(preferred_port, host)
        except NoPortAvailableError as e:
            _logger.error("Failed to find alternative port: {}", e)
            return PortResolution(preferred_port, PortStatus.NO_ALTERNATIVE)
        return PortResolution(alternative, PortStatus.ALTERNATIVE_FOUND)
