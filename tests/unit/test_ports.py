"""Behavioral tests for port probing and port-conflict resolution.

Probing tests use real loopback sockets; decision-table tests stub the
probes so every row of the table is exercised deterministically.
"""

import socket
from collections.abc import Generator
from unittest.mock import patch

import pytest

from managed_ai.exceptions import NoPortAvailableError
from managed_ai.server.ports import PortResolution, PortResolver, PortStatus

HOST = "127.0.0.1"


@pytest.fixture
def listening_socket() -> Generator[socket.socket]:
    """A socket listening on an ephemeral loopback port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind((HOST, 0))
    sock.listen(1)
    try:
        yield sock
    finally:
        sock.close()


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((HOST, 0))
        return sock.getsockname()[1]


class TestPortProbes:
    """Verify the socket-level checks against real sockets."""

    def test_bound_port_is_not_free(self, listening_socket: socket.socket) -> None:
        port = listening_socket.getsockname()[1]

        assert PortResolver().is_port_free(port, HOST) is False

    def test_unused_port_is_free(self) -> None:
        assert PortResolver().is_port_free(_free_port(), HOST) is True

    def test_listener_counts_as_running_service(self, listening_socket: socket.socket) -> None:
        port = listening_socket.getsockname()[1]

        assert PortResolver().is_service_running(port, HOST) is True

    def test_closed_port_has_no_service(self) -> None:
        assert PortResolver(connect_timeout=0.5).is_service_running(_free_port(), HOST) is False

    def test_resolve_detects_running_service(self, listening_socket: socket.socket) -> None:
        port = listening_socket.getsockname()[1]

        resolution = PortResolver().resolve(port, HOST, allow_port_change=True)

        assert resolution == PortResolution(port, PortStatus.SERVICE_RUNNING)
        assert resolution.should_start is False


class TestFindAvailable:
    """Verify alternative port search."""

    def test_returns_preferred_when_free(self) -> None:
        resolver = PortResolver()
        with patch.object(resolver, "is_port_free", return_value=True):
            assert resolver.find_available(11434, HOST) == 11434

    def test_returns_first_free_port_in_sequence(self) -> None:
        resolver = PortResolver()
        free = {11437}
        with patch.object(resolver, "is_port_free", side_effect=lambda p, h: p in free):
            assert resolver.find_available(11434, HOST) == 11437

    def test_sequential_result_stays_within_attempt_range(self) -> None:
        resolver = PortResolver()
        with patch.object(resolver, "is_port_free", side_effect=lambda p, h: p == 11434 + 100):
            port = resolver.find_available(11434, HOST, max_attempts=100)

        assert 11434 <= port <= 11434 + 100

    def test_falls_back_to_dynamic_range(self) -> None:
        resolver = PortResolver()
        with patch.object(resolver, "is_port_free", side_effect=lambda p, h: p >= 49152), \
             patch("random.randrange", return_value=50000):
            assert resolver.find_available(11434, HOST, max_attempts=10) == 50000

    def test_raises_when_everything_is_taken(self) -> None:
        resolver = PortResolver()
        with patch.object(resolver, "is_port_free", return_value=False):
            with pytest.raises(NoPortAvailableError):
                resolver.find_available(11434, HOST, max_attempts=5)


class TestResolve:
    """Verify the port decision table."""

    def _resolver(self, free: bool, serving: bool, alternative: int | None = 11440) -> PortResolver:
        resolver = PortResolver()
        resolver.is_port_free = lambda port, host="localhost": free  # type: ignore[method-assign]
        resolver.is_service_running = lambda port, host="localhost": serving  # type: ignore[method-assign]

        def find_available(port: int, host: str = "localhost", max_attempts: int = 100) -> int:
            if alternative is None:
                raise NoPortAvailableError("none")
            return alternative

        resolver.find_available = find_available  # type: ignore[method-assign]
        return resolver

    def test_free_port_is_available(self) -> None:
        resolution = self._resolver(free=True, serving=False).resolve(11434, HOST)

        assert resolution == PortResolution(11434, PortStatus.AVAILABLE)
        assert resolution.should_start is True

    def test_occupied_port_with_service_is_reused(self) -> None:
        resolution = self._resolver(free=False, serving=True).resolve(11434, HOST)

        assert resolution == PortResolution(11434, PortStatus.SERVICE_RUNNING)

    def test_conflict_when_port_change_not_allowed(self) -> None:
        resolution = self._resolver(free=False, serving=False).resolve(
            11434, HOST, allow_port_change=False
        )

        assert resolution == PortResolution(11434, PortStatus.CONFLICT)
        assert resolution.should_start is False

    def test_alternative_when_port_change_allowed(self) -> None:
        resolution = self._resolver(free=False, serving=False).resolve(11434, HOST)

        assert resolution == PortResolution(11440, PortStatus.ALTERNATIVE_FOUND)
        assert resolution.should_start is True

    def test_no_alternative_does_not_raise(self) -> None:
        resolution = self._resolver(free=False, serving=False, alternative=None).resolve(11434, HOST)

        assert resolution == PortResolution(11434, PortStatus.NO_ALTERNATIVE)
