"""Behavioral tests for custom exception hierarchy.

Tests verify the exceptions can be caught at the level callers handle them:
- Everything is catchable as ManagedAIError
- Port, server and installation errors group their specific failures
"""

import pytest

from managed_ai.exceptions import (
    ConfigError,
    InstallationError,
    ManagedAIError,
    ModelPullError,
    NoPortAvailableError,
    PortConflictError,
    ProcessStopError,
    ServerError,
    StartupTimeoutError,
    UnsupportedPlatformError,
)


class TestExceptionHierarchy:
    """Verify exception inheritance allows appropriate error handling patterns."""

    @pytest.mark.parametrize(
        "error_class",
        [
            ConfigError,
            UnsupportedPlatformError,
            InstallationError,
            PortConflictError,
            NoPortAvailableError,
            ServerError,
            StartupTimeoutError,
            ProcessStopError,
            ModelPullError,
        ],
    )
    def test_every_error_is_catchable_as_managed_ai_error(self, error_class: type) -> None:
        with pytest.raises(ManagedAIError):
            raise error_class("problem")

    def test_no_port_available_is_a_port_conflict(self) -> None:
        with pytest.raises(PortConflictError):
            raise NoPortAvailableError("no port near 11434")

    def test_startup_timeout_and_stop_errors_are_server_errors(self) -> None:
        assert issubclass(StartupTimeoutError, ServerError)
        assert issubclass(ProcessStopError, ServerError)

    def test_model_pull_error_is_not_a_server_error(self) -> None:
        assert not issubclass(ModelPullError, ServerError)


class TestExceptionMessages:
    """Verify exception messages are preserved for display."""

    def test_message_is_preserved(self) -> None:
        error = InstallationError("Download of ollama-linux-amd64.tgz failed")
        assert str(error) == "Download of ollama-linux-amd64.tgz failed"

    def test_cause_is_chained(self) -> None:
        try:
            try:
                raise OSError("disk full")
            except OSError as e:
                raise ModelPullError("pull failed") from e
        except ModelPullError as error:
            assert isinstance(error.__cause__, OSError)
