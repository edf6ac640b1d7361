"""Behavioral tests for the strategy-driven installer.

Downloads are served from in-memory archives through a patched httpx.stream;
system-wide installs patch run_command. No network access is needed.
"""

import io
import os
import subprocess
import tarfile
import tempfile
import zipfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from managed_ai.config.schema import InstallationStrategy
from managed_ai.host.detector import Platform
from managed_ai.server.installer import (
    InstallationResult,
    InstallationType,
    Installer,
    InstallFailure,
)


def tgz_with(members: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def zip_with(members: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def stream_of(payload: bytes, error: Exception | None = None) -> MagicMock:
    """Context manager standing in for httpx.stream(...)."""
    response = MagicMock()
    response.iter_bytes.return_value = [payload[:16], payload[16:]]
    if error is not None:
        response.raise_for_status.side_effect = error
    stream = MagicMock()
    stream.__enter__.return_value = response
    stream.__exit__.return_value = False
    return stream


@pytest.fixture
def scratch_tmp(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect tempfile so leftover download artifacts can be detected."""
    scratch = temp_dir / "tmp"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


@pytest.fixture
def target(temp_dir: Path) -> Path:
    return temp_dir / "project" / ".ollama" / "bin" / "ollama"


@pytest.fixture
def locator(target: Path) -> MagicMock:
    locator = MagicMock()
    locator.isolated_path = target
    locator.find.return_value = None
    locator.is_system_wide_path.side_effect = lambda p: p.startswith("/usr/")
    return locator


@pytest.fixture
def installer(locator: MagicMock, fake_ops: MagicMock) -> Installer:
    return Installer(locator, fake_ops, version="v0.9.6")


class TestInstallationResult:
    def test_success_requires_path(self) -> None:
        with pytest.raises(ValueError):
            InstallationResult(True, None, InstallationType.NEW_ISOLATED, "ok")

    def test_failure_without_path_is_valid(self) -> None:
        result = InstallationResult(False, None, InstallationType.NEW_ISOLATED, "failed")
        assert result.executable_path is None


class TestStrategyOrder:
    """Verify each strategy tries its attempts in order and stops at the first success."""

    @pytest.mark.parametrize(
        "strategy, expected",
        [
            (InstallationStrategy.PREFER_EXISTING, ["locate", "isolated"]),
            (InstallationStrategy.ISOLATED_ONLY, ["isolated"]),
            (InstallationStrategy.PREFER_EXISTING_THEN_SYSTEM_WIDE, ["locate", "system"]),
            (InstallationStrategy.SYSTEM_WIDE_ONLY, ["system"]),
            (InstallationStrategy.FULL_PRIORITY, ["locate", "isolated", "system"]),
        ],
    )
    def test_attempt_order_when_everything_fails(
        self, installer: Installer, strategy: InstallationStrategy, expected: list[str]
    ) -> None:
        calls: list[str] = []

        def failing(name: str, kind: InstallationType):
            def attempt(*args: object) -> InstallationResult:
                calls.append(name)
                return InstallationResult(False, None, kind, f"{name} failed")
            return attempt

        with patch.object(installer, "locate_existing", side_effect=lambda: calls.append("locate")), \
             patch.object(installer, "install_isolated", side_effect=failing("isolated", InstallationType.NEW_ISOLATED)), \
             patch.object(installer, "install_system_wide", side_effect=failing("system", InstallationType.NEW_SYSTEM_WIDE)):
            result = installer.install(strategy)

        assert calls == expected
        assert result.success is False

    def test_stops_at_first_success(self, installer: Installer) -> None:
        found = InstallationResult(True, "/usr/bin/ollama", InstallationType.EXISTING_SYSTEM, "found")

        with patch.object(installer, "locate_existing", return_value=found), \
             patch.object(installer, "install_isolated") as isolated, \
             patch.object(installer, "install_system_wide") as system:
            result = installer.install(InstallationStrategy.FULL_PRIORITY)

        assert result is found
        isolated.assert_not_called()
        system.assert_not_called()

    def test_multiple_failures_are_aggregated(self, installer: Installer) -> None:
        with patch.object(installer, "locate_existing", return_value=None), \
             patch.object(installer, "install_isolated", return_value=InstallationResult(
                 False, None, InstallationType.NEW_ISOLATED, "download broke")), \
             patch.object(installer, "install_system_wide", return_value=InstallationResult(
                 False, None, InstallationType.NEW_SYSTEM_WIDE, "script broke")):
            result = installer.install(InstallationStrategy.FULL_PRIORITY)

        assert result.success is False
        assert result.message.startswith("All installation attempts failed")
        assert "- download broke" in result.message
        assert "- script broke" in result.message

    @pytest.mark.parametrize(
        "system_failure, expected",
        [(InstallFailure.NETWORK, InstallFailure.NETWORK), (InstallFailure.COMMAND, None)],
    )
    def test_aggregated_failure_kind_only_when_shared(
        self,
        installer: Installer,
        system_failure: InstallFailure,
        expected: InstallFailure | None,
    ) -> None:
        isolated = InstallationResult(
            False, None, InstallationType.NEW_ISOLATED, "download broke", InstallFailure.NETWORK
        )
        system = InstallationResult(
            False, None, InstallationType.NEW_SYSTEM_WIDE, "script broke", system_failure
        )

        with patch.object(installer, "locate_existing", return_value=None), \
             patch.object(installer, "install_isolated", return_value=isolated), \
             patch.object(installer, "install_system_wide", return_value=system):
            result = installer.install(InstallationStrategy.FULL_PRIORITY)

        assert result.failure == expected


class TestLocateExisting:
    """Verify classification of existing installations."""

    def test_system_path_is_existing_system(self, installer: Installer, locator: MagicMock) -> None:
        locator.find.return_value = "/usr/bin/ollama"

        result = installer.install(InstallationStrategy.PREFER_EXISTING)

        assert result.success is True
        assert result.installation_type == InstallationType.EXISTING_SYSTEM
        assert result.executable_path == "/usr/bin/ollama"

    def test_project_path_is_existing_isolated(
        self, installer: Installer, locator: MagicMock, target: Path
    ) -> None:
        locator.find.return_value = str(target)

        result = installer.install(InstallationStrategy.PREFER_EXISTING)

        assert result.installation_type == InstallationType.EXISTING_ISOLATED

    def test_existing_install_skips_download(self, installer: Installer, locator: MagicMock) -> None:
        locator.find.return_value = "/usr/local/bin/ollama"

        with patch("httpx.stream") as mock_stream:
            installer.install(InstallationStrategy.PREFER_EXISTING)

        mock_stream.assert_not_called()

    def test_isolated_only_ignores_existing(
        self, installer: Installer, locator: MagicMock, scratch_tmp: Path
    ) -> None:
        locator.find.return_value = "/usr/bin/ollama"
        payload = tgz_with({"bin/ollama": b"binary"})

        with patch("httpx.stream", return_value=stream_of(payload)):
            result = installer.install(InstallationStrategy.ISOLATED_ONLY)

        assert result.installation_type == InstallationType.NEW_ISOLATED
        locator.find.assert_not_called()


class TestInstallIsolated:
    """Verify download, extraction and cleanup."""

    def test_prefer_existing_downloads_when_absent(
        self, installer: Installer, target: Path, scratch_tmp: Path
    ) -> None:
        payload = tgz_with({"bin/ollama": b"ollama-binary", "lib/ollama/libggml.so": b"lib"})

        with patch("httpx.stream", return_value=stream_of(payload)) as mock_stream:
            result = installer.install(InstallationStrategy.PREFER_EXISTING)

        assert result.success is True
        assert result.installation_type == InstallationType.NEW_ISOLATED
        assert result.executable_path == str(target)
        assert target.read_bytes() == b"ollama-binary"
        assert os.access(target, os.X_OK)
        assert mock_stream.call_args.args[1] == (
            "https://github.com/ollama/ollama/releases/download/v0.9.6/ollama-linux-amd64.tgz"
        )
        assert list(scratch_tmp.iterdir()) == []

    def test_explicit_isolated_path(
        self, installer: Installer, temp_dir: Path, scratch_tmp: Path
    ) -> None:
        custom = temp_dir / "custom" / "ollama"
        payload = tgz_with({"ollama": b"binary"})

        with patch("httpx.stream", return_value=stream_of(payload)):
            result = installer.install(InstallationStrategy.ISOLATED_ONLY, isolated_path=custom)

        assert result.executable_path == str(custom)
        assert custom.exists()

    def test_executable_matched_by_exact_name(
        self, installer: Installer, target: Path, scratch_tmp: Path
    ) -> None:
        payload = tgz_with({"bin/ollama-helper": b"helper", "bin/ollama": b"real"})

        with patch("httpx.stream", return_value=stream_of(payload)):
            installer.install(InstallationStrategy.ISOLATED_ONLY)

        assert target.read_bytes() == b"real"

    def test_archive_without_executable_fails_and_cleans_up(
        self, installer: Installer, scratch_tmp: Path
    ) -> None:
        payload = tgz_with({"README.md": b"nothing here"})

        with patch("httpx.stream", return_value=stream_of(payload)):
            result = installer.install(InstallationStrategy.ISOLATED_ONLY)

        assert result.success is False
        assert "not found in downloaded archive" in result.message
        assert result.failure == InstallFailure.ARCHIVE
        assert list(scratch_tmp.iterdir()) == []

    def test_http_error_fails_and_cleans_up(self, installer: Installer, scratch_tmp: Path) -> None:
        request = httpx.Request("GET", "https://github.com/x")
        error = httpx.HTTPStatusError(
            "404 Not Found", request=request, response=httpx.Response(404, request=request)
        )

        with patch("httpx.stream", return_value=stream_of(b"", error=error)):
            result = installer.install(InstallationStrategy.ISOLATED_ONLY)

        assert result.success is False
        assert result.message.startswith("Download of")
        assert result.failure == InstallFailure.NETWORK
        assert list(scratch_tmp.iterdir()) == []

    def test_connection_error_fails(self, installer: Installer, scratch_tmp: Path) -> None:
        with patch("httpx.stream", side_effect=httpx.ConnectError("offline")):
            result = installer.install(InstallationStrategy.ISOLATED_ONLY)

        assert result.success is False
        assert "offline" in result.message
        assert result.failure == InstallFailure.NETWORK

    def test_corrupt_archive_fails(self, installer: Installer, scratch_tmp: Path) -> None:
        with patch("httpx.stream", return_value=stream_of(b"this is not a tarball at all")):
            result = installer.install(InstallationStrategy.ISOLATED_ONLY)

        assert result.success is False
        assert result.failure == InstallFailure.ARCHIVE
        assert list(scratch_tmp.iterdir()) == []

    def test_windows_zip_archive(
        self, windows_platform: Platform, temp_dir: Path, scratch_tmp: Path
    ) -> None:
        ops = MagicMock()
        ops.platform = windows_platform
        locator = MagicMock()
        locator.find.return_value = None
        target = temp_dir / "win" / "ollama.exe"
        payload = zip_with({"ollama.exe": b"MZ", "lib/ollama/ggml.dll": b"dll"})

        with patch("httpx.stream", return_value=stream_of(payload)) as mock_stream:
            result = Installer(locator, ops).install(
                InstallationStrategy.ISOLATED_ONLY, isolated_path=target
            )

        assert result.success is True
        assert target.read_bytes() == b"MZ"
        assert mock_stream.call_args.args[1].endswith("ollama-windows-amd64.zip")


class TestInstallSystemWide:
    """Verify the package manager / install script path."""

    def test_success_relocates_executable(
        self, installer: Installer, locator: MagicMock, fake_ops: MagicMock
    ) -> None:
        locator.find.return_value = "/usr/local/bin/ollama"

        with patch(
            "managed_ai.server.installer.run_command",
            return_value=subprocess.CompletedProcess([], 0, "installed", ""),
        ) as mock_run:
            result = installer.install(InstallationStrategy.SYSTEM_WIDE_ONLY)

        assert result.success is True
        assert result.installation_type == InstallationType.NEW_SYSTEM_WIDE
        assert result.executable_path == "/usr/local/bin/ollama"
        assert mock_run.call_args.args[0] == fake_ops.system_install_command.return_value
        assert mock_run.call_args.kwargs["timeout"] == 300.0

    def test_non_zero_exit_fails(self, installer: Installer) -> None:
        with patch(
            "managed_ai.server.installer.run_command",
            return_value=subprocess.CompletedProcess([], 1, "", "permission denied"),
        ):
            result = installer.install(InstallationStrategy.SYSTEM_WIDE_ONLY)

        assert result.success is False
        assert "exit code 1" in result.message
        assert "permission denied" in result.message
        assert result.failure == InstallFailure.COMMAND

    def test_timeout_fails(self, installer: Installer) -> None:
        with patch(
            "managed_ai.server.installer.run_command",
            side_effect=subprocess.TimeoutExpired("bash", 300),
        ):
            result = installer.install(InstallationStrategy.SYSTEM_WIDE_ONLY)

        assert result.success is False
        assert "timed out" in result.message
        assert result.failure == InstallFailure.TIMEOUT

    def test_missing_executable_after_install_fails(
        self, installer: Installer, locator: MagicMock
    ) -> None:
        locator.find.return_value = None

        with patch(
            "managed_ai.server.installer.run_command",
            return_value=subprocess.CompletedProcess([], 0, "", ""),
        ):
            result = installer.install(InstallationStrategy.SYSTEM_WIDE_ONLY)

        assert result.success is False
        assert "was not found" in result.message
        assert result.failure == InstallFailure.NOT_FOUND

    def test_unsupported_platform_fails(self, installer: Installer, fake_ops: MagicMock) -> None:
        fake_ops.system_install_command.return_value = None

        result = installer.install(InstallationStrategy.SYSTEM_WIDE_ONLY)

        assert result.success is False
        assert "not supported" in result.message
        assert result.failure == InstallFailure.UNSUPPORTED
