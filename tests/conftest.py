"""Pytest configuration and shared fixtures."""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner


# Configure consistent terminal settings for Rich/Typer in CI environments
# This ensures help output is not truncated or wrapped differently
os.environ.setdefault("COLUMNS", "200")  # Wide terminal to prevent wrapping
os.environ.setdefault("LINES", "50")
os.environ.setdefault("TERM", "xterm-256color")  # Standard terminal type

from managed_ai.config.schema import LifecycleConfig, ManagedAISettings, ServerConfig
from managed_ai.host.detector import Platform, detect_platform


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Provide a temporary directory for test isolation."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def state_dir(temp_dir: Path) -> Path:
    """Create a temporary state directory for PID/port/log files."""
    state = temp_dir / "state" / "managed-ai"
    state.mkdir(parents=True)
    return state


@pytest.fixture
def sample_config_toml(temp_dir: Path) -> Path:
    """Create a sample managed-ai.toml for testing."""
    config_path = temp_dir / "managed-ai.toml"
    config_path.write_text("""
[server]
host = "127.0.0.1"
port = 11500
installation_strategy = "ISOLATED_ONLY"
allow_port_change = false

[lifecycle]
ready_timeout = 45
auto_install = false

[[models]]
name = "llama3.2"
preload = true

[[models]]
name = "qwen2.5"
version = "7b"
""")
    return config_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner with consistent terminal settings.

    Sets environment variables to ensure Rich/Typer produces consistent
    output across different environments (local vs CI).
    """
    return CliRunner(
        env={
            "COLUMNS": "200",  # Wide terminal to prevent line wrapping
            "LINES": "50",
            "TERM": "xterm-256color",
            "NO_COLOR": "1",  # Disable Rich's fancy formatting
        }
    )


@pytest.fixture
def settings() -> ManagedAISettings:
    """Create settings with fast lifecycle timings for tests."""
    return ManagedAISettings(
        server=ServerConfig(host="127.0.0.1", port=11434),
        lifecycle=LifecycleConfig(ready_timeout=5.0, settle_delay=0.0, health_interval=0.1),
    )


@pytest.fixture
def linux_platform() -> Platform:
    return detect_platform(os_name="Linux", machine="x86_64", env={"HOME": "/home/dev"})


@pytest.fixture
def macos_platform() -> Platform:
    return detect_platform(os_name="Darwin", machine="arm64", env={"HOME": "/Users/dev"})


@pytest.fixture
def windows_platform() -> Platform:
    return detect_platform(
        os_name="Windows",
        machine="AMD64",
        env={
            "USERPROFILE": "C:\\Users\\dev",
            "LOCALAPPDATA": "C:\\Users\\dev\\AppData\\Local",
            "PROGRAMFILES": "C:\\Program Files",
        },
    )


@pytest.fixture
def fake_ops(linux_platform: Platform) -> MagicMock:
    """PlatformOps double for Linux that finds nothing and sees no listeners."""
    ops = MagicMock()
    ops.platform = linux_platform
    ops.which.return_value = None
    ops.is_port_listening.return_value = False
    ops.is_process_running.return_value = False
    ops.kill_matching.return_value = True
    ops.system_install_command.return_value = ["bash", "-c", "install-ollama"]
    return ops
