"""Pydantic configuration schema models for managed-ai settings.

Defines configuration for the Ollama server endpoint, how the executable is
found or installed, lifecycle timings, and the models to manage.
"""

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, computed_field, field_validator


class InstallationStrategy(str, Enum):
    """Where the Ollama executable comes from, in search/install order."""

    PREFER_EXISTING = "prefer_existing"  # existing, else isolated
    ISOLATED_ONLY = "isolated_only"  # isolated, ignore existing
    PREFER_EXISTING_THEN_SYSTEM_WIDE = "prefer_existing_then_system_wide"  # existing, else system-wide
    SYSTEM_WIDE_ONLY = "system_wide_only"  # system-wide, ignore existing
    FULL_PRIORITY = "full_priority"  # existing, isolated, then system-wide


class EnvironmentType(str, Enum):
    """Whether the server shares system-wide data or a project-local directory."""

    SYSTEM_WIDE = "system_wide"
    ISOLATED = "isolated"


def _normalize_enum_value(value: object) -> object:
    """Accept enum names like PREFER_EXISTING as well as their values."""
    if isinstance(value, str):
        return value.strip().lower().replace("-", "_")
    return value


class ServerConfig(BaseModel):
    """Ollama server endpoint and installation settings."""

    host: str = "localhost"
    port: int = Field(11434, ge=1, le=65535)
    protocol: Literal["http", "https"] = "http"
    install_path: Path | None = None
    isolated_path: Path | None = None
    data_path: Path | None = None
    environment_type: EnvironmentType = EnvironmentType.SYSTEM_WIDE
    installation_strategy: InstallationStrategy = InstallationStrategy.PREFER_EXISTING
    version: str = "v0.9.6"
    graceful_shutdown: bool = True
    shutdown_timeout: int = Field(30, ge=0)
    allow_port_change: bool = True
    additional_args: list[str] = Field(default_factory=list)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("environment_type", "installation_strategy", mode="before")
    @classmethod
    def _lowercase_enums(cls, value: object) -> object:
        return _normalize_enum_value(value)

    @property
    def is_isolated(self) -> bool:
        """True when the server runs against a project-local data directory."""
        return self.environment_type == EnvironmentType.ISOLATED


class LifecycleConfig(BaseModel):
    """Lifecycle behavior and timing settings.

    Timeouts are in seconds. `timeout` is the global operation timeout and
    bounds model pulls; `ready_timeout` bounds the wait for the server to
    answer after it has been started.
    """

    auto_install: bool = True
    auto_start: bool = True
    timeout: float = Field(300.0, gt=0)
    ready_timeout: float = Field(30.0, gt=0)
    settle_delay: float = Field(2.0, ge=0)
    health_interval: float = Field(1.0, gt=0)
    cache_ttl: float = Field(60.0, ge=0)
    progress_step: int = Field(5, ge=1, le=100)


class ModelConfig(BaseModel):
    """A named model to manage."""

    name: str = Field(min_length=1)
    version: str = "latest"
    preload: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def full_name(self) -> str:
        """Model reference as sent to the server, e.g. llama3.2:latest."""
        return f"{self.name}:{self.version}"


class ManagedAISettings(BaseModel):
    """Complete managed-ai configuration settings."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    models: list[ModelConfig] = Field(default_factory=list)

    @property
    def preload_models(self) -> list[ModelConfig]:
        """Models marked for download during setup."""
        return [m for m in self.models if m.preload]
