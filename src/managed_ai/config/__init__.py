"""Configuration module for managed-ai."""

from managed_ai.config.loader import load_config
from managed_ai.config.schema import (
    EnvironmentType,
    InstallationStrategy,
    LifecycleConfig,
    ManagedAISettings,
    ModelConfig,
    ServerConfig,
)
from managed_ai.exceptions import ConfigError

__all__ = [
    "ConfigError",
    "EnvironmentType",
    "InstallationStrategy",
    "LifecycleConfig",
    "load_config",
    "ManagedAISettings",
    "ModelConfig",
    "ServerConfig",
]
