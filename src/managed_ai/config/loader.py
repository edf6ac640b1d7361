"""Configuration loader for managed-ai settings.

Handles TOML file loading, path discovery, and resolution priority:
1. CLI arguments (highest priority)
2. TOML file (discovered or explicit)
3. Default values (lowest priority)
"""

import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from managed_ai.config.schema import InstallationStrategy, ManagedAISettings
from managed_ai.exceptions import ConfigError
from managed_ai.logging import get_logger

_logger = get_logger("Config")

CONFIG_FILENAME = "managed-ai.toml"
USER_CONFIG_PATH = Path.home() / ".config" / "managed-ai" / "config.toml"


def load_config(
    config_path: Path | None = None,
    port: int | None = None,
    host: str | None = None,
    strategy: InstallationStrategy | str | None = None,
) -> ManagedAISettings:
    """Load and resolve managed-ai configuration.

    Resolution priority (highest to lowest):
    1. CLI arguments (port, host, strategy)
    2. TOML file (config_path or discovered)
    3. Default values

    Path discovery (when config_path is None):
    1. ./managed-ai.toml (current directory)
    2. ~/.config/managed-ai/config.toml (user config)
    3. Use defaults if neither exists

    Args:
        config_path: Explicit path to config TOML file
        port: Server port (CLI override)
        host: Server host (CLI override)
        strategy: Installation strategy (CLI override)

    Returns:
        ManagedAISettings: Resolved configuration

    Raises:
        ConfigError: If the TOML file cannot be read, parsed, or validated
    """
    _logger.debug(
        "Loading config: config_path={}, port={}, host={}, strategy={}",
        config_path, port, host, strategy,
    )

    toml_config: dict[str, Any] = {}

    if config_path:
        _logger.debug("Loading explicit config file: {}", config_path)
        toml_config = _load_toml_file(config_path)
    else:
        discovered_path = discover_config_path()
        if discovered_path:
            _logger.debug("Discovered config file: {}", discovered_path)
            toml_config = _load_toml_file(discovered_path)
        else:
            _logger.debug("No config file found, using defaults")

    # Merge configuration with priority: CLI > TOML > defaults
    server_dict = dict(toml_config.get("server", {}))
    if host is not None:
        server_dict["host"] = host
    if port is not None:
        server_dict["port"] = port
    if strategy is not None:
        server_dict["installation_strategy"] = strategy

    try:
        settings = ManagedAISettings(
            server=server_dict,
            lifecycle=toml_config.get("lifecycle", {}),
            models=toml_config.get("models", []),
        )
    except ValidationError as e:
        _logger.error("Invalid configuration: {}", e)
        raise ConfigError(f"Invalid configuration:\n{e}") from e

    _logger.info(
        "Config loaded: host={}, port={}, strategy={}, models={}",
        settings.server.host,
        settings.server.port,
        settings.server.installation_strategy.value,
        [m.full_name for m in settings.models],
    )
    return settings


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Load and parse a TOML file.

    Args:
        path: Path to TOML file

    Returns:
        dict: Parsed TOML content

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    try:
        with open(path, "rb") as f:
            config = tomllib.load(f)
            _logger.debug("Successfully loaded TOML file: {}", path)
            return config
    except FileNotFoundError as e:
        _logger.error("Config file not found: {}", path)
        raise ConfigError(f"Config file not found: {path}") from e
    except (tomllib.TOMLDecodeError, OSError) as e:
        _logger.error("Failed to parse config file {}: {}", path, e)
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e


def discover_config_path() -> Path | None:
    """Discover config file path following resolution order.

    Returns:
        Path: Path to existing config file, or None if not found
    """
    current_dir_config = Path(CONFIG_FILENAME)
    if current_dir_config.exists():
        return current_dir_config

    if USER_CONFIG_PATH.exists():
        return USER_CONFIG_PATH

    return None
