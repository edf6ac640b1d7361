"""managed-ai: Lifecycle management for a locally running Ollama server."""

__version__ = "0.1.0"

# Default server constants
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 11434

from managed_ai.logging import configure_logging, get_logger

__all__ = ["__version__", "DEFAULT_HOST", "DEFAULT_PORT", "configure_logging", "get_logger"]
