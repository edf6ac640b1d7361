"""Custom exception hierarchy for managed-ai.

Components report most failures as result values; these exceptions name the
failure categories and are attached to lifecycle outcomes so callers can tell
a fatal problem from one worth retrying.
"""


class ManagedAIError(Exception):
    """Base exception for all managed-ai errors."""

    pass


class ConfigError(ManagedAIError):
    """Configuration-related errors."""

    pass


class UnsupportedPlatformError(ManagedAIError):
    """Host OS has no Ollama release artifact. Not recoverable."""

    pass


class InstallationError(ManagedAIError):
    """Ollama could not be located or installed."""

    pass


class PortConflictError(ManagedAIError):
    """The requested port is held by another service."""

    pass


class NoPortAvailableError(PortConflictError):
    """No free port was found during alternative-port search."""

    pass


class ServerError(ManagedAIError):
    """Server process lifecycle errors."""

    pass


class StartupTimeoutError(ServerError):
    """Server did not become ready within the configured timeout."""

    pass


class ProcessStopError(ServerError):
    """Server process could not be stopped cleanly. Never fatal."""

    pass


class ModelPullError(ManagedAIError):
    """A model could not be pulled into the server."""

    pass
