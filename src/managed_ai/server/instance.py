"""Target endpoint of one managed Ollama server."""

from dataclasses import dataclass

from managed_ai import DEFAULT_HOST, DEFAULT_PORT
from managed_ai.config.schema import ManagedAISettings

# Project-local data directory used when isolated without an explicit path
DEFAULT_ISOLATED_DIR = ".ollama"


@dataclass(frozen=True)
class ServerInstance:
    """One logical Ollama endpoint for a setup cycle.

    Created at the start of setup and read-only afterwards. `timeout` is the
    per-request timeout in seconds.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    protocol: str = "http"
    timeout: float = 30.0
    is_isolated: bool = False
    isolated_data_path: str | None = None

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    def url(self, path: str) -> str:
        """Absolute URL for an API path such as /api/tags."""
        return f"{self.base_url}/{path.lstrip('/')}"

    @classmethod
    def from_settings(
        cls,
        settings: ManagedAISettings,
        port: int | None = None,
        timeout: float = 30.0,
    ) -> "ServerInstance":
        """Build an instance from settings, optionally on a resolved port."""
        server = settings.server
        isolated_path = (server.isolated_path or DEFAULT_ISOLATED_DIR) if server.is_isolated else None
        return cls(
            host=server.host,
            port=port if port is not None else server.port,
            protocol=server.protocol,
            timeout=timeout,
            is_isolated=server.is_isolated,
            isolated_data_path=str(isolated_path) if isolated_path else None,
        )
