"""Health checking for the managed Ollama server."""

import time

import httpx

from managed_ai.logging import get_logger
from managed_ai.server.instance import ServerInstance

_logger = get_logger("Health")

TAGS_PATH = "/api/tags"
MAX_PROBE_TIMEOUT = 5.0
MIN_PROBE_TIMEOUT = 0.1


def get_models(instance: ServerInstance, timeout: float = 5.0) -> list[str]:
    """Query the server for locally available models.

    Args:
        instance: Server to query
        timeout: Request timeout in seconds

    Returns:
        List of model names, or empty list if query fails
    """
    url = instance.url(TAGS_PATH)
    _logger.debug("Querying models at {}", url)
    try:
        response = httpx.get(url, timeout=timeout)
        if response.status_code == 200:
            data = response.json()
            models = [m.get("name", "unknown") for m in data.get("models", [])]
            _logger.debug("Found {} models: {}", len(models), models)
            return models
        _logger.warning("Failed to query models: status={}", response.status_code)
        return []
    except (httpx.RequestError, ValueError) as e:
        _logger.debug("Failed to query models: {} ({})", e, type(e).__name__)
        return []


def check_health(instance: ServerInstance, timeout: float = 5.0) -> str:
    """Check server health via the /api/tags endpoint.

    Args:
        instance: Server to check
        timeout: Request timeout in seconds

    Returns:
        "healthy" if /api/tags returns 2xx
        "unhealthy" if non-2xx response
        "unknown" if connection fails
    """
    url = instance.url(TAGS_PATH)
    _logger.debug("Checking health at {}", url)
    try:
        response = httpx.get(url, timeout=timeout)
        if response.is_success:
            _logger.debug("Health check passed (status={})", response.status_code)
            return "healthy"
        _logger.warning("Health check failed: status={}", response.status_code)
        return "unhealthy"
    except httpx.RequestError as e:
        _logger.debug("Health check failed: connection error ({})", type(e).__name__)
        return "unknown"


def wait_for_health(
    instance: ServerInstance,
    timeout: float = 30.0,
    interval: float = 1.0,
) -> bool:
    """Wait for the server to become healthy.

    Args:
        instance: Server to poll
        timeout: Total time to wait in seconds
        interval: Time between checks in seconds

    Returns:
        True if healthy within timeout, False otherwise
    """
    _logger.info("Waiting for server at {} to become healthy (timeout={}s)", instance.base_url, timeout)
    start = time.monotonic()
    deadline = start + timeout
    check_count = 0
    while True:
        check_count += 1
        # A probe never outlives the overall deadline
        remaining = deadline - time.monotonic()
        probe_timeout = min(instance.timeout, MAX_PROBE_TIMEOUT, max(MIN_PROBE_TIMEOUT, remaining))
        status = check_health(instance, timeout=probe_timeout)
        now = time.monotonic()
        if status == "healthy":
            _logger.info(
                "Server became healthy after {:.1f}s ({} checks)",
                now - start,
                check_count,
            )
            return True
        if now >= deadline:
            _logger.warning(
                "Server did not become healthy within {}s ({} checks)",
                timeout,
                check_count,
            )
            return False
        time.sleep(min(interval, deadline - now))
