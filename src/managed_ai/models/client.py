"""HTTP client for the Ollama model API.

Thin wrapper over the endpoints the lifecycle needs: listing, pulling and
deleting models, plus one-shot generate and chat calls used for smoke tests.
Every request carries an explicit timeout.
"""

from collections.abc import Iterator, Sequence

import httpx
from pydantic import ValidationError

from managed_ai.exceptions import ModelPullError, ServerError
from managed_ai.logging import get_logger
from managed_ai.models.schema import (
    ChatMessage,
    ChatResponse,
    GenerateResponse,
    ModelInfo,
    ModelsResponse,
    PullProgress,
    PullRequest,
)
from managed_ai.server.instance import ServerInstance

_logger = get_logger("OllamaClient")

DEFAULT_PULL_TIMEOUT = 300.0


def model_matches(requested: str, listed: str) -> bool:
    """Whether a listed model name satisfies a requested name.

    "llama3" matches "llama3:latest" and any other "llama3:<tag>".
    """
    if listed == requested or listed.startswith(f"{requested}:"):
        return True
    return requested.endswith(":latest") and listed == requested.removesuffix(":latest")


class OllamaClient:
    """Client for one Ollama server instance."""

    def __init__(self, instance: ServerInstance, pull_timeout: float = DEFAULT_PULL_TIMEOUT) -> None:
        self._instance = instance
        self._timeout = instance.timeout
        self._pull_timeout = pull_timeout

    @property
    def instance(self) -> ServerInstance:
        return self._instance

    def list_models(self) -> list[ModelInfo]:
        """List locally available models.

        Raises:
            ServerError: If the server cannot be reached or answers with an error.
        """
        url = self._instance.url("/api/tags")
        try:
            response = httpx.get(url, timeout=self._timeout)
            response.raise_for_status()
            return ModelsResponse.model_validate(response.json()).models
        except httpx.HTTPError as e:
            raise ServerError(f"Failed to list models at {url}: {e}") from e
        except (ValueError, ValidationError) as e:
            raise ServerError(f"Unexpected response from {url}: {e}") from e

    def is_model_available(self, name: str) -> bool:
        """Whether the model is listed locally. Query failures count as absent."""
        try:
            models = self.list_models()
        except ServerError as e:
            _logger.debug("Could not check availability of {}: {}", name, e)
            return False
        return any(model_matches(name, m.name) for m in models)

    def pull(self, name: str) -> None:
        """Pull a model with a single non-streaming request.

        Raises:
            ModelPullError: If the request fails or the server reports an error.
        """
        url = self._instance.url("/api/pull")
        body = PullRequest(name=name, stream=False).model_dump()
        _logger.info("Pulling model {} from {}", name, url)
        try:
            response = httpx.post(url, json=body, timeout=self._pull_timeout)
            response.raise_for_status()
            result = PullProgress.model_validate(response.json())
        except httpx.HTTPError as e:
            raise ModelPullError(f"Failed to pull model {name}: {e}") from e
        except (ValueError, ValidationError) as e:
            raise ModelPullError(f"Unexpected pull response for {name}: {e}") from e
        if result.error:
            raise ModelPullError(f"Failed to pull model {name}: {result.error}")

    def stream_pull(self, name: str) -> Iterator[PullProgress]:
        """Pull a model, yielding each progress record as it arrives.

        Malformed lines are skipped. Transport and HTTP errors propagate as
        httpx exceptions so callers can tell an interrupted stream apart from
        one that never started.
        """
        url = self._instance.url("/api/pull")
        body = PullRequest(name=name, stream=True).model_dump()
        _logger.info("Pulling model {} from {} (streaming)", name, url)
        with httpx.stream("POST", url, json=body, timeout=self._pull_timeout) as response:
            response.raise_for_status()
            for line in response.iter_lines():
                if not line.strip():
                    continue
                try:
                    yield PullProgress.model_validate_json(line)
                except ValidationError as e:
                    _logger.debug("Skipping malformed progress line {!r}: {}", line, e)

    def generate(self, model: str, prompt: str) -> str:
        """Run a one-shot completion and return the response text.

        Raises:
            ServerError: If the request fails.
        """
        url = self._instance.url("/api/generate")
        body = {"model": model, "prompt": prompt, "stream": False}
        try:
            response = httpx.post(url, json=body, timeout=self._pull_timeout)
            response.raise_for_status()
            return GenerateResponse.model_validate(response.json()).response
        except httpx.HTTPError as e:
            raise ServerError(f"Generate request to {model} failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise ServerError(f"Unexpected generate response from {model}: {e}") from e

    def chat(self, model: str, messages: Sequence[ChatMessage | dict[str, str]]) -> str:
        """Send a chat conversation and return the assistant's reply.

        Raises:
            ServerError: If the request fails.
        """
        url = self._instance.url("/api/chat")
        body = {
            "model": model,
            "messages": [ChatMessage.model_validate(m).model_dump() for m in messages],
            "stream": False,
        }
        try:
            response = httpx.post(url, json=body, timeout=self._pull_timeout)
            response.raise_for_status()
            return ChatResponse.model_validate(response.json()).message.content
        except httpx.HTTPError as e:
            raise ServerError(f"Chat request to {model} failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise ServerError(f"Unexpected chat response from {model}: {e}") from e

    def delete_model(self, name: str) -> bool:
        """Delete a local model. Returns False if the model does not exist.

        Raises:
            ServerError: If the request fails for any other reason.
        """
        url = self._instance.url("/api/delete")
        try:
            response = httpx.request(
                "DELETE", url, json={"name": name}, timeout=self._timeout
            )
        except httpx.HTTPError as e:
            raise ServerError(f"Failed to delete model {name}: {e}") from e
        if response.status_code == 404:
            _logger.info("Model {} not found, nothing to delete", name)
            return False
        if not response.is_success:
            raise ServerError(f"Failed to delete model {name}: status={response.status_code}")
        _logger.info("Deleted model {}", name)
        return True
