"""Model pulling with availability pre-check and debounced progress reporting."""

import time
from collections.abc import Callable
from enum import Enum

import httpx

from managed_ai.exceptions import ModelPullError
from managed_ai.logging import get_logger
from managed_ai.models.client import OllamaClient
from managed_ai.models.schema import PullProgress

_logger = get_logger("ModelPuller")

ProgressCallback = Callable[[PullProgress], None]


class PullState(str, Enum):
    """State of the most recent pull request."""

    NOT_REQUESTED = "not_requested"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED_TRANSIENT = "failed_transient"
    FAILED_FATAL = "failed_fatal"


class ProgressDebouncer:
    """Decides which progress records are worth reporting.

    A record is reported when its status/digest differs from the last
    reported one, or when its percentage advanced by at least `step` points
    since the last report for the same status/digest.
    """

    def __init__(self, step: float = 5.0) -> None:
        self._step = step
        self._last_key: str | None = None
        self._last_percentage = 0.0

    def should_report(self, progress: PullProgress) -> bool:
        if progress.key != self._last_key:
            self._last_key = progress.key
            self._last_percentage = progress.percentage
            return True
        if progress.percentage - self._last_percentage >= self._step:
            self._last_percentage = progress.percentage
            return True
        return False


class ModelPuller:
    """Ensures models are present on the server, pulling them when missing."""

    def __init__(
        self,
        client: OllamaClient,
        progress_step: float = 5.0,
        recheck_delay: float = 2.0,
    ) -> None:
        self._client = client
        self._progress_step = progress_step
        self._recheck_delay = recheck_delay
        self.last_state = PullState.NOT_REQUESTED
        self.last_error: str | None = None

    def _succeed(self, name: str) -> bool:
        self.last_state = PullState.SUCCEEDED
        self.last_error = None
        _logger.info("Model {} is available", name)
        return True

    def _fail(self, state: PullState, name: str, error: str) -> bool:
        self.last_state = state
        self.last_error = error
        _logger.error("Failed to pull model {}: {}", name, error)
        return False

    def _already_available(self, name: str) -> bool:
        if self._client.is_model_available(name):
            _logger.info("Model {} is already available, skipping pull", name)
            return True
        return False

    def pull(self, name: str) -> bool:
        """Pull a model with a single blocking request.

        Returns:
            True if the model is available afterwards.
        """
        if self._already_available(name):
            return self._succeed(name)

        self.last_state = PullState.IN_FLIGHT
        try:
            self._client.pull(name)
        except ModelPullError as e:
            transient = isinstance(e.__cause__, httpx.TransportError)
            state = PullState.FAILED_TRANSIENT if transient else PullState.FAILED_FATAL
            return self._fail(state, name, str(e))
        return self._succeed(name)

    def pull_with_progress(self, name: str, on_progress: ProgressCallback) -> bool:
        """Pull a model, streaming debounced progress to on_progress.

        A final "success" record is always delivered exactly once on success.
        If the stream breaks after data arrived, the server may still finish
        the download, so availability is rechecked after a short delay.

        Returns:
            True if the model is available afterwards.
        """
        if self._already_available(name):
            return self._succeed(name)

        self.last_state = PullState.IN_FLIGHT
        debouncer = ProgressDebouncer(self._progress_step)
        received = False
        completed = False
        last_reported: str | None = None

        try:
            for progress in self._client.stream_pull(name):
                received = True
                if progress.error:
                    on_progress(progress)
                    return self._fail(PullState.FAILED_FATAL, name, progress.error)
                if debouncer.should_report(progress):
                    on_progress(progress)
                    last_reported = progress.status
                if progress.is_success:
                    completed = True
        except httpx.HTTPStatusError as e:
            return self._fail(PullState.FAILED_FATAL, name, f"server returned {e.response.status_code}")
        except httpx.TransportError as e:
            if not received:
                return self._fail(PullState.FAILED_TRANSIENT, name, str(e) or type(e).__name__)
            _logger.warning(
                "Pull stream for {} interrupted ({}), rechecking in {}s",
                name,
                type(e).__name__,
                self._recheck_delay,
            )
            time.sleep(self._recheck_delay)
            if not self._client.is_model_available(name):
                return self._fail(
                    PullState.FAILED_TRANSIENT, name, "stream interrupted before the pull completed"
                )
            completed = True

        if not completed and not self._client.is_model_available(name):
            return self._fail(PullState.FAILED_TRANSIENT, name, "stream ended without success")

        if last_reported != "success":
            on_progress(PullProgress(status="success"))
        return self._succeed(name)
