"""Models module for managed-ai.

Provides the Ollama model API client and model pulling.
"""

from managed_ai.models.client import OllamaClient, model_matches
from managed_ai.models.puller import ModelPuller, ProgressDebouncer, PullState
from managed_ai.models.schema import (
    ChatMessage,
    ModelInfo,
    PullProgress,
)

__all__ = [
    "ChatMessage",
    "ModelInfo",
    "ModelPuller",
    "OllamaClient",
    "ProgressDebouncer",
    "PullProgress",
    "PullState",
    "model_matches",
]
