"""Lifecycle orchestration for managed-ai."""

from managed_ai.lifecycle.cache import CacheStats, TaskCache
from managed_ai.lifecycle.orchestrator import (
    LifecycleOrchestrator,
    PullOutcome,
    SetupOutcome,
    StatusReport,
    TeardownOutcome,
)

__all__ = [
    "CacheStats",
    "LifecycleOrchestrator",
    "PullOutcome",
    "SetupOutcome",
    "StatusReport",
    "TaskCache",
    "TeardownOutcome",
]
