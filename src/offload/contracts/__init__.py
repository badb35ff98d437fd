"""Shared contracts for cross-boundary data types.

Failures, outcomes and runtime configuration are defined here so the
engine modules and their callers agree on one vocabulary.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes (OffloadSettings) are NOT re-exported here - import them
from offload.core.config.

Import patterns:
    # Contracts (lightweight, no heavy dependencies)
    from offload.contracts import Failure, RunConfig, TimeoutFailure

    # Settings classes (from core, pulls in pydantic/dynaconf)
    from offload.core.config import OffloadSettings, load_settings
"""

from offload.contracts.config import (
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_START_METHOD,
    Duration,
    RunConfig,
    StartMethod,
    to_seconds,
)
from offload.contracts.errors import (
    ChannelClosedError,
    ChannelError,
    ExecutionFailure,
    ExhaustedRetriesFailure,
    FailureDescriptor,
    OperationFailure,
    SpawnFailure,
    TaskFailure,
    TimeoutFailure,
)
from offload.contracts.results import Failure, Outcome, Success, is_failure

__all__ = [
    "DEFAULT_RETRIES",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_START_METHOD",
    "ChannelClosedError",
    "ChannelError",
    "Duration",
    "ExecutionFailure",
    "ExhaustedRetriesFailure",
    "Failure",
    "FailureDescriptor",
    "OperationFailure",
    "Outcome",
    "RunConfig",
    "SpawnFailure",
    "StartMethod",
    "Success",
    "TaskFailure",
    "TimeoutFailure",
    "is_failure",
    "to_seconds",
]
