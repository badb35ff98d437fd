"""
Offload: run expensive work in an isolated process and await the result.

Each call spawns a fresh worker process, waits for its single result
message without blocking the event loop, and optionally enforces a
deadline and bounded retries with exponential backoff.

    import offload

    result = await offload.run_with_timeout(crunch, timeout=3.0)
"""

__version__ = "0.1.0"

from offload.contracts import (
    ExecutionFailure,
    ExhaustedRetriesFailure,
    Failure,
    FailureDescriptor,
    OperationFailure,
    Outcome,
    RunConfig,
    SpawnFailure,
    Success,
    TaskFailure,
    TimeoutFailure,
)
from offload.engine import (
    AttemptState,
    RetryOrchestrator,
    execute,
    run_attempt,
    run_expensive_operation,
    run_with_retry,
    run_with_timeout,
)

__all__ = [
    "AttemptState",
    "ExecutionFailure",
    "ExhaustedRetriesFailure",
    "Failure",
    "FailureDescriptor",
    "OperationFailure",
    "Outcome",
    "RetryOrchestrator",
    "RunConfig",
    "SpawnFailure",
    "Success",
    "TaskFailure",
    "TimeoutFailure",
    "__version__",
    "execute",
    "run_attempt",
    "run_expensive_operation",
    "run_with_retry",
    "run_with_timeout",
]
