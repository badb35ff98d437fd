# src/offload/engine/runner.py
"""Public entry points: run work in an isolated process and await it.

    run_expensive_operation(op)                      single attempt
    run_with_timeout(op, timeout=3)                  single attempt, deadline
    run_with_retry(op, retries=3, retry_delay=2)     attempts with backoff
    execute(op, config, retry=...)                   RunConfig-driven form

All four are coroutines. The caller's event loop keeps running while the
operation executes in its own process. Failures are raised as typed
TaskFailure exceptions:

    SpawnFailure / OperationFailure   from the single-attempt entry points
    TimeoutFailure                    when a deadline elapsed
    ExhaustedRetriesFailure           from run_with_retry, chained to the
                                      last attempt's failure

The operation must be a picklable zero-argument callable (module-level
function, or functools.partial of one). It may return a value or an
awaitable.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog

from offload.contracts.config import (
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_START_METHOD,
    Duration,
    RunConfig,
    StartMethod,
)
from offload.contracts.errors import ExhaustedRetriesFailure
from offload.contracts.results import Failure, Outcome
from offload.engine.isolation import Operation, run_attempt
from offload.engine.profiling import Profiler
from offload.engine.retry import AttemptState, RetryOrchestrator

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _unwrap(outcome: Outcome[T], task: str) -> T:
    """Return the value or raise the failure, logging every failure once."""
    if isinstance(outcome, Failure):
        error = outcome.error
        logger.warning(
            "background_task_failed",
            task=task,
            error_type=type(error).__name__,
            error=str(error),
        )
        if isinstance(error, ExhaustedRetriesFailure):
            raise error from error.last_failure
        raise error
    return outcome.value


async def _run_single(operation: Operation[T], config: RunConfig, task: str) -> T:
    profiler = Profiler(enabled=config.enable_profiling)
    with profiler.track(task):
        outcome = await run_attempt(operation, timeout=config.timeout, start_method=config.start_method)
        return _unwrap(outcome, task)


async def _run_retrying(
    operation: Operation[T],
    config: RunConfig,
    task: str,
    on_retry: Callable[[AttemptState, Failure], None] | None = None,
) -> T:
    profiler = Profiler(enabled=config.enable_profiling)
    orchestrator = RetryOrchestrator(
        config.retries,
        config.retry_delay,
        on_retry=on_retry,
        profiler=profiler,
    )

    async def attempt() -> Outcome[T]:
        return await run_attempt(operation, timeout=config.timeout, start_method=config.start_method)

    with profiler.track(task):
        outcome = await orchestrator.run(attempt)
        return _unwrap(outcome, task)


async def run_expensive_operation(
    operation: Operation[T],
    *,
    enable_profiling: bool = False,
    start_method: StartMethod = DEFAULT_START_METHOD,
) -> T:
    """Execute operation in a separate process and return its result.

    Args:
        operation: Picklable zero-argument callable (sync or async)
        enable_profiling: Emit task_started / task_completed events
        start_method: multiprocessing start method for the worker

    Raises:
        OperationFailure: If the operation raised (cause holds the
            worker-side FailureDescriptor)
        SpawnFailure: If the worker process could not be created
    """
    config = RunConfig(retries=1, enable_profiling=enable_profiling, start_method=start_method)
    return await _run_single(operation, config, "run_expensive_operation")


async def run_with_timeout(
    operation: Operation[T],
    *,
    timeout: Duration | None = None,
    enable_profiling: bool = False,
    start_method: StartMethod = DEFAULT_START_METHOD,
) -> T:
    """Execute operation in a separate process, killing it after timeout.

    With timeout=None this behaves exactly like run_expensive_operation.

    Raises:
        TimeoutFailure: If timeout seconds elapsed first
        OperationFailure: If the operation raised
        SpawnFailure: If the worker process could not be created
    """
    config = RunConfig(timeout=timeout, retries=1, enable_profiling=enable_profiling, start_method=start_method)
    return await _run_single(operation, config, "run_with_timeout")


async def run_with_retry(
    operation: Operation[T],
    *,
    timeout: Duration | None = None,
    retries: int = DEFAULT_RETRIES,
    retry_delay: Duration = DEFAULT_RETRY_DELAY,
    enable_profiling: bool = False,
    start_method: StartMethod = DEFAULT_START_METHOD,
    on_retry: Callable[[AttemptState, Failure], None] | None = None,
) -> T:
    """Execute operation with up to retries attempts and exponential backoff.

    Each attempt runs in its own fresh process, optionally bounded by
    timeout. Attempt n+1 starts retry_delay * 2**(n-1) seconds after
    attempt n failed. Retries may re-run side effects of the operation.

    Raises:
        ExhaustedRetriesFailure: If every attempt failed; last_failure
            (also __cause__) is the final attempt's failure
    """
    config = RunConfig(
        timeout=timeout,
        retries=retries,
        retry_delay=retry_delay,
        enable_profiling=enable_profiling,
        start_method=start_method,
    )
    return await _run_retrying(operation, config, "run_with_retry", on_retry)


async def execute(
    operation: Operation[T],
    config: RunConfig,
    *,
    retry: bool,
    on_retry: Callable[[AttemptState, Failure], None] | None = None,
) -> Any:
    """Run operation as described by a RunConfig.

    Args:
        operation: Picklable zero-argument callable
        config: Per-call configuration
        retry: Use the retry path (config.retries attempts); otherwise a
            single attempt bounded by config.timeout
        on_retry: Retry callback, only used when retry is True
    """
    if retry:
        return await _run_retrying(operation, config, "execute", on_retry)
    return await _run_single(operation, config, "execute")
