# src/offload/engine/__init__.py
"""Execution engine: isolated workers, deadlines and retries.

This package provides the task-execution primitive:
- OneShotChannel: single-message transport from worker to caller
- IsolatedWorker / run_attempt: one fresh process per attempt
- race_deadline: worker completion vs. deadline, worker wins ties
- RetryOrchestrator: bounded retries with exponential backoff (tenacity)
- run_expensive_operation / run_with_timeout / run_with_retry: entry points

Example:
    import functools
    from offload.engine import run_with_retry

    digest = await run_with_retry(
        functools.partial(hash_file, "/data/large.bin"),
        timeout=30.0,
        retries=3,
        retry_delay=0.5,
    )
"""

from offload.engine.channel import ChannelMessage, ChannelSender, OneShotChannel
from offload.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from offload.engine.isolation import IsolatedWorker, Operation, run_attempt
from offload.engine.profiling import Profiler
from offload.engine.retry import AttemptState, RetryOrchestrator
from offload.engine.runner import (
    execute,
    run_expensive_operation,
    run_with_retry,
    run_with_timeout,
)
from offload.engine.timeout import race_deadline

__all__ = [
    "DEFAULT_CLOCK",
    "AttemptState",
    "ChannelMessage",
    "ChannelSender",
    "Clock",
    "IsolatedWorker",
    "MockClock",
    "OneShotChannel",
    "Operation",
    "Profiler",
    "RetryOrchestrator",
    "SystemClock",
    "execute",
    "race_deadline",
    "run_attempt",
    "run_expensive_operation",
    "run_with_retry",
    "run_with_timeout",
]
