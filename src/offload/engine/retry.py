# src/offload/engine/retry.py
"""RetryOrchestrator: bounded retries with exponential backoff via tenacity.

Drives attempts sequentially until one succeeds or the budget is spent:

- Success returns immediately, with no delay and no further attempts
- Failure on attempt n < retries sleeps retry_delay * 2**(n-1), then retries
- Failure on attempt n == retries returns ExhaustedRetriesFailure

Attempts report their result as Outcome values rather than raising, so
tenacity retries on the *result* (retry_if_result) instead of on
exceptions. Every TaskFailure kind consumes an attempt: operation errors,
timeouts and spawn failures alike. An exception escaping the attempt
callable itself is a bug in the caller and propagates without retry.

Backoff has no jitter and no practical cap. Delays grow without bound.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from offload.contracts.config import DEFAULT_RETRIES, DEFAULT_RETRY_DELAY
from offload.contracts.errors import ExhaustedRetriesFailure
from offload.contracts.results import Failure, Outcome, is_failure
from offload.engine.profiling import Profiler

logger = structlog.get_logger(__name__)

T = TypeVar("T")

BACKOFF_BASE = 2


@dataclass(frozen=True, slots=True)
class AttemptState:
    """Orchestrator state between two attempts.

    Attributes:
        attempt_number: The attempt that just failed (1-based)
        current_delay: Seconds the orchestrator waits before the next attempt
    """

    attempt_number: int
    current_delay: float


class RetryOrchestrator:
    """Runs an Outcome-returning attempt with retries and backoff.

    Example:
        orchestrator = RetryOrchestrator(retries=3, retry_delay=0.1)

        outcome = await orchestrator.run(
            lambda: run_attempt(operation, timeout=1.0),
        )
    """

    def __init__(
        self,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_retry: Callable[[AttemptState, Failure], None] | None = None,
        profiler: Profiler | None = None,
    ) -> None:
        """Initialize with attempt budget and backoff schedule.

        Args:
            retries: Total attempts (>= 1)
            retry_delay: Delay in seconds before the second attempt
            sleep: Awaitable sleep used between attempts (injectable for tests)
            on_retry: Called after each failed attempt that will be retried
            profiler: Receives per-attempt profiling events
        """
        if retries < 1:
            raise ValueError("retries must be >= 1")
        if not math.isfinite(retry_delay) or retry_delay < 0:
            raise ValueError("retry_delay must be >= 0 and finite")
        self._retries = retries
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._on_retry = on_retry
        self._profiler = profiler if profiler is not None else Profiler(enabled=False)

    @property
    def retries(self) -> int:
        return self._retries

    @property
    def retry_delay(self) -> float:
        return self._retry_delay

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        assert retry_state.outcome is not None
        assert retry_state.next_action is not None
        failure: Failure = retry_state.outcome.result()
        state = AttemptState(
            attempt_number=retry_state.attempt_number,
            current_delay=retry_state.next_action.sleep,
        )
        logger.debug(
            "attempt_failed",
            attempt=state.attempt_number,
            delay_seconds=state.current_delay,
            error=str(failure.error),
        )
        self._profiler.attempt_failed(state.attempt_number, state.current_delay, failure.error)
        if self._on_retry is not None:
            self._on_retry(state, failure)

    async def run(self, attempt: Callable[[], Awaitable[Outcome[T]]]) -> Outcome[T]:
        """Execute attempt until Success or the budget is spent.

        Args:
            attempt: Zero-argument coroutine function producing an Outcome

        Returns:
            The first Success, or Failure(ExhaustedRetriesFailure) wrapping
            the last attempt's failure
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=self._retry_delay, exp_base=BACKOFF_BASE),
            retry=retry_if_result(is_failure),
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=False,  # We catch RetryError and convert to ExhaustedRetriesFailure
        )

        outcome: Outcome[T] | None = None
        try:
            async for attempt_state in retrying:
                number = attempt_state.retry_state.attempt_number
                self._profiler.attempt_started(number)
                with attempt_state:
                    outcome = await attempt()
                result = attempt_state.retry_state.outcome
                if result is not None and not result.failed:
                    attempt_state.retry_state.set_result(outcome)
                    if not is_failure(outcome):
                        self._profiler.attempt_succeeded(number)
        except RetryError as e:
            last: Failure = e.last_attempt.result()
            attempts = e.last_attempt.attempt_number
            self._profiler.retries_exhausted(attempts)
            return Failure(ExhaustedRetriesFailure(attempts, last.error))

        # Retrying only stops iterating after a non-retried (successful) result
        assert outcome is not None
        return outcome
