# src/offload/engine/profiling.py
"""Profiling side channel for background task execution.

When enabled, emits structlog events describing when a task started, how
long it ran and how each retry attempt went. When disabled every method is
a no-op. Either way nothing here touches return values or timing: the
events are emitted around the awaited work, never inside it.

Events:
    task_started            started_at (ISO-8601 UTC)
    task_completed          elapsed_seconds
    task_failed             elapsed_seconds, error_type
    attempt_started         attempt
    attempt_succeeded       attempt
    attempt_failed_retrying attempt, delay_seconds, error
    retries_exhausted       attempts
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from offload.engine.clock import DEFAULT_CLOCK, Clock

logger = structlog.get_logger(__name__)


class Profiler:
    """Emits profiling events for one top-level call.

    Example:
        profiler = Profiler(enabled=True)
        with profiler.track("run_with_timeout"):
            result = await race_deadline(worker, 3.0)
    """

    def __init__(
        self,
        enabled: bool = False,
        *,
        clock: Clock | None = None,
        log: Any = None,
    ) -> None:
        self._enabled = enabled
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._log = log if log is not None else logger

    @property
    def enabled(self) -> bool:
        return self._enabled

    @contextmanager
    def track(self, task: str) -> Iterator[None]:
        """Emit task_started on entry and task_completed/task_failed on exit."""
        if not self._enabled:
            yield
            return

        started = self._clock.monotonic()
        self._log.info("task_started", task=task, started_at=self._clock.now().isoformat())
        try:
            yield
        except BaseException as exc:
            self._log.info(
                "task_failed",
                task=task,
                elapsed_seconds=self._clock.monotonic() - started,
                error_type=type(exc).__name__,
            )
            raise
        self._log.info("task_completed", task=task, elapsed_seconds=self._clock.monotonic() - started)

    def attempt_started(self, attempt: int) -> None:
        if self._enabled:
            self._log.info("attempt_started", attempt=attempt)

    def attempt_succeeded(self, attempt: int) -> None:
        if self._enabled:
            self._log.info("attempt_succeeded", attempt=attempt)

    def attempt_failed(self, attempt: int, delay: float, error: BaseException) -> None:
        if self._enabled:
            self._log.info("attempt_failed_retrying", attempt=attempt, delay_seconds=delay, error=str(error))

    def retries_exhausted(self, attempts: int) -> None:
        if self._enabled:
            self._log.info("retries_exhausted", attempts=attempts)
