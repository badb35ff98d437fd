# src/offload/engine/clock.py
"""Clock abstraction for testable profiling.

The profiler measures elapsed time with a monotonic clock and stamps the
start of a task with wall-clock time. Both come from a Clock so tests can
assert exact elapsed durations without sleeping.

Production code uses SystemClock (the default).
Tests inject MockClock to control time advancement.

Deadlines and backoff delays do NOT go through this clock: they are
enforced by the asyncio event loop.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Abstract clock for profiling measurements.

    Implementations:
    - SystemClock: Uses time.monotonic() and datetime.now(UTC) (production)
    - MockClock: Returns controllable times (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds (never goes backwards)."""
        ...

    def now(self) -> datetime:
        """Return the current timezone-aware wall-clock time."""
        ...


class SystemClock:
    """Production clock backed by the system clocks."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(UTC)


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=0.0)
        profiler = Profiler(enabled=True, clock=clock)

        with profiler.track("task"):
            clock.advance(0.5)
        # task_completed is logged with elapsed_seconds=0.5
    """

    def __init__(self, start: float = 0.0, wall_start: datetime | None = None) -> None:
        """Initialize mock clock.

        Args:
            start: Initial monotonic time value (default 0.0).
            wall_start: Wall-clock time matching start (default 2024-01-01 UTC).
        """
        self._start = start
        self._current = start
        self._wall_start = wall_start if wall_start is not None else datetime(2024, 1, 1, tzinfo=UTC)

    def monotonic(self) -> float:
        return self._current

    def now(self) -> datetime:
        return self._wall_start + timedelta(seconds=self._current - self._start)

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds


DEFAULT_CLOCK: Clock = SystemClock()
