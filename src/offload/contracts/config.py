"""Runtime configuration for a single top-level call.

RunConfig is immutable and passed explicitly to every call. There is no
process-wide default that callers can mutate; the defaults live on the
dataclass fields.

Field Origins (see offload.core.config.OffloadSettings):
    - timeout: settings.timeout_seconds (renamed)
    - retries: settings.retries (direct)
    - retry_delay: settings.retry_delay_seconds (renamed)
    - enable_profiling: settings.enable_profiling (direct)
    - start_method: settings.start_method (direct)

Note: retries is the TOTAL number of attempts, not the number of retries
after the first. So retries=3 means: try, retry, retry (3 total).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from offload.core.config import OffloadSettings

StartMethod = Literal["spawn", "fork", "forkserver"]

Duration = float | int | timedelta

DEFAULT_RETRIES = 3
DEFAULT_RETRY_DELAY = 2.0  # seconds
DEFAULT_START_METHOD: StartMethod = "spawn"


def to_seconds(value: Duration) -> float:
    """Normalise a duration given as seconds or a timedelta to float seconds."""
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"Duration must be seconds or a timedelta, got {type(value).__name__}")
    return float(value)


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Configuration for one call to run_with_timeout / run_with_retry.

    Attributes:
        timeout: Deadline per attempt in seconds, None for no deadline
        retries: Total attempt budget (>= 1)
        retry_delay: Delay before the second attempt; doubles each time
        enable_profiling: Emit start/elapsed structlog events
        start_method: multiprocessing start method for the worker process
    """

    timeout: float | None = None
    retries: int = DEFAULT_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    enable_profiling: bool = False
    start_method: StartMethod = DEFAULT_START_METHOD

    def __post_init__(self) -> None:
        """Validate and normalise configuration values."""
        if self.timeout is not None:
            timeout = to_seconds(self.timeout)
            if not math.isfinite(timeout) or timeout <= 0:
                raise ValueError(f"timeout must be > 0 and finite, got {timeout}")
            object.__setattr__(self, "timeout", timeout)
        if isinstance(self.retries, bool) or not isinstance(self.retries, int):
            raise ValueError(f"retries must be an integer, got {type(self.retries).__name__}")
        if self.retries < 1:
            raise ValueError("retries must be >= 1")
        retry_delay = to_seconds(self.retry_delay)
        if not math.isfinite(retry_delay) or retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0 and finite, got {retry_delay}")
        object.__setattr__(self, "retry_delay", retry_delay)
        if self.start_method not in ("spawn", "fork", "forkserver"):
            raise ValueError(f"Unknown start_method: {self.start_method!r}")

    @classmethod
    def default(cls) -> RunConfig:
        """Factory for the default configuration (3 attempts, 2s initial delay)."""
        return cls()

    @classmethod
    def single_shot(cls, timeout: Duration | None = None) -> RunConfig:
        """Factory for a single attempt, optionally bounded by a deadline."""
        return cls(timeout=timeout, retries=1)

    @classmethod
    def from_settings(cls, settings: OffloadSettings) -> RunConfig:
        """Factory from OffloadSettings config model.

        Args:
            settings: Validated Pydantic settings model

        Returns:
            RunConfig with mapped values
        """
        return cls(
            timeout=settings.timeout_seconds,
            retries=settings.retries if settings.retries is not None else DEFAULT_RETRIES,
            retry_delay=settings.retry_delay_seconds,
            enable_profiling=settings.enable_profiling,
            start_method=settings.start_method,
        )
