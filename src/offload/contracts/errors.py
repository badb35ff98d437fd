"""Failure taxonomy for background task execution.

Every failure path produces a typed TaskFailure carrying a human-readable
message, the original cause where one is available, and a trace:

- SpawnFailure: the isolated worker process could not be created
- OperationFailure: the supplied operation raised inside the worker
- TimeoutFailure: the deadline elapsed before the worker delivered
- ExhaustedRetriesFailure: the attempt budget was used up

The worker and the caller share no memory, so exceptions raised inside
the worker never cross the process boundary verbatim. They are flattened
into a FailureDescriptor in the worker and wrapped in an OperationFailure
on the receiving side.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FailureDescriptor:
    """Picklable description of an exception raised in a worker.

    Attributes:
        exc_type: Qualified exception class name (e.g. "builtins.ValueError")
        message: str() of the exception
        traceback: Formatted traceback captured in the worker, if any
    """

    exc_type: str
    message: str
    traceback: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> FailureDescriptor:
        """Flatten an exception into a descriptor that can cross the boundary."""
        exc_class = type(exc)
        return cls(
            exc_type=f"{exc_class.__module__}.{exc_class.__qualname__}",
            message=str(exc),
            traceback="".join(traceback.format_exception(exc)),
        )

    @property
    def type_name(self) -> str:
        """Unqualified exception class name."""
        return self.exc_type.rsplit(".", 1)[-1]

    def __str__(self) -> str:
        if not self.message:
            return self.type_name
        return f"{self.type_name}: {self.message}"


def _capture_stack() -> str:
    # Drop the frames for _capture_stack and TaskFailure.__init__
    return "".join(traceback.format_stack()[:-2])


class TaskFailure(Exception):
    """Base class for every failure surfaced by offload.

    Attributes:
        message: Human-readable description
        cause: Original exception or worker-side FailureDescriptor
        trace: Remote traceback for worker failures, otherwise the stack
            at the point the failure was created
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | FailureDescriptor | None = None,
        trace: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.trace = trace if trace is not None else _capture_stack()

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} Cause: {self.cause}"


class SpawnFailure(TaskFailure):
    """Raised when the isolated execution context cannot be created."""


class OperationFailure(TaskFailure):
    """Raised when the supplied operation fails inside the worker."""

    @classmethod
    def from_descriptor(cls, descriptor: FailureDescriptor) -> OperationFailure:
        """Reconstruct a caller-side failure from a worker-side descriptor."""
        return cls("Error during operation", descriptor, descriptor.traceback)


# Alias
ExecutionFailure = OperationFailure


class TimeoutFailure(TaskFailure, TimeoutError):
    """Raised when the deadline elapses before the worker delivers a result.

    Also a builtin TimeoutError so generic timeout handling catches it.
    """

    def __init__(self, timeout: float) -> None:
        super().__init__(f"The operation timed out after {timeout:g}s")
        self.timeout = timeout


class ExhaustedRetriesFailure(TaskFailure):
    """Raised when every attempt in the retry budget failed.

    Attributes:
        attempts: Number of attempts made
        last_failure: Failure of the final attempt (also exposed as cause)
    """

    def __init__(self, attempts: int, last_failure: TaskFailure) -> None:
        super().__init__(
            f"Operation failed after {attempts} attempts",
            last_failure,
            last_failure.trace,
        )
        self.attempts = attempts
        self.last_failure = last_failure


class ChannelError(Exception):
    """Raised when the one-shot channel protocol is violated.

    Sending or receiving twice is a programming error rather than a task
    failure, so this sits outside the TaskFailure hierarchy.
    """


class ChannelClosedError(ChannelError):
    """Raised when the sending side closed without writing a message."""
