"""Outcome of a single execution attempt.

An Outcome is produced exactly once per attempt and never mutated:

    outcome = await run_attempt(operation, timeout=3.0)
    if outcome.is_success:
        print(outcome.value)
    else:
        log(outcome.error)

The attempt loop threads these values instead of exceptions. Public entry
points call unwrap() at the very end, which returns the value or raises
the carried TaskFailure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, NoReturn, TypeVar

from offload.contracts.errors import TaskFailure

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """The operation produced a value."""

    value: T

    @property
    def is_success(self) -> Literal[True]:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Failure:
    """The attempt failed; error says how."""

    error: TaskFailure

    @property
    def is_success(self) -> Literal[False]:
        return False

    def unwrap(self) -> NoReturn:
        raise self.error


Outcome = Success[T] | Failure


def is_failure(outcome: Outcome[T]) -> bool:
    """Predicate used by the retry orchestrator to decide whether to retry."""
    return isinstance(outcome, Failure)
