# tests/unit/engine/test_timeout.py
"""Tests for the deadline race.

The fake-worker tests pin down the race rules without processes; the
run_attempt tests confirm the same rules against real workers.
"""

import asyncio
import time
from functools import partial
from typing import Any

import pytest

from offload.contracts import Success, TimeoutFailure
from offload.contracts.results import Failure, Outcome
from offload.engine.isolation import IsolatedWorker, Operation, run_attempt
from offload.engine.timeout import race_deadline
from tests.helpers import operations


class FakeWorker:
    """Worker double whose result arrives after a fixed delay."""

    pid = 4242

    def __init__(self, delay: float, outcome: Outcome[Any], *, ready_at_deadline: bool = False) -> None:
        self._delay = delay
        self._outcome = outcome
        self._ready_at_deadline = ready_at_deadline
        self.killed = False
        self.receive_cancelled = False

    async def result(self) -> Outcome[Any]:
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            self.receive_cancelled = True
            raise
        return self._outcome

    def has_result(self) -> bool:
        return self._ready_at_deadline

    def kill(self) -> None:
        self.killed = True


class TestRaceDeadline:
    @pytest.mark.asyncio
    async def test_no_timeout_is_passthrough(self) -> None:
        worker = FakeWorker(0.01, Success(42))

        assert await race_deadline(worker, None) == Success(42)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_worker_first(self) -> None:
        worker = FakeWorker(0.01, Success(42))

        assert await race_deadline(worker, 5.0) == Success(42)  # type: ignore[arg-type]
        assert not worker.killed

    @pytest.mark.asyncio
    async def test_failure_outcome_passes_through(self) -> None:
        failure = Failure(RuntimeError("Boom"))
        worker = FakeWorker(0.01, failure)

        assert await race_deadline(worker, 5.0) is failure  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_deadline_first_kills_worker(self) -> None:
        worker = FakeWorker(10.0, Success(42))

        outcome = await race_deadline(worker, 0.05)  # type: ignore[arg-type]

        assert isinstance(outcome, Failure)
        assert isinstance(outcome.error, TimeoutFailure)
        assert outcome.error.timeout == 0.05
        assert worker.killed
        assert worker.receive_cancelled

    @pytest.mark.asyncio
    async def test_worker_wins_tie(self) -> None:
        # Message already waiting when the deadline fires
        worker = FakeWorker(0.2, Success(42), ready_at_deadline=True)

        outcome = await race_deadline(worker, 0.05)  # type: ignore[arg-type]

        assert outcome == Success(42)
        assert not worker.killed

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self) -> None:
        worker = FakeWorker(10.0, Success(42))
        racing = asyncio.ensure_future(race_deadline(worker, 5.0))  # type: ignore[arg-type]
        await asyncio.sleep(0.05)

        racing.cancel()

        with pytest.raises(asyncio.CancelledError):
            await racing
        await asyncio.sleep(0)
        assert worker.receive_cancelled


class LateReadingWorker(IsolatedWorker):
    """Real worker whose caller side reads the channel only after a delay."""

    def __init__(self, operation: Operation[Any], read_delay: float) -> None:
        super().__init__(operation)
        self._read_delay = read_delay

    async def result(self) -> Outcome[Any]:
        await asyncio.sleep(self._read_delay)
        return await super().result()


class TestRealWorkerDeadline:
    @pytest.mark.asyncio
    async def test_delivered_message_beats_expired_deadline(self) -> None:
        async with LateReadingWorker(operations.answer, read_delay=0.5) as worker:
            waited_until = time.monotonic() + 30
            while not worker.has_result() and time.monotonic() < waited_until:
                await asyncio.sleep(0.01)

            outcome = await race_deadline(worker, 0.05)

        assert outcome == Success(42)

    @pytest.mark.asyncio
    async def test_pending_worker_loses_expired_deadline(self) -> None:
        async with LateReadingWorker(partial(operations.sleep_then_return, 30, None), read_delay=0.5) as worker:
            outcome = await race_deadline(worker, 0.05)

        assert isinstance(outcome, Failure)
        assert isinstance(outcome.error, TimeoutFailure)

    @pytest.mark.asyncio
    async def test_completes_within_deadline(self) -> None:
        outcome = await run_attempt(partial(operations.sleep_then_return, 0.1, "done"), timeout=10.0)

        assert outcome == Success("done")

    @pytest.mark.asyncio
    async def test_deadline_exceeded(self) -> None:
        started = time.monotonic()

        outcome = await run_attempt(partial(operations.sleep_then_return, 30, "late"), timeout=0.5)

        elapsed = time.monotonic() - started
        assert isinstance(outcome, Failure)
        assert isinstance(outcome.error, TimeoutFailure)
        assert 0.5 <= elapsed < 10

    @pytest.mark.asyncio
    async def test_async_operation_deadline_exceeded(self) -> None:
        outcome = await run_attempt(partial(operations.async_sleep_then_return, 30, "late"), timeout=0.5)

        assert isinstance(outcome, Failure)
        assert isinstance(outcome.error, TimeoutFailure)

    @pytest.mark.asyncio
    async def test_event_loop_stays_responsive(self) -> None:
        ticks = 0

        async def ticker() -> None:
            nonlocal ticks
            while True:
                ticks += 1
                await asyncio.sleep(0.01)

        ticking = asyncio.create_task(ticker())
        try:
            await run_attempt(partial(operations.sleep_then_return, 0.5, None), timeout=10.0)
        finally:
            ticking.cancel()

        assert ticks >= 10
