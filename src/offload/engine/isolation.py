# src/offload/engine/isolation.py
"""Isolation boundary: one fresh worker process per attempt.

IsolatedWorker owns exactly one multiprocessing.Process and the
OneShotChannel its result travels back on. The process shares no mutable
memory with the caller; the operation reaches it by pickling (spawn and
forkserver) or by a copy-on-write fork, and the result comes back as a
single channel message.

Lifecycle:
    async with IsolatedWorker(operation) as worker:   # spawn
        outcome = await worker.result()               # suspend on channel
    # __aexit__: kill if still alive, await exit, join, release

The worker process is torn down on every exit path: normal return,
timeout, exceptions raised by the caller's code and task cancellation.

Usage from the other engine modules goes through run_attempt(), which
composes the boundary with the timeout race and reports every failure as
an Outcome value instead of raising.
"""

from __future__ import annotations

import asyncio
import inspect
import multiprocessing
from collections.abc import Awaitable, Callable
from multiprocessing.process import BaseProcess
from types import TracebackType
from typing import Any, TypeVar

import structlog

from offload.contracts.config import DEFAULT_START_METHOD, StartMethod
from offload.contracts.errors import (
    ChannelClosedError,
    ChannelError,
    FailureDescriptor,
    OperationFailure,
    SpawnFailure,
)
from offload.contracts.results import Failure, Outcome, Success
from offload.engine.channel import ChannelSender, OneShotChannel, wait_readable
from offload.engine.timeout import race_deadline

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# An operation returns its value directly or an awaitable resolving to it
Operation = Callable[[], T | Awaitable[T]]


async def _resolve(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _worker_main(operation: Operation[Any], sender: ChannelSender) -> None:
    """Entry point of the worker process.

    Runs the operation (driving it with a private event loop when it is
    asynchronous) and writes exactly one message to the channel.
    """
    try:
        result = operation()
        if inspect.isawaitable(result):
            result = asyncio.run(_resolve(result))
    except Exception as exc:
        sender.send_failure(FailureDescriptor.from_exception(exc))
    else:
        sender.send_value(result)


class IsolatedWorker:
    """Handle for one isolated worker process.

    Example:
        async with IsolatedWorker(functools.partial(encode, path)) as worker:
            outcome = await worker.result()
    """

    def __init__(self, operation: Operation[Any], *, start_method: StartMethod = DEFAULT_START_METHOD) -> None:
        self._operation = operation
        self._start_method = start_method
        self._process: BaseProcess | None = None
        self._channel: OneShotChannel | None = None
        self._pid: int | None = None
        self._released = False

    @property
    def pid(self) -> int | None:
        return self._pid

    @property
    def started(self) -> bool:
        return self._process is not None

    @property
    def released(self) -> bool:
        return self._released

    def start(self) -> None:
        """Spawn the worker process.

        Raises:
            SpawnFailure: If the execution context cannot be created, e.g.
                the operation cannot be pickled for the start method or the
                OS refuses another process.
            RuntimeError: If the worker was already started.
        """
        if self._process is not None:
            raise RuntimeError("IsolatedWorker can only be started once")

        try:
            context = multiprocessing.get_context(self._start_method)
            channel = OneShotChannel(context)
        except (ValueError, OSError) as exc:
            raise SpawnFailure("Could not create isolated execution context", exc) from exc

        process = context.Process(
            target=_worker_main,
            args=(self._operation, channel.sender),
            name=f"offload-worker-{self._start_method}",
            daemon=True,
        )
        try:
            process.start()
        except Exception as exc:
            channel.close()
            raise SpawnFailure("Could not start isolated worker process", exc) from exc
        finally:
            # The worker owns the write end now, or never will
            channel.release_sender()

        self._process = process
        self._channel = channel
        self._pid = process.pid
        logger.debug("worker_spawned", pid=process.pid, start_method=self._start_method)

    def has_result(self) -> bool:
        """Whether the worker's message is already waiting in the channel.

        Never blocks. End-of-stream from a dead worker also counts.
        """
        return self._channel is not None and self._channel.ready()

    async def result(self) -> Outcome[Any]:
        """Suspend until the worker delivers, then return its Outcome.

        Raises:
            ChannelError: If called more than once.
            RuntimeError: If the worker was never started.
        """
        if self._channel is None:
            raise RuntimeError("IsolatedWorker has not been started")
        try:
            message = await self._channel.receive()
        except ChannelClosedError as exc:
            exitcode = await self._exit_code()
            return Failure(
                OperationFailure(
                    f"Isolated worker exited with code {exitcode} before delivering a result",
                    exc,
                )
            )
        except ChannelError:
            raise
        except Exception as exc:
            # Message arrived but could not be unpickled on this side
            return Failure(OperationFailure("Result could not be decoded by the caller", exc))

        if message.failure is not None:
            return Failure(OperationFailure.from_descriptor(message.failure))
        return Success(message.value)

    def kill(self) -> None:
        """Request forced termination without waiting for it."""
        process = self._process
        if process is not None and not self._released and process.exitcode is None:
            process.kill()

    async def terminate(self) -> None:
        """Kill the worker if it is still running, reap it and release it.

        Idempotent; safe to call on a worker that never started.
        """
        process = self._process
        if process is None or self._released:
            return
        if self._channel is not None:
            self._channel.close()
        self.kill()
        try:
            await self._wait_exited()
        finally:
            # Reap even when the wait is cancelled
            process.join()
            self._released = True
            logger.debug("worker_released", pid=process.pid, exitcode=process.exitcode)
            process.close()

    async def _wait_exited(self) -> None:
        process = self._process
        assert process is not None
        if process.exitcode is None:
            await wait_readable(process.sentinel)

    async def _exit_code(self) -> int | None:
        await self._wait_exited()
        assert self._process is not None
        return self._process.exitcode

    async def __aenter__(self) -> IsolatedWorker:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.terminate()


async def run_attempt(
    operation: Operation[T],
    *,
    timeout: float | None = None,
    start_method: StartMethod = DEFAULT_START_METHOD,
) -> Outcome[T]:
    """Run one attempt of operation in a fresh worker process.

    Never raises a TaskFailure: spawn failures, operation failures and
    timeouts are all returned as Failure values.

    Args:
        operation: Picklable zero-argument callable (sync or async)
        timeout: Deadline in seconds, None for no deadline
        start_method: multiprocessing start method

    Returns:
        Success with the operation's value, or Failure describing why not
    """
    try:
        async with IsolatedWorker(operation, start_method=start_method) as worker:
            return await race_deadline(worker, timeout)
    except SpawnFailure as exc:
        return Failure(exc)
