# src/offload/engine/timeout.py
"""Timeout race between worker completion and a deadline.

race_deadline() resolves to whichever happens first:

- the worker delivers its message   -> that Outcome
- the deadline elapses              -> Failure(TimeoutFailure), worker killed

Tie rule: the worker wins ties. When the deadline fires, the channel is
checked before declaring a timeout; a message that is already waiting is
delivered even though the timer expired. The check is made at the channel,
not at the timer.

Killing is a non-blocking request. Reaping the process is left to the
IsolatedWorker's context manager, so the caller sees the TimeoutFailure as
soon as the boundary has confirmed the worker is gone.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from offload.contracts.errors import TimeoutFailure
from offload.contracts.results import Failure, Outcome

if TYPE_CHECKING:
    from offload.engine.isolation import IsolatedWorker

logger = structlog.get_logger(__name__)


async def race_deadline(worker: IsolatedWorker, timeout: float | None) -> Outcome[Any]:
    """Await the worker's Outcome, bounded by timeout seconds.

    Args:
        worker: Started IsolatedWorker
        timeout: Deadline in seconds; None makes this a passthrough

    Returns:
        The worker's Outcome, or Failure(TimeoutFailure) if the deadline won
    """
    if timeout is None:
        return await worker.result()

    receiving = asyncio.ensure_future(worker.result())
    try:
        done, _ = await asyncio.wait({receiving}, timeout=timeout)
        if receiving in done:
            return receiving.result()

        if worker.has_result():
            logger.debug("deadline_tie_worker_wins", pid=worker.pid, timeout=timeout)
            return await receiving

        receiving.cancel()
        try:
            await receiving
        except asyncio.CancelledError:
            # Only swallow the cancellation we requested
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        worker.kill()
        logger.debug("deadline_elapsed", pid=worker.pid, timeout=timeout)
        return Failure(TimeoutFailure(timeout))
    finally:
        if not receiving.done():
            receiving.cancel()
