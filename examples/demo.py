#!/usr/bin/env python3
"""
Walk through the offload entry points.

Runs four tasks in isolated worker processes:
- basic: a slow task awaited without blocking the event loop
- timeout: a 5 second task bounded by a 3 second deadline
- retry: a task that fails on even seconds, retried with backoff
- base64: encode a file's bytes in the background

Usage:
    python examples/demo.py                   # encodes this script
    python examples/demo.py path/to/video.mp4
"""

import asyncio
import base64
import sys
import time
from datetime import UTC, datetime, timedelta
from functools import partial
from pathlib import Path

from offload import ExhaustedRetriesFailure, TaskFailure, TimeoutFailure, run_expensive_operation, run_with_retry, run_with_timeout
from offload.core.logging import configure_logging


async def slow_task(seconds: float, message: str) -> str:
    await asyncio.sleep(seconds)
    return message


def flaky_task() -> str:
    if datetime.now(UTC).second % 2 == 0:
        raise RuntimeError("Temporary failure")
    return "Task completed after retries"


def encode_file(path: str) -> str:
    return base64.b64encode(Path(path).read_bytes()).decode("ascii")


async def run_basic_task() -> None:
    try:
        result = await run_expensive_operation(partial(slow_task, 2, "Task completed"))
    except TaskFailure as e:
        print(f"Task error: {e}")  # noqa: T201
        return
    print(result)  # noqa: T201


async def run_task_with_timeout() -> None:
    try:
        result = await run_with_timeout(
            partial(slow_task, 5, "Task completed within time"),
            timeout=timedelta(seconds=3),
        )
    except TimeoutFailure as e:
        print(f"Task failed due to timeout: {e}")  # noqa: T201
        return
    print(result)  # noqa: T201


async def run_task_with_retry() -> None:
    try:
        result = await run_with_retry(flaky_task, retries=3, retry_delay=timedelta(seconds=1))
    except ExhaustedRetriesFailure as e:
        print(f"Task failed after multiple attempts: {e}")  # noqa: T201
        return
    print(result)  # noqa: T201


async def encode_to_base64(path: Path) -> None:
    try:
        encoded = await run_expensive_operation(partial(encode_file, str(path)))
    except TaskFailure as e:
        print(f"Error converting to Base64: {e}")  # noqa: T201
        return
    print(f"Base64 of {path.name}: {encoded[:50]}...")  # noqa: T201


async def main(path: Path) -> None:
    started = time.monotonic()
    await run_basic_task()
    await run_task_with_timeout()
    await run_task_with_retry()
    await encode_to_base64(path)
    print(f"Done in {time.monotonic() - started:.1f}s")  # noqa: T201


if __name__ == "__main__":
    configure_logging(level="WARNING")
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__)
    asyncio.run(main(target))
