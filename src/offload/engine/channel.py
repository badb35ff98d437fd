# src/offload/engine/channel.py
"""One-shot channel between an isolated worker and its caller.

A OneShotChannel wraps a unidirectional multiprocessing pipe:

    caller                                  worker process
    ------                                  --------------
    channel = OneShotChannel(ctx)
    Process(args=(op, channel.sender))  ->  sender.send_value(result)
    channel.release_sender()                  or sender.send_failure(desc)
    message = await channel.receive()

Exactly one ChannelMessage crosses. The worker side refuses a second send;
the caller side refuses a second receive and closes the pipe after the
first one. Waiting for the message registers an event-loop reader on the
pipe's file descriptor, so the caller is suspended without occupying a
thread.

Once the caller has handed the sending end to the worker process it must
call release_sender(). Otherwise the caller still holds a copy of the
write end and never observes end-of-stream when the worker dies.
"""

from __future__ import annotations

import asyncio
import pickle
from dataclasses import dataclass
from multiprocessing.connection import Connection
from multiprocessing.context import BaseContext
from typing import Any

from offload.contracts.errors import ChannelClosedError, ChannelError, FailureDescriptor


@dataclass(frozen=True, slots=True)
class ChannelMessage:
    """The single message a worker delivers.

    Exactly one of value / failure is meaningful: failure is None for a
    successful operation.
    """

    value: Any = None
    failure: FailureDescriptor | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class ChannelSender:
    """Write end of a OneShotChannel, handed to the worker process."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection
        self._sent = False

    @property
    def sent(self) -> bool:
        return self._sent

    def send_value(self, value: Any) -> None:
        """Deliver the operation's value.

        A value that cannot be pickled is replaced by a failure describing
        the pickling error; the caller still receives exactly one message.
        """
        try:
            payload = pickle.dumps(ChannelMessage(value=value))
        except Exception as exc:
            descriptor = FailureDescriptor.from_exception(exc)
            self.send_failure(
                FailureDescriptor(
                    exc_type=descriptor.exc_type,
                    message=f"Result of type {type(value).__name__} cannot be sent to the caller: {descriptor.message}",
                    traceback=descriptor.traceback,
                )
            )
            return
        self._send_bytes(payload)

    def send_failure(self, failure: FailureDescriptor) -> None:
        """Deliver a failure descriptor instead of a value."""
        self._send_bytes(pickle.dumps(ChannelMessage(failure=failure)))

    def _send_bytes(self, payload: bytes) -> None:
        if self._sent:
            raise ChannelError("One-shot channel already carried a message")
        self._sent = True
        try:
            self._connection.send_bytes(payload)
        finally:
            self._connection.close()

    def close(self) -> None:
        self._connection.close()


class OneShotChannel:
    """Caller-owned single-producer, single-consumer, one-shot transport."""

    def __init__(self, context: BaseContext) -> None:
        reader, writer = context.Pipe(duplex=False)
        self._reader: Connection = reader
        self._sender = ChannelSender(writer)
        self._consumed = False

    @property
    def sender(self) -> ChannelSender:
        return self._sender

    @property
    def closed(self) -> bool:
        return self._reader.closed

    def release_sender(self) -> None:
        """Drop the caller's copy of the write end once the worker owns it."""
        self._sender.close()

    def ready(self) -> bool:
        """Whether a message (or end-of-stream) is waiting to be read.

        Never blocks. A consumed or closed channel is not ready.
        """
        if self._reader.closed:
            return False
        try:
            return self._reader.poll(0)
        except (OSError, EOFError):
            return True

    async def receive(self) -> ChannelMessage:
        """Suspend until the worker's single message arrives, then close.

        Raises:
            ChannelError: If the channel was already consumed or closed.
            ChannelClosedError: If the worker closed its end without sending.
        """
        if self._consumed or self._reader.closed:
            raise ChannelError("One-shot channel already consumed")
        self._consumed = True
        try:
            if not self.ready():
                await wait_readable(self._reader.fileno())
            try:
                payload = self._reader.recv_bytes()
            except EOFError as exc:
                raise ChannelClosedError("Worker closed the channel without sending a message") from exc
        finally:
            self.close()
        message: ChannelMessage = pickle.loads(payload)
        return message

    def close(self) -> None:
        self._reader.close()


async def wait_readable(fd: int) -> None:
    """Suspend the current task until fd becomes readable.

    Used for the channel's pipe and for process sentinels. Registers a
    reader callback on the running event loop, so no thread is parked.
    """
    loop = asyncio.get_running_loop()
    readable: asyncio.Future[None] = loop.create_future()

    def _on_readable() -> None:
        if not readable.done():
            readable.set_result(None)

    loop.add_reader(fd, _on_readable)
    try:
        await readable
    finally:
        loop.remove_reader(fd)
