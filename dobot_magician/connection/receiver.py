"""
Receiver task: owns the read side of the transport.

Bytes are fed through a :class:`FrameDecoder` and every parsed message is put
on a bounded queue for the dispatcher. The task never writes and never times
out; it runs until the stream ends or fails, and then finishes with
:class:`TransportError`. The finished task itself is how the dispatcher
learns about the failure.
"""

import asyncio
import contextlib
import logging

from .. import config as cfg
from ..config import TRACE
from ..errors import TransportError
from ..protocol.wire import FrameDecoder, Message
from .transports import Transport

logger = logging.getLogger(__name__)


class Receiver:
    def __init__(self, transport: Transport, queue_size: int = cfg.RX_QUEUE_SIZE):
        self.transport = transport
        self.queue: asyncio.Queue[Message] = asyncio.Queue(maxsize=queue_size)
        self.decoder = FrameDecoder()
        self.task: asyncio.Task[None] | None = None
        self.received = 0

    def start(self) -> asyncio.Task[None]:
        if self.task is None:
            self.task = asyncio.create_task(self._run(), name="dobot-receiver")
        return self.task

    async def stop(self) -> None:
        task = self.task
        if task is None:
            return
        if not task.done():
            task.cancel()
        # Awaiting also marks a stored TransportError as retrieved
        with contextlib.suppress(asyncio.CancelledError, TransportError):
            await task

    async def _run(self) -> None:
        while True:
            try:
                data = await self.transport.read()
            except TransportError as e:
                logger.error(f"Receiver stopped: {e}")
                raise
            except OSError as e:
                logger.error(f"Receiver stopped: {e}")
                raise TransportError(f"read failed: {e}") from e

            if not data:
                logger.info("Receiver reached end of stream")
                raise TransportError("transport reached end of stream")

            for message in self.decoder.feed(data):
                self.received += 1
                logger.log(TRACE, "rx %r", message)
                await self.queue.put(message)
