"""
Dispatcher: the single writer of a Dobot connection.

One asyncio task serves submissions in FIFO order with at most one frame in
flight. For each submission it checks the alarm gate, makes sure the device
queue has room for queued commands, writes the frame and waits for the reply
with the same id, retrying on timeout. Between submissions it polls the alarm
register. A submission whose caller stopped waiting is not written
again; an exchange already on the wire runs until its reply window closes.

Every piece of connection state (``left_space``, ``alarms``, ``fatal``) is
mutated only from the dispatcher task.
"""

import asyncio
import contextlib
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum

from .. import config as cfg
from ..config import TRACE
from ..errors import (
    AlarmRaised,
    ClosedError,
    CommandTimeout,
    NoQueueSpace,
    TransportError,
)
from ..protocol.wire import Message, ProtocolId, encode_frame, id_name
from .receiver import Receiver
from .transports import Transport

logger = logging.getLogger(__name__)


class RequestState(Enum):
    """Lifecycle of a single submission."""

    WAITING = "waiting"  # queued, not yet picked up
    SENDING = "sending"
    AWAIT_REPLY = "await_reply"
    RETRY = "retry"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True, eq=False)
class PendingRequest:
    seq: int
    message: Message
    frame: bytes
    future: asyncio.Future[Message]
    attempts: int = 0
    state: RequestState = RequestState.WAITING
    history: list[RequestState] = field(default_factory=list)

    def transition(self, state: RequestState) -> None:
        self.state = state
        self.history.append(state)

    def resolve(self, reply: Message) -> None:
        self.transition(RequestState.DONE)
        if not self.future.done():
            self.future.set_result(reply)

    def fail(self, exc: BaseException) -> None:
        self.transition(RequestState.FAILED)
        if not self.future.done():
            self.future.set_exception(exc)


class _CallerGone(Exception):
    """The submitter stopped waiting before the next write."""


_ALARM_READ = Message(ProtocolId.ALARMS_STATE)
_LEFT_SPACE_READ = Message(ProtocolId.QUEUED_CMD_LEFT_SPACE)


class Dispatcher:
    """
    Serializes requests over a transport.

    Args:
        transport: Open transport; the dispatcher closes it on shutdown
        receiver: Receiver reading the same transport
        reply_timeout: Seconds to wait for a reply per attempt
        max_attempts: Writes per submission before ``CommandTimeout``
        alarm_poll_s: Alarm polling period, ``0`` disables polling
        submit_queue_size: Bound of the submission queue
    """

    def __init__(
        self,
        transport: Transport,
        receiver: Receiver,
        *,
        reply_timeout: float | None = None,
        max_attempts: int | None = None,
        alarm_poll_s: float | None = None,
        submit_queue_size: int | None = None,
    ):
        self.transport = transport
        self.receiver = receiver
        self.reply_timeout = cfg.REPLY_TIMEOUT_S if reply_timeout is None else reply_timeout
        self.max_attempts = max(1, cfg.MAX_ATTEMPTS if max_attempts is None else max_attempts)
        self.alarm_poll_s = cfg.ALARM_POLL_S if alarm_poll_s is None else alarm_poll_s

        self._submit_queue: asyncio.Queue[PendingRequest] = asyncio.Queue(
            maxsize=cfg.SUBMIT_QUEUE_SIZE if submit_queue_size is None else submit_queue_size
        )
        self._seq = itertools.count(1)
        self._task: asyncio.Task[None] | None = None

        # Persistent getters so that no item is lost when a wait times out
        self._submit_get: asyncio.Future[PendingRequest] | None = None
        self._rx_get: asyncio.Future[Message] | None = None
        self._current: PendingRequest | None = None

        self._left_space = 0
        self._alarms = b""
        self._fatal: TransportError | None = None
        self._closed = False
        self._close_logged = False

        # Diagnostics
        self.dropped_replies = 0
        self.timeouts = 0

    # --------------- State ---------------

    @property
    def left_space(self) -> int:
        """Free slots in the device command queue, as last known."""
        return self._left_space

    @property
    def alarms(self) -> bytes:
        """Alarm bitmap from the last AlarmsState reply."""
        return self._alarms

    @property
    def current(self) -> PendingRequest | None:
        """Request being served, if any."""
        return self._current

    @property
    def fatal(self) -> TransportError | None:
        return self._fatal

    @property
    def closed(self) -> bool:
        return self._closed

    # --------------- Lifecycle ---------------

    def start(self) -> asyncio.Task[None]:
        """Start the receiver and dispatcher tasks on the running loop."""
        if self._closed:
            raise self._closed_error()
        if self._task is None:
            self.receiver.start()
            self._task = asyncio.create_task(self._run(), name="dobot-dispatcher")
        return self._task

    async def close(self) -> None:
        """Stop both tasks and close the transport.

        Pending and later submissions fail with ``ClosedError``. Safe to call
        multiple times.
        """
        self._closed = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._fail_pending(ClosedError("connection closed"))
        await self.receiver.stop()
        await self.transport.close()
        if not self._close_logged:
            self._close_logged = True
            logger.info("Dispatcher closed")

    async def __aenter__(self) -> "Dispatcher":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------- Public API ---------------

    async def submit(self, message: Message) -> Message:
        """
        Send ``message`` and return the device reply with the same id.

        Raises:
            ClosedError: The dispatcher was closed or hit a fatal error
            OversizeError: The payload does not fit in a frame
            AlarmRaised: An alarm is active (AlarmsState itself is exempt)
            NoQueueSpace: Queued command while the device queue is full
            CommandTimeout: No reply after ``max_attempts`` writes
            TransportError: The transport failed during this request
        """
        if self._closed:
            raise self._closed_error()
        frame = encode_frame(message)
        loop = asyncio.get_running_loop()
        request = PendingRequest(next(self._seq), message, frame, loop.create_future())
        await self._submit_queue.put(request)
        if self._closed:
            # Raced with shutdown, nothing will drain the queue any more
            request.fail(self._closed_error())
        return await request.future

    # --------------- Dispatcher task ---------------

    def _rx_future(self) -> asyncio.Future[Message]:
        if self._rx_get is None:
            self._rx_get = asyncio.ensure_future(self.receiver.queue.get())
        return self._rx_get

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        receiver_task = self.receiver.start()
        poll = self.alarm_poll_s
        next_poll = loop.time() + poll if poll > 0 else None
        try:
            while True:
                if self._submit_get is None:
                    self._submit_get = asyncio.ensure_future(self._submit_queue.get())
                rx_get = self._rx_future()
                timeout = None if next_poll is None else max(0.0, next_poll - loop.time())
                done, _ = await asyncio.wait(
                    {self._submit_get, rx_get, receiver_task},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if rx_get in done:
                    self._rx_get = None
                    self._discard(rx_get.result(), "no request in flight")
                if receiver_task in done:
                    raise self._receiver_error()

                if next_poll is not None and loop.time() >= next_poll:
                    await self._poll_alarms()
                    next_poll = loop.time() + poll

                if self._submit_get.done():
                    request = self._submit_get.result()
                    self._submit_get = None
                    await self._serve(request)
        except TransportError as e:
            self._fatal = e
            self._closed = True
            logger.error(f"Connection failed: {e}")
            self._fail_pending(e)
            await self.receiver.stop()
            await self.transport.close()

    async def _serve(self, request: PendingRequest) -> None:
        if request.future.done():
            logger.debug("Skipping request #%d (%s), caller went away", request.seq, id_name(request.message.id))
            return
        self._current = request
        try:
            reply = await self._process(request)
        except _CallerGone:
            logger.debug(
                "Abandoning request #%d (%s) after %d write(s), caller went away",
                request.seq,
                id_name(request.message.id),
                request.attempts,
            )
            request.transition(RequestState.FAILED)
        except (AlarmRaised, NoQueueSpace, CommandTimeout) as e:
            logger.debug("Request #%d failed: %s", request.seq, e)
            request.fail(e)
        except TransportError as e:
            request.fail(e)
            raise
        except asyncio.CancelledError:
            request.fail(ClosedError("connection closed while the request was in flight"))
            raise
        else:
            if request.future.done():
                logger.debug("Dropping reply to request #%d, caller went away", request.seq)
            request.resolve(reply)
        finally:
            self._current = None

    async def _process(self, request: PendingRequest) -> Message:
        message = request.message
        if message.id != ProtocolId.ALARMS_STATE:
            self._check_alarms()

        if message.is_queued and self._left_space == 0:
            await self._exchange(_LEFT_SPACE_READ)
            if self._left_space == 0:
                raise NoQueueSpace(f"device queue full, cannot submit {id_name(message.id)}")

        reply = await self._exchange(message, request.frame, request)
        if message.is_queued:
            self._left_space = max(0, self._left_space - 1)
        return reply

    async def _poll_alarms(self) -> None:
        try:
            await self._exchange(_ALARM_READ)
        except CommandTimeout:
            logger.warning("Alarm poll timed out, retrying on next tick")

    def _check_alarms(self) -> None:
        for group, code in enumerate(self._alarms):
            if code:
                raise AlarmRaised(group, code)

    # --------------- Send-and-wait ---------------

    async def _exchange(
        self,
        message: Message,
        frame: bytes | None = None,
        request: PendingRequest | None = None,
    ) -> Message:
        loop = asyncio.get_running_loop()
        if frame is None:
            frame = encode_frame(message)
        for attempt in range(1, self.max_attempts + 1):
            if request is not None:
                if request.future.done():
                    raise _CallerGone
                request.attempts = attempt
                request.transition(RequestState.SENDING)
            await self._write(frame)
            if request is not None:
                request.transition(RequestState.AWAIT_REPLY)

            reply = await self._await_reply(message, loop.time() + self.reply_timeout)
            if reply is not None:
                self._observe(message, reply)
                return reply

            self.timeouts += 1
            if attempt < self.max_attempts:
                logger.debug(
                    "No reply to %s (attempt %d/%d), resending",
                    id_name(message.id),
                    attempt,
                    self.max_attempts,
                )
                if request is not None:
                    request.transition(RequestState.RETRY)
        raise CommandTimeout(message.id, self.max_attempts)

    async def _await_reply(self, message: Message, deadline: float) -> Message | None:
        loop = asyncio.get_running_loop()
        receiver_task = self.receiver.start()
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            rx_get = self._rx_future()
            done, _ = await asyncio.wait(
                {rx_get, receiver_task},
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if rx_get in done:
                self._rx_get = None
                reply = rx_get.result()
                if reply.id == message.id:
                    return reply
                self._discard(reply, f"waiting for {id_name(message.id)}")
                continue
            if receiver_task in done:
                raise self._receiver_error()

    async def _write(self, frame: bytes) -> None:
        logger.log(TRACE, "tx %s", frame.hex(" "))
        try:
            await self.transport.write(frame)
        except TransportError:
            raise
        except OSError as e:
            raise TransportError(f"write failed: {e}") from e

    def _observe(self, request: Message, reply: Message) -> None:
        if reply.id == ProtocolId.QUEUED_CMD_LEFT_SPACE:
            if reply.ack_len >= 4:
                self._left_space = reply.uint32()
        elif reply.id == ProtocolId.ALARMS_STATE:
            if request.rw:
                self._alarms = bytes(len(self._alarms))
                logger.info("Device alarms cleared")
            else:
                if any(reply.params) and not any(self._alarms):
                    logger.warning("Device alarm raised: %s", reply.params.hex(" "))
                self._alarms = reply.params

    def _discard(self, message: Message, reason: str) -> None:
        self.dropped_replies += 1
        logger.debug("Dropping %r (%s)", message, reason)

    # --------------- Failure handling ---------------

    def _receiver_error(self) -> TransportError:
        task = self.receiver.task
        if task is None or task.cancelled():
            return TransportError("receiver stopped")
        exc = task.exception()
        if isinstance(exc, TransportError):
            return exc
        err = TransportError(f"receiver stopped: {exc}")
        err.__cause__ = exc
        return err

    def _closed_error(self) -> ClosedError:
        err = ClosedError("connection is closed")
        err.__cause__ = self._fatal
        return err

    def _fail_pending(self, exc: BaseException) -> None:
        if self._current is not None:
            self._current.fail(exc)
        if self._submit_get is not None:
            if self._submit_get.done() and not self._submit_get.cancelled():
                self._submit_get.result().fail(exc)
            else:
                self._submit_get.cancel()
            self._submit_get = None
        if self._rx_get is not None:
            self._rx_get.cancel()
            self._rx_get = None
        while True:
            try:
                request = self._submit_queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            request.fail(exc)
