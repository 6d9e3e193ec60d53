"""
Mock transport for simulation and testing.

This module provides an in-memory device that answers frames the way the
Magician firmware does, without requiring hardware. The simulation operates
at the wire protocol level, so the receiver, decoder and dispatcher run
unchanged on top of it.
"""

import asyncio
import logging
import struct
from collections.abc import Callable
from dataclasses import dataclass, field

from ...errors import TransportError
from ...protocol.types import DeviceCountInfo, DeviceVersion, Pose
from ...protocol.wire import FrameDecoder, Message, ProtocolId, encode_frame

logger = logging.getLogger(__name__)

ALARM_BYTES = 16

Handler = Callable[[Message], "bytes | None"]


def _default_reads() -> dict[int, bytes]:
    return {
        ProtocolId.DEVICE_SN: b"MOCK0000000001",
        ProtocolId.DEVICE_NAME: b"mock-magician",
        ProtocolId.DEVICE_VERSION: DeviceVersion(3, 7, 0, 1).pack(),
        ProtocolId.DEVICE_WITH_L: b"\x00",
        ProtocolId.DEVICE_TIME: struct.pack("<I", 123456),
        ProtocolId.DEVICE_INFO: DeviceCountInfo(3600, 12, 11).pack(),
        ProtocolId.GET_POSE: Pose(200.0, 0.0, 50.0, 0.0, (0.0, 30.0, 45.0, 0.0)).pack(),
        ProtocolId.GET_POSE_L: struct.pack("<f", 0.0),
        ProtocolId.QUEUED_CMD_MOTION_FINISH: b"\x01",
    }


@dataclass
class MockDevice:
    """
    Simulated Magician firmware state.

    Writes store their payload per id and reads return it back, so any
    set/get pair round-trips. Queued writes consume one slot of ``left_space``
    and return the next queue index; ``current_index`` advances by one on every
    ``QueuedCmdCurrentIndex`` read until it catches up.
    """

    left_space: int = 32
    queue_index: int = 0
    current_index: int = 0
    alarms: bytearray = field(default_factory=lambda: bytearray(ALARM_BYTES))
    color: tuple[int, int, int] = (0, 0, 0)
    infrared: dict[int, int] = field(default_factory=dict)
    params: dict[int, bytes] = field(default_factory=_default_reads)

    # Fault injection
    silent_ids: set[int] = field(default_factory=set)
    drop_replies: int = 0
    handlers: dict[int, Handler] = field(default_factory=dict)

    # Bookkeeping
    received: list[Message] = field(default_factory=list)

    def requests_for(self, pid: int) -> list[Message]:
        return [m for m in self.received if m.id == pid]

    def raise_alarm(self, group: int, code: int) -> None:
        self.alarms[group] = code

    def handle(self, request: Message) -> Message | None:
        """Produce the reply for one request, or None to stay silent."""
        self.received.append(request)
        if request.id in self.silent_ids:
            return None
        if self.drop_replies > 0:
            self.drop_replies -= 1
            return None

        handler = self.handlers.get(request.id)
        if handler is not None:
            payload = handler(request)
            if payload is None:
                return None
            return Message(request.id, request.rw, request.is_queued, payload)

        return Message(request.id, request.rw, request.is_queued, self._payload(request))

    def _payload(self, request: Message) -> bytes:
        pid = request.id

        if pid == ProtocolId.ALARMS_STATE:
            if request.rw:
                self.alarms[:] = bytes(len(self.alarms))
                return b""
            return bytes(self.alarms)

        if pid == ProtocolId.QUEUED_CMD_LEFT_SPACE:
            return struct.pack("<I", self.left_space)
        if pid == ProtocolId.QUEUED_CMD_CURRENT_INDEX:
            if self.current_index < self.queue_index:
                self.current_index += 1
            return struct.pack("<Q", self.current_index)
        if pid == ProtocolId.QUEUED_CMD_CLEAR:
            self.current_index = self.queue_index
            return b""

        if request.is_queued:
            self.left_space = max(0, self.left_space - 1)
            self.queue_index += 1
            if request.params:
                self.params[pid] = request.params
            return struct.pack("<Q", self.queue_index)

        if request.rw:
            if request.params:
                self.params[pid] = request.params
            return b""

        if pid == ProtocolId.IR_SWITCH:
            port = request.params[0] if request.params else 0
            return bytes((self.infrared.get(port, 0),))
        if pid == ProtocolId.COLOR_SENSOR:
            return bytes(self.color)
        if pid in (ProtocolId.IO_DI, ProtocolId.IO_ADC, ProtocolId.IO_DO):
            # Reads carry the address, reply echoes it with the stored value
            address = request.params[:1] or b"\x00"
            stored = self.params.get(pid, b"")
            if stored[:1] == address:
                return stored
            width = 2 if pid == ProtocolId.IO_ADC else 1
            return address + bytes(width)
        return self.params.get(pid, b"")


class MockTransport:
    """
    In-memory transport backed by a :class:`MockDevice`.

    Replies are queued as encoded frames, so they pass through the real frame
    decoder. ``inject`` pushes arbitrary bytes onto the read side and ``eof``
    ends the stream.
    """

    def __init__(self, device: MockDevice | None = None, chunk_size: int | None = None):
        self.device = device or MockDevice()
        self.chunk_size = chunk_size
        self.fail_writes = False
        self.writes: list[bytes] = []
        self._decoder = FrameDecoder()
        self._rx_queue: asyncio.Queue[bytes] = asyncio.Queue()
        self._open = False
        self._closed = False
        self.close_count = 0

    def __repr__(self) -> str:
        return "MockTransport()"

    @property
    def is_open(self) -> bool:
        return self._open and not self._closed

    async def open(self) -> None:
        self._open = True
        logger.info("MockTransport opened - simulation mode active")

    def inject(self, data: bytes) -> None:
        """Deliver raw bytes to the reader as if the device had sent them."""
        if self.chunk_size:
            for i in range(0, len(data), self.chunk_size):
                self._rx_queue.put_nowait(data[i : i + self.chunk_size])
        elif data:
            self._rx_queue.put_nowait(data)

    def eof(self) -> None:
        self._rx_queue.put_nowait(b"")

    async def read(self) -> bytes:
        if self._closed and self._rx_queue.empty():
            return b""
        return await self._rx_queue.get()

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise TransportError("mock transport is closed")
        if self.fail_writes:
            raise TransportError("simulated write failure")
        self.writes.append(bytes(data))
        for request in self._decoder.feed(data):
            reply = self.device.handle(request)
            if reply is not None:
                self.inject(encode_frame(reply))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.close_count += 1
        self._rx_queue.put_nowait(b"")
        logger.info("MockTransport closed")
