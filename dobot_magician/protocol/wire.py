"""
Wire protocol for Dobot Magician communication.

This module contains the byte-level protocol definitions:
- Protocol command ids (closed, sparse table)
- The Message value carried by every request and reply
- Frame encoding with checksum
- Incremental frame decoding with resynchronisation

Frame layout::

    +------+------+-----+----+------+--------------+-------+
    | 0xAA | 0xAA | LEN | ID | CTRL | PARAMS[LEN-2] | CKSUM |
    +------+------+-----+----+------+--------------+-------+

- LEN = len(PARAMS) + 2 and must stay below 0xAA
- CTRL bit 0 = rw (write), bit 1 = is_queued
- (ID + CTRL + sum(PARAMS) + CKSUM) mod 256 == 0

All multi-byte scalars are little-endian; float32 fields travel as their
IEEE-754 bit pattern.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum

from ..errors import OversizeError

logger = logging.getLogger(__name__)


SYNC = 0xAA
HEADER = bytes((SYNC, SYNC))
MAX_PARAMS_LEN = SYNC - 3  # LEN = params + 2 must stay below SYNC

CTRL_RW = 0x01
CTRL_QUEUED = 0x02

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_F32 = struct.Struct("<f")


# =============================================================================
# Protocol ids
# =============================================================================


class ProtocolId(IntEnum):
    """Command ids. Values are part of the wire ABI and are sparse."""

    # Device information (0)
    DEVICE_SN = 0
    DEVICE_NAME = 1
    DEVICE_VERSION = 2
    DEVICE_WITH_L = 3
    DEVICE_TIME = 4
    DEVICE_INFO = 6

    # Pose (10)
    GET_POSE = 10
    RESET_POSE = 11
    GET_KINEMATICS = 12
    GET_POSE_L = 13

    # Alarm (20)
    ALARMS_STATE = 20

    # HOME (30)
    HOME_PARAMS = 30
    HOME_CMD = 31
    AUTO_LEVELING = 32

    # Handheld teaching (40)
    HHT_TRIG_MODE = 40
    HHT_TRIG_OUTPUT_ENABLED = 41
    HHT_TRIG_OUTPUT = 42

    # Arm orientation (50)
    ARM_ORIENTATION = 50

    # End effector (60)
    END_EFFECTOR_PARAMS = 60
    END_EFFECTOR_LASER = 61
    END_EFFECTOR_SUCTION_CUP = 62
    END_EFFECTOR_GRIPPER = 63

    # JOG (70)
    JOG_JOINT_PARAMS = 70
    JOG_COORDINATE_PARAMS = 71
    JOG_COMMON_PARAMS = 72
    JOG_CMD = 73
    JOG_L_PARAMS = 74

    # PTP (80)
    PTP_JOINT_PARAMS = 80
    PTP_COORDINATE_PARAMS = 81
    PTP_JUMP_PARAMS = 82
    PTP_COMMON_PARAMS = 83
    PTP_CMD = 84
    PTP_L_PARAMS = 85
    PTP_WITH_L_CMD = 86
    PTP_JUMP2_PARAMS = 87
    PTP_PO_CMD = 88
    PTP_PO_WITH_L_CMD = 89

    # CP (90)
    CP_PARAMS = 90
    CP_CMD = 91
    CP_LE_CMD = 92
    CP_R_HOLD_ENABLE = 93
    CP_COMMON_PARAMS = 94

    # ARC (100)
    ARC_PARAMS = 100
    ARC_CMD = 101
    CIRCLE_CMD = 102
    ARC_COMMON_PARAMS = 103

    # WAIT (110)
    WAIT_CMD = 110

    # TRIG (120)
    TRIG_CMD = 120

    # Extended IO (130)
    IO_MULTIPLEXING = 130
    IO_DO = 131
    IO_PWM = 132
    IO_DI = 133
    IO_ADC = 134
    E_MOTOR = 135
    E_MOTOR_S = 136
    COLOR_SENSOR = 137
    IR_SWITCH = 138

    # Calibration (140)
    ANGLE_SENSOR_STATIC_ERROR = 140
    ANGLE_SENSOR_COEF = 141
    BASE_DECODER_STATIC_ERROR = 142
    LR_HAND_CALIBRATE_VALUE = 143

    # WIFI (150)
    WIFI_CONFIG_MODE = 150
    WIFI_SSID = 151
    WIFI_PASSWORD = 152
    WIFI_IP_ADDRESS = 153
    WIFI_NETMASK = 154
    WIFI_GATEWAY = 155
    WIFI_DNS = 156
    WIFI_CONNECT_STATUS = 157

    # Firmware (160)
    FIRMWARE_SWITCH = 160
    FIRMWARE_MODE = 161

    # Lost step (170)
    LOST_STEP_SET = 170
    LOST_STEP_DETECT = 171

    # UART4 peripherals (180)
    CHECK_UART4_PERIPHERALS_MODEL = 180
    UART4_PERIPHERALS_ENABLED = 181

    # Pulse mode (190)
    PULSE_MODE = 190

    # Test (220)
    USER_PARAMS = 220
    PTP_TIME = 221

    # Queued command control (240)
    QUEUED_CMD_START_EXEC = 240
    QUEUED_CMD_STOP_EXEC = 241
    QUEUED_CMD_FORCE_STOP_EXEC = 242
    QUEUED_CMD_START_DOWNLOAD = 243
    QUEUED_CMD_STOP_DOWNLOAD = 244
    QUEUED_CMD_CLEAR = 245
    QUEUED_CMD_CURRENT_INDEX = 246
    QUEUED_CMD_LEFT_SPACE = 247
    QUEUED_CMD_MOTION_FINISH = 248


def protocol_id(value: int) -> ProtocolId | int:
    """Map a raw id byte to ``ProtocolId``, keeping unknown ids as plain ints."""
    try:
        return ProtocolId(value)
    except ValueError:
        return value


def id_name(value: int) -> str:
    """Human readable name for an id byte (used in logs)."""
    pid = protocol_id(value)
    return pid.name if isinstance(pid, ProtocolId) else f"UNKNOWN_{value}"


# =============================================================================
# Message
# =============================================================================


@dataclass(slots=True, frozen=True)
class Message:
    """A request or reply carried in one frame."""

    id: int
    rw: bool = False
    is_queued: bool = False
    params: bytes = b""

    @property
    def ctrl(self) -> int:
        ctrl = 0
        if self.rw:
            ctrl |= CTRL_RW
        if self.is_queued:
            ctrl |= CTRL_QUEUED
        return ctrl

    @property
    def ack_len(self) -> int:
        """Number of valid payload bytes."""
        return len(self.params)

    @classmethod
    def from_ctrl(cls, id: int, ctrl: int, params: bytes = b"") -> "Message":
        return cls(
            id=protocol_id(id),
            rw=bool(ctrl & CTRL_RW),
            is_queued=bool(ctrl & CTRL_QUEUED),
            params=bytes(params),
        )

    # Scalar readers for the leading bytes of the payload

    def as_bool(self) -> bool:
        return self.params[0] != 0

    def uint16(self) -> int:
        return _U16.unpack_from(self.params)[0]

    def uint32(self) -> int:
        return _U32.unpack_from(self.params)[0]

    def uint64(self) -> int:
        return _U64.unpack_from(self.params)[0]

    def float32(self) -> float:
        return _F32.unpack_from(self.params)[0]

    def __repr__(self) -> str:
        return (
            f"Message(id={id_name(self.id)}, rw={self.rw}, queued={self.is_queued}, "
            f"params={self.params.hex(' ') if self.params else '(empty)'})"
        )


# =============================================================================
# Encoding
# =============================================================================


def checksum(id: int, ctrl: int, params: bytes) -> int:
    """Two's complement of the byte sum so that the whole body sums to zero."""
    return (-(id + ctrl + sum(params))) & 0xFF


def encode_frame(message: Message) -> bytes:
    """Serialize a message into one frame.

    Raises:
        OversizeError: If the payload would push LEN to 0xAA or beyond.
    """
    params = bytes(message.params)
    if len(params) > MAX_PARAMS_LEN:
        raise OversizeError(
            f"payload of {len(params)} bytes exceeds the {MAX_PARAMS_LEN} byte frame limit"
        )
    mid = int(message.id) & 0xFF
    ctrl = message.ctrl
    return (
        HEADER
        + bytes((len(params) + 2, mid, ctrl))
        + params
        + bytes((checksum(mid, ctrl, params),))
    )


# =============================================================================
# Decoding
# =============================================================================


class FrameDecoder:
    """
    Incremental frame parser over an arbitrary byte stream.

    Bytes are pushed with :meth:`feed`; every complete, checksum-valid frame is
    returned as a :class:`Message`. Candidates with an impossible length or a
    bad checksum are rejected and scanning resumes at the byte after the
    rejected sync byte, so a valid frame that starts inside a rejected
    candidate is still found.
    """

    def __init__(self) -> None:
        self._buf = bytearray()
        self.skipped_bytes = 0
        self.rejected_frames = 0

    @property
    def buffered(self) -> int:
        return len(self._buf)

    def reset(self) -> None:
        self._buf.clear()

    def feed(self, data: bytes) -> list[Message]:
        """Append received bytes and return all messages now complete."""
        if data:
            self._buf += data
        messages: list[Message] = []
        while True:
            message = self._next_message()
            if message is None:
                return messages
            messages.append(message)

    def _reject(self) -> None:
        self.rejected_frames += 1
        del self._buf[0]

    def _next_message(self) -> Message | None:
        buf = self._buf
        while True:
            # Scan for SYNC SYNC
            start = buf.find(HEADER)
            if start < 0:
                # Keep a trailing SYNC, it may pair with the next chunk
                keep = 1 if buf[-1:] == HEADER[:1] else 0
                self.skipped_bytes += len(buf) - keep
                del buf[: len(buf) - keep]
                return None
            if start:
                self.skipped_bytes += start
                del buf[:start]

            if len(buf) < 3:
                return None
            length = buf[2]
            if length >= SYNC or length < 2:
                logger.debug("Rejecting frame with length byte %#04x", length)
                self._reject()
                continue

            end = 3 + length + 1
            if len(buf) < end:
                return None

            body = buf[3:end]
            if sum(body) & 0xFF:
                logger.debug("Rejecting frame with bad checksum (len=%d)", length)
                self._reject()
                continue

            message = Message.from_ctrl(body[0], body[1], bytes(body[2:-1]))
            del buf[:end]
            return message


__all__ = [
    "SYNC",
    "HEADER",
    "MAX_PARAMS_LEN",
    "CTRL_RW",
    "CTRL_QUEUED",
    "ProtocolId",
    "protocol_id",
    "id_name",
    "Message",
    "checksum",
    "encode_frame",
    "FrameDecoder",
]
