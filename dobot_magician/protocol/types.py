"""
Type definitions for Dobot Magician command payloads.

Every parameter record is a frozen ``msgspec.Struct`` whose packed wire layout
is described by a numpy structured dtype (little-endian, no padding). Records
encode with :meth:`Record.pack` and decode with :meth:`Record.unpack`.
"""

from enum import IntEnum
from typing import Annotated, ClassVar

import msgspec
import numpy as np

from ..errors import InvalidResponse

Vec4 = tuple[float, float, float, float]
U8 = Annotated[int, msgspec.Meta(ge=0, le=0xFF)]


# =============================================================================
# Enums
# =============================================================================


class PTPMode(IntEnum):
    """Point-to-point motion modes."""

    JUMP_XYZ = 0
    MOVJ_XYZ = 1
    MOVL_XYZ = 2
    JUMP_ANGLE = 3
    MOVJ_ANGLE = 4
    MOVL_ANGLE = 5
    MOVJ_INC = 6
    MOVL_INC = 7
    MOVJ_XYZ_INC = 8
    JUMP_MOVL_XYZ = 9


class CPMode(IntEnum):
    RELATIVE = 0
    ABSOLUTE = 1


class JogCmd(IntEnum):
    """JOG command codes. Coordinate mode uses X..R, joint mode J1..J4."""

    IDLE = 0
    AP_DOWN = 1
    AN_DOWN = 2
    BP_DOWN = 3
    BN_DOWN = 4
    CP_DOWN = 5
    CN_DOWN = 6
    DP_DOWN = 7
    DN_DOWN = 8
    EP_DOWN = 9
    EN_DOWN = 10


class ArmOrientation(IntEnum):
    LEFTY = 0
    RIGHTY = 1


class HHTTrigMode(IntEnum):
    """Handheld teaching trigger modes."""

    KEY_RELEASED = 0
    PERIODIC = 1


class IOFunction(IntEnum):
    DUMMY = 0
    DO = 1
    PWM = 2
    DI = 3
    ADC = 4


class TRIGMode(IntEnum):
    INPUT_IO = 0
    ADC = 1


class TRIGInputIOCondition(IntEnum):
    EQUAL = 0
    NOT_EQUAL = 1


class TRIGADCCondition(IntEnum):
    LT = 0  # lower than
    LE = 1  # lower than or equal
    GE = 2  # greater than or equal
    GT = 3  # greater than


class ColorPort(IntEnum):
    GP1 = 0
    GP2 = 1
    GP4 = 2
    GP5 = 3


class InfraredPort(IntEnum):
    GP1 = 0
    GP2 = 1
    GP4 = 2
    GP5 = 3


# =============================================================================
# Records
# =============================================================================


def _layout(*fields: tuple) -> np.dtype:
    return np.dtype(list(fields), align=False)


class Record(msgspec.Struct, array_like=True, frozen=True):
    """Base for fixed-layout payload records."""

    DTYPE: ClassVar[np.dtype]

    @classmethod
    def size(cls) -> int:
        return cls.DTYPE.itemsize

    def pack(self) -> bytes:
        values = tuple(getattr(self, name) for name in self.__struct_fields__)
        return np.array([values], dtype=self.DTYPE).tobytes()

    @classmethod
    def unpack(cls, data: bytes):
        """Decode the leading bytes of ``data``; trailing bytes are ignored.

        Raises:
            InvalidResponse: If ``data`` is shorter than the record layout.
        """
        if len(data) < cls.DTYPE.itemsize:
            raise InvalidResponse(
                f"{cls.__name__} needs {cls.DTYPE.itemsize} bytes, got {len(data)}"
            )
        rec = np.frombuffer(data, dtype=cls.DTYPE, count=1)[0]
        return msgspec.convert([rec[name].tolist() for name in cls.DTYPE.names], cls)


class Pose(Record):
    """Cartesian pose in mm/degrees plus the four joint angles in degrees."""

    DTYPE = _layout(
        ("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("r", "<f4"), ("joint_angle", "<f4", (4,))
    )

    x: float
    y: float
    z: float
    r: float
    joint_angle: Vec4


class Kinematics(Record):
    DTYPE = _layout(("velocity", "<f4"), ("acceleration", "<f4"))

    velocity: float
    acceleration: float


class HOMEParams(Record):
    DTYPE = _layout(("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("r", "<f4"))

    x: float
    y: float
    z: float
    r: float


class HOMECmd(Record):
    DTYPE = _layout(("reserved", "<u4"))

    reserved: int = 0


class AutoLevelingCmd(Record):
    DTYPE = _layout(("enabled", "u1"), ("precision", "<f4"))

    enabled: U8
    precision: float


class EndEffectorParams(Record):
    DTYPE = _layout(("x_bias", "<f4"), ("y_bias", "<f4"), ("z_bias", "<f4"))

    x_bias: float
    y_bias: float
    z_bias: float


class JOGJointParams(Record):
    """Per-joint JOG velocity (deg/s) and acceleration (deg/s^2)."""

    DTYPE = _layout(("velocity", "<f4", (4,)), ("acceleration", "<f4", (4,)))

    velocity: Vec4
    acceleration: Vec4


class JOGCoordinateParams(Record):
    """Per-axis (X, Y, Z, R) JOG velocity and acceleration."""

    DTYPE = _layout(("velocity", "<f4", (4,)), ("acceleration", "<f4", (4,)))

    velocity: Vec4
    acceleration: Vec4


class JOGLParams(Record):
    DTYPE = _layout(("velocity", "<f4"), ("acceleration", "<f4"))

    velocity: float
    acceleration: float


class JOGCommonParams(Record):
    DTYPE = _layout(("velocity_ratio", "<f4"), ("acceleration_ratio", "<f4"))

    velocity_ratio: float
    acceleration_ratio: float


class JOGCmd(Record):
    DTYPE = _layout(("is_joint", "?"), ("cmd", "u1"))

    is_joint: bool
    cmd: JogCmd


class PTPJointParams(Record):
    DTYPE = _layout(("velocity", "<f4", (4,)), ("acceleration", "<f4", (4,)))

    velocity: Vec4
    acceleration: Vec4


class PTPCoordinateParams(Record):
    DTYPE = _layout(
        ("xyz_velocity", "<f4"),
        ("r_velocity", "<f4"),
        ("xyz_acceleration", "<f4"),
        ("r_acceleration", "<f4"),
    )

    xyz_velocity: float
    r_velocity: float
    xyz_acceleration: float
    r_acceleration: float


class PTPLParams(Record):
    DTYPE = _layout(("velocity", "<f4"), ("acceleration", "<f4"))

    velocity: float
    acceleration: float


class PTPJumpParams(Record):
    DTYPE = _layout(("jump_height", "<f4"), ("z_limit", "<f4"))

    jump_height: float
    z_limit: float


class PTPJump2Params(Record):
    DTYPE = _layout(
        ("start_jump_height", "<f4"), ("end_jump_height", "<f4"), ("z_limit", "<f4")
    )

    start_jump_height: float
    end_jump_height: float
    z_limit: float


class PTPCommonParams(Record):
    DTYPE = _layout(("velocity_ratio", "<f4"), ("acceleration_ratio", "<f4"))

    velocity_ratio: float
    acceleration_ratio: float


class PTPCmd(Record):
    """PTP target. x, y, z, r are joint angles in the *_ANGLE modes."""

    DTYPE = _layout(("mode", "u1"), ("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("r", "<f4"))

    mode: PTPMode
    x: float
    y: float
    z: float
    r: float


class PTPWithLCmd(Record):
    DTYPE = _layout(
        ("mode", "u1"), ("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("r", "<f4"), ("l", "<f4")
    )

    mode: PTPMode
    x: float
    y: float
    z: float
    r: float
    l: float  # noqa: E741


class ParallelOutputCmd(Record):
    """IO action fired at ``ratio`` percent of a PTP move."""

    DTYPE = _layout(("ratio", "u1"), ("address", "<u2"), ("level", "u1"))

    ratio: Annotated[int, msgspec.Meta(ge=0, le=100)]
    address: int
    level: U8


class CPParams(Record):
    DTYPE = _layout(
        ("plan_acc", "<f4"),
        ("junction_vel", "<f4"),
        ("acc_or_period", "<f4"),
        ("real_time_track", "?"),
    )

    plan_acc: float
    junction_vel: float
    acc_or_period: float
    real_time_track: bool


class CPCmd(Record):
    DTYPE = _layout(
        ("mode", "u1"), ("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("velocity", "<f4")
    )

    mode: CPMode
    x: float
    y: float
    z: float
    velocity: float


class CPLECmd(Record):
    """Laser-engraving CP move; ``power`` is the laser power in percent."""

    DTYPE = _layout(("mode", "u1"), ("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("power", "<f4"))

    mode: CPMode
    x: float
    y: float
    z: float
    power: float


class CPCommonParams(Record):
    DTYPE = _layout(("velocity_ratio", "<f4"), ("acceleration_ratio", "<f4"))

    velocity_ratio: float
    acceleration_ratio: float


class ARCParams(Record):
    DTYPE = _layout(
        ("xyz_velocity", "<f4"),
        ("r_velocity", "<f4"),
        ("xyz_acceleration", "<f4"),
        ("r_acceleration", "<f4"),
    )

    xyz_velocity: float
    r_velocity: float
    xyz_acceleration: float
    r_acceleration: float


class ARCCmd(Record):
    """Arc through ``cir_point`` ending at ``to_point`` (x, y, z, r each)."""

    DTYPE = _layout(("cir_point", "<f4", (4,)), ("to_point", "<f4", (4,)))

    cir_point: Vec4
    to_point: Vec4


class CircleCmd(Record):
    DTYPE = _layout(("cir_point", "<f4", (4,)), ("to_point", "<f4", (4,)), ("count", "<u4"))

    cir_point: Vec4
    to_point: Vec4
    count: int


class ARCCommonParams(Record):
    DTYPE = _layout(("velocity_ratio", "<f4"), ("acceleration_ratio", "<f4"))

    velocity_ratio: float
    acceleration_ratio: float


class WAITCmd(Record):
    """Queued pause, ``timeout`` in milliseconds."""

    DTYPE = _layout(("timeout", "<u4"))

    timeout: int


class TRIGCmd(Record):
    """Queued wait until an IO or ADC condition holds.

    ``condition`` is a ``TRIGInputIOCondition`` in INPUT_IO mode and a
    ``TRIGADCCondition`` in ADC mode.
    """

    DTYPE = _layout(("address", "u1"), ("mode", "u1"), ("condition", "u1"), ("threshold", "<f4"))

    address: U8
    mode: TRIGMode
    condition: U8
    threshold: float


class IOMultiplexing(Record):
    DTYPE = _layout(("address", "u1"), ("multiplex", "u1"))

    address: U8
    multiplex: IOFunction


class IODO(Record):
    DTYPE = _layout(("address", "u1"), ("level", "u1"))

    address: U8
    level: U8


class IOPWM(Record):
    DTYPE = _layout(("address", "u1"), ("frequency", "<f4"), ("duty_cycle", "<f4"))

    address: U8
    frequency: float
    duty_cycle: float


class IODI(Record):
    DTYPE = _layout(("address", "u1"), ("level", "u1"))

    address: U8
    level: U8


class IOADC(Record):
    DTYPE = _layout(("address", "u1"), ("value", "<u2"))

    address: U8
    value: int


class EMotor(Record):
    """Extension stepper driven at a constant ``speed`` (pulses/s)."""

    DTYPE = _layout(("index", "u1"), ("is_enabled", "?"), ("speed", "<i4"))

    index: U8
    is_enabled: bool
    speed: int


class EMotorS(Record):
    """Extension stepper move of ``distance`` pulses."""

    DTYPE = _layout(("index", "u1"), ("is_enabled", "?"), ("speed", "<i4"), ("distance", "<u4"))

    index: U8
    is_enabled: bool
    speed: int
    distance: int


class DeviceCountInfo(Record):
    DTYPE = _layout(("run_time", "<u8"), ("power_on", "<u4"), ("power_off", "<u4"))

    run_time: int
    power_on: int
    power_off: int


class DeviceVersion(Record):
    DTYPE = _layout(("major", "u1"), ("minor", "u1"), ("revision", "u1"), ("hw_version", "u1"))

    major: int
    minor: int
    revision: int
    hw_version: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.revision} (hw {self.hw_version})"


class ResetPoseCmd(Record):
    DTYPE = _layout(("manual", "?"), ("rear_arm_angle", "<f4"), ("front_arm_angle", "<f4"))

    manual: bool
    rear_arm_angle: float
    front_arm_angle: float


class SensorConfig(Record):
    """Colour or infrared sensor enable/port/version triple."""

    DTYPE = _layout(("enabled", "?"), ("port", "u1"), ("version", "u1"))

    enabled: bool
    port: U8
    version: U8


class ColorReading(Record):
    DTYPE = _layout(("r", "u1"), ("g", "u1"), ("b", "u1"))

    r: int
    g: int
    b: int


class QueuedDownload(Record):
    DTYPE = _layout(("total_loop", "<u4"), ("line_per_loop", "<u4"))

    total_loop: int
    line_per_loop: int


__all__ = [
    "PTPMode",
    "CPMode",
    "JogCmd",
    "ArmOrientation",
    "HHTTrigMode",
    "IOFunction",
    "TRIGMode",
    "TRIGInputIOCondition",
    "TRIGADCCondition",
    "ColorPort",
    "InfraredPort",
    "Record",
    "Pose",
    "Kinematics",
    "HOMEParams",
    "HOMECmd",
    "AutoLevelingCmd",
    "EndEffectorParams",
    "JOGJointParams",
    "JOGCoordinateParams",
    "JOGLParams",
    "JOGCommonParams",
    "JOGCmd",
    "PTPJointParams",
    "PTPCoordinateParams",
    "PTPLParams",
    "PTPJumpParams",
    "PTPJump2Params",
    "PTPCommonParams",
    "PTPCmd",
    "PTPWithLCmd",
    "ParallelOutputCmd",
    "CPParams",
    "CPCmd",
    "CPLECmd",
    "CPCommonParams",
    "ARCParams",
    "ARCCmd",
    "CircleCmd",
    "ARCCommonParams",
    "WAITCmd",
    "TRIGCmd",
    "IOMultiplexing",
    "IODO",
    "IOPWM",
    "IODI",
    "IOADC",
    "EMotor",
    "EMotorS",
    "DeviceCountInfo",
    "DeviceVersion",
    "ResetPoseCmd",
    "SensorConfig",
    "ColorReading",
    "QueuedDownload",
]
