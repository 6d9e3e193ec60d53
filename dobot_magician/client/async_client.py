"""
Async client for Dobot Magician control.
"""

import asyncio
import logging
import socket
import struct

from .. import config as cfg
from ..connection import Connection
from ..connection.transports import TransportKind
from ..errors import ClosedError, InvalidResponse
from ..protocol.types import (
    ARCCmd,
    ARCCommonParams,
    ARCParams,
    ArmOrientation,
    AutoLevelingCmd,
    CircleCmd,
    ColorPort,
    ColorReading,
    CPCmd,
    CPCommonParams,
    CPLECmd,
    CPParams,
    DeviceCountInfo,
    DeviceVersion,
    EMotor,
    EMotorS,
    EndEffectorParams,
    HHTTrigMode,
    HOMECmd,
    HOMEParams,
    InfraredPort,
    IOADC,
    IODI,
    IODO,
    IOMultiplexing,
    IOPWM,
    JOGCmd,
    JOGCommonParams,
    JOGCoordinateParams,
    JOGJointParams,
    JOGLParams,
    Kinematics,
    ParallelOutputCmd,
    Pose,
    PTPCmd,
    PTPCommonParams,
    PTPCoordinateParams,
    PTPJointParams,
    PTPJump2Params,
    PTPJumpParams,
    PTPLParams,
    PTPWithLCmd,
    QueuedDownload,
    ResetPoseCmd,
    SensorConfig,
    TRIGCmd,
    WAITCmd,
)
from ..protocol.wire import Message, ProtocolId

logger = logging.getLogger(__name__)

_F32 = struct.Struct("<f")
_F32x2 = struct.Struct("<ff")


def _cstring(value: str, what: str) -> bytes:
    if not value:
        raise ValueError(f"{what} must not be empty")
    return value.encode("utf-8") + b"\x00"


def _decode_cstring(data: bytes) -> str:
    return data.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def _require(reply: Message, size: int) -> bytes:
    if reply.ack_len < size:
        raise InvalidResponse(
            f"reply to {reply.id!r} has {reply.ack_len} bytes, expected at least {size}"
        )
    return reply.params


def _ipv4(data: bytes) -> str:
    return socket.inet_ntoa(bytes(data[:4]))


class AsyncDobotClient:
    """
    Async client for one Dobot Magician.

    Every protocol command is exposed as one coroutine that builds the
    request, submits it through the connection's dispatcher, and decodes the
    reply. Setters that may be queued take ``is_queued`` and return the
    device queue index when queued (``None`` otherwise); commands the device
    only accepts queued always return the index.

    Usage:
        async with AsyncDobotClient("/dev/ttyUSB0") as bot:
            index = await bot.set_ptp_cmd(PTPCmd(PTPMode.MOVJ_XYZ, 200, 0, 50, 0))
            await bot.wait_queued_complete(index)
    """

    def __init__(
        self,
        endpoint: str | None = None,
        *,
        baudrate: int | None = None,
        kind: TransportKind | None = None,
        connection: Connection | None = None,
        **options,
    ) -> None:
        """
        Args:
            endpoint: ``/dev/...`` serial path, ``host:port`` or ``mock://``.
                Falls back to ``DOBOT_ENDPOINT`` and the saved endpoint file.
            baudrate: Serial baud rate
            kind: Force the transport kind
            connection: Use an already-running connection instead of opening one
            **options: Connection tuning (reply_timeout, max_attempts, alarm_poll_s, ...)
        """
        self._endpoint = endpoint
        self._baudrate = baudrate
        self._kind = kind
        self._options = options
        self._conn = connection
        self._ep_lock = asyncio.Lock()
        self._closed = False

    # --------------- Connection management ---------------

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    @property
    def connection(self) -> Connection | None:
        return self._conn

    @property
    def left_space(self) -> int:
        return self._conn.left_space if self._conn is not None else 0

    @property
    def alarms(self) -> bytes:
        return self._conn.alarms if self._conn is not None else b""

    async def connect(self) -> None:
        """Open the connection now instead of on first use."""
        await self._ensure_connection()

    async def _ensure_connection(self) -> Connection:
        """Lazily open the transport and start the connection tasks."""
        if self._closed:
            raise ClosedError("AsyncDobotClient is closed")
        if self._conn is not None:
            return self._conn
        async with self._ep_lock:
            if self._closed:
                raise ClosedError("AsyncDobotClient is closed")
            if self._conn is not None:
                return self._conn
            endpoint = self._endpoint or cfg.get_endpoint_with_fallback()
            if not endpoint:
                raise ValueError(
                    "No endpoint given; pass one, set DOBOT_ENDPOINT or save one with save_endpoint()"
                )
            self._endpoint = endpoint
            self._conn = await Connection.open(
                endpoint, baudrate=self._baudrate, kind=self._kind, **self._options
            )
            return self._conn

    async def close(self) -> None:
        """Close the connection. Safe to call multiple times."""
        if self._closed:
            return
        logger.debug("Closing client...")
        self._closed = True
        if self._conn is not None:
            await self._conn.close()

    async def __aenter__(self) -> "AsyncDobotClient":
        await self._ensure_connection()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------- Internal helpers ---------------

    async def send(self, message: Message) -> Message:
        """Submit a raw message and return the raw reply."""
        conn = await self._ensure_connection()
        return await conn.submit(message)

    async def _read(self, pid: ProtocolId, params: bytes = b"") -> Message:
        return await self.send(Message(pid, rw=False, is_queued=False, params=params))

    async def _write(self, pid: ProtocolId, params: bytes = b"") -> Message:
        return await self.send(Message(pid, rw=True, is_queued=False, params=params))

    async def _set(self, pid: ProtocolId, params: bytes, is_queued: bool) -> int | None:
        reply = await self.send(Message(pid, rw=True, is_queued=is_queued, params=params))
        if not is_queued:
            return None
        return struct.unpack_from("<Q", _require(reply, 8))[0]

    async def _set_queued(self, pid: ProtocolId, params: bytes = b"") -> int:
        index = await self._set(pid, params, True)
        assert index is not None
        return index

    async def _read_bool(self, pid: ProtocolId) -> bool:
        return _require(await self._read(pid), 1)[0] != 0

    async def _read_float(self, pid: ProtocolId) -> float:
        return _F32.unpack_from(_require(await self._read(pid), 4))[0]

    async def _read_pair(self, pid: ProtocolId) -> tuple[float, float]:
        return _F32x2.unpack_from(_require(await self._read(pid), 8))

    async def _read_flags(self, pid: ProtocolId) -> tuple[bool, bool]:
        data = _require(await self._read(pid), 2)
        return data[0] != 0, data[1] != 0

    # --------------- Device information ---------------

    async def set_device_sn(self, sn: str) -> None:
        await self._write(ProtocolId.DEVICE_SN, _cstring(sn, "serial number"))

    async def get_device_sn(self) -> str:
        return _decode_cstring((await self._read(ProtocolId.DEVICE_SN)).params)

    async def set_device_name(self, name: str) -> None:
        await self._write(ProtocolId.DEVICE_NAME, _cstring(name, "device name"))

    async def get_device_name(self) -> str:
        return _decode_cstring((await self._read(ProtocolId.DEVICE_NAME)).params)

    async def get_device_version(self) -> DeviceVersion:
        """Firmware major/minor/revision and hardware version."""
        return DeviceVersion.unpack((await self._read(ProtocolId.DEVICE_VERSION)).params)

    async def set_device_with_l(self, is_with_l: bool, version: int = 0) -> int:
        """Enable the sliding rail (L axis). Always queued."""
        return await self._set_queued(ProtocolId.DEVICE_WITH_L, bytes((int(is_with_l), version)))

    async def get_device_with_l(self) -> bool:
        return await self._read_bool(ProtocolId.DEVICE_WITH_L)

    async def get_device_time(self) -> int:
        """Device uptime in milliseconds."""
        return struct.unpack_from("<I", _require(await self._read(ProtocolId.DEVICE_TIME), 4))[0]

    async def get_device_info(self) -> DeviceCountInfo:
        return DeviceCountInfo.unpack((await self._read(ProtocolId.DEVICE_INFO)).params)

    # --------------- Pose ---------------

    async def get_pose(self) -> Pose:
        """Current Cartesian pose and joint angles."""
        return Pose.unpack((await self._read(ProtocolId.GET_POSE)).params)

    async def reset_pose(self, manual: bool, rear_arm_angle: float, front_arm_angle: float) -> None:
        await self._write(
            ProtocolId.RESET_POSE, ResetPoseCmd(manual, rear_arm_angle, front_arm_angle).pack()
        )

    async def get_kinematics(self) -> Kinematics:
        return Kinematics.unpack((await self._read(ProtocolId.GET_KINEMATICS)).params)

    async def get_pose_l(self) -> float:
        """Sliding rail position in mm."""
        return await self._read_float(ProtocolId.GET_POSE_L)

    # --------------- Alarms ---------------

    async def get_alarms_state(self) -> bytes:
        """Raw alarm bitmap. Any nonzero byte blocks further commands."""
        return (await self._read(ProtocolId.ALARMS_STATE)).params

    async def clear_all_alarms_state(self) -> None:
        await self._write(ProtocolId.ALARMS_STATE)

    # --------------- HOME ---------------

    async def set_home_params(self, params: HOMEParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.HOME_PARAMS, params.pack(), is_queued)

    async def get_home_params(self) -> HOMEParams:
        return HOMEParams.unpack((await self._read(ProtocolId.HOME_PARAMS)).params)

    async def set_home_cmd(self, cmd: HOMECmd | None = None, is_queued: bool = True) -> int | None:
        """Start the homing sequence."""
        return await self._set(ProtocolId.HOME_CMD, (cmd or HOMECmd()).pack(), is_queued)

    async def set_auto_leveling_cmd(self, cmd: AutoLevelingCmd, is_queued: bool = True) -> int | None:
        return await self._set(ProtocolId.AUTO_LEVELING, cmd.pack(), is_queued)

    async def get_auto_leveling_result(self) -> float:
        return await self._read_float(ProtocolId.AUTO_LEVELING)

    # --------------- Handheld teaching ---------------

    async def set_hht_trig_mode(self, mode: HHTTrigMode) -> None:
        await self._write(ProtocolId.HHT_TRIG_MODE, bytes((int(mode),)))

    async def get_hht_trig_mode(self) -> HHTTrigMode:
        return HHTTrigMode(_require(await self._read(ProtocolId.HHT_TRIG_MODE), 1)[0])

    async def set_hht_trig_output_enabled(self, enabled: bool) -> None:
        await self._write(ProtocolId.HHT_TRIG_OUTPUT_ENABLED, bytes((int(enabled),)))

    async def get_hht_trig_output_enabled(self) -> bool:
        return await self._read_bool(ProtocolId.HHT_TRIG_OUTPUT_ENABLED)

    async def get_hht_trig_output(self) -> bool:
        return await self._read_bool(ProtocolId.HHT_TRIG_OUTPUT)

    # --------------- Arm orientation ---------------

    async def set_arm_orientation(self, orientation: ArmOrientation, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.ARM_ORIENTATION, bytes((int(orientation),)), is_queued)

    async def get_arm_orientation(self) -> ArmOrientation:
        return ArmOrientation(_require(await self._read(ProtocolId.ARM_ORIENTATION), 1)[0])

    # --------------- End effector ---------------

    async def set_end_effector_params(self, params: EndEffectorParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.END_EFFECTOR_PARAMS, params.pack(), is_queued)

    async def get_end_effector_params(self) -> EndEffectorParams:
        return EndEffectorParams.unpack((await self._read(ProtocolId.END_EFFECTOR_PARAMS)).params)

    async def set_end_effector_laser(self, enable_ctrl: bool, on: bool, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.END_EFFECTOR_LASER, bytes((int(enable_ctrl), int(on))), is_queued)

    async def get_end_effector_laser(self) -> tuple[bool, bool]:
        """Returns (control enabled, laser on)."""
        return await self._read_flags(ProtocolId.END_EFFECTOR_LASER)

    async def set_end_effector_suction_cup(self, enable_ctrl: bool, suck: bool, is_queued: bool = False) -> int | None:
        return await self._set(
            ProtocolId.END_EFFECTOR_SUCTION_CUP, bytes((int(enable_ctrl), int(suck))), is_queued
        )

    async def get_end_effector_suction_cup(self) -> tuple[bool, bool]:
        """Returns (control enabled, sucking)."""
        return await self._read_flags(ProtocolId.END_EFFECTOR_SUCTION_CUP)

    async def set_end_effector_gripper(self, enable_ctrl: bool, grip: bool, is_queued: bool = False) -> int | None:
        return await self._set(
            ProtocolId.END_EFFECTOR_GRIPPER, bytes((int(enable_ctrl), int(grip))), is_queued
        )

    async def get_end_effector_gripper(self) -> tuple[bool, bool]:
        """Returns (control enabled, gripped)."""
        return await self._read_flags(ProtocolId.END_EFFECTOR_GRIPPER)

    # --------------- JOG ---------------

    async def set_jog_joint_params(self, params: JOGJointParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.JOG_JOINT_PARAMS, params.pack(), is_queued)

    async def get_jog_joint_params(self) -> JOGJointParams:
        return JOGJointParams.unpack((await self._read(ProtocolId.JOG_JOINT_PARAMS)).params)

    async def set_jog_coordinate_params(self, params: JOGCoordinateParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.JOG_COORDINATE_PARAMS, params.pack(), is_queued)

    async def get_jog_coordinate_params(self) -> JOGCoordinateParams:
        return JOGCoordinateParams.unpack((await self._read(ProtocolId.JOG_COORDINATE_PARAMS)).params)

    async def set_jog_l_params(self, params: JOGLParams) -> None:
        """Sliding rail JOG parameters. The firmware only accepts this immediately."""
        await self._write(ProtocolId.JOG_L_PARAMS, params.pack())

    async def get_jog_l_params(self) -> JOGLParams:
        return JOGLParams.unpack((await self._read(ProtocolId.JOG_L_PARAMS)).params)

    async def set_jog_common_params(self, params: JOGCommonParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.JOG_COMMON_PARAMS, params.pack(), is_queued)

    async def get_jog_common_params(self) -> JOGCommonParams:
        return JOGCommonParams.unpack((await self._read(ProtocolId.JOG_COMMON_PARAMS)).params)

    async def set_jog_cmd(self, cmd: JOGCmd, is_queued: bool = False) -> int | None:
        """Start (or with ``JogCmd.IDLE`` stop) a JOG motion."""
        return await self._set(ProtocolId.JOG_CMD, cmd.pack(), is_queued)

    # --------------- PTP ---------------

    async def set_ptp_joint_params(self, params: PTPJointParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.PTP_JOINT_PARAMS, params.pack(), is_queued)

    async def get_ptp_joint_params(self) -> PTPJointParams:
        return PTPJointParams.unpack((await self._read(ProtocolId.PTP_JOINT_PARAMS)).params)

    async def set_ptp_coordinate_params(self, params: PTPCoordinateParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.PTP_COORDINATE_PARAMS, params.pack(), is_queued)

    async def get_ptp_coordinate_params(self) -> PTPCoordinateParams:
        return PTPCoordinateParams.unpack((await self._read(ProtocolId.PTP_COORDINATE_PARAMS)).params)

    async def set_ptp_l_params(self, params: PTPLParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.PTP_L_PARAMS, params.pack(), is_queued)

    async def get_ptp_l_params(self) -> PTPLParams:
        return PTPLParams.unpack((await self._read(ProtocolId.PTP_L_PARAMS)).params)

    async def set_ptp_jump_params(self, params: PTPJumpParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.PTP_JUMP_PARAMS, params.pack(), is_queued)

    async def get_ptp_jump_params(self) -> PTPJumpParams:
        return PTPJumpParams.unpack((await self._read(ProtocolId.PTP_JUMP_PARAMS)).params)

    async def set_ptp_jump2_params(self, params: PTPJump2Params, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.PTP_JUMP2_PARAMS, params.pack(), is_queued)

    async def get_ptp_jump2_params(self) -> PTPJump2Params:
        return PTPJump2Params.unpack((await self._read(ProtocolId.PTP_JUMP2_PARAMS)).params)

    async def set_ptp_common_params(self, params: PTPCommonParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.PTP_COMMON_PARAMS, params.pack(), is_queued)

    async def get_ptp_common_params(self) -> PTPCommonParams:
        return PTPCommonParams.unpack((await self._read(ProtocolId.PTP_COMMON_PARAMS)).params)

    async def set_ptp_cmd(self, cmd: PTPCmd, is_queued: bool = True) -> int | None:
        """Point-to-point move to ``cmd`` in the given mode."""
        return await self._set(ProtocolId.PTP_CMD, cmd.pack(), is_queued)

    async def set_ptp_with_l_cmd(self, cmd: PTPWithLCmd, is_queued: bool = True) -> int | None:
        return await self._set(ProtocolId.PTP_WITH_L_CMD, cmd.pack(), is_queued)

    @staticmethod
    def _parallel_outputs(outputs: list[ParallelOutputCmd]) -> bytes:
        if len(outputs) > 0xFF:
            raise ValueError(f"at most 255 parallel outputs, got {len(outputs)}")
        return bytes((len(outputs),)) + b"".join(o.pack() for o in outputs)

    async def set_ptp_po_cmd(self, cmd: PTPCmd, outputs: list[ParallelOutputCmd]) -> int:
        """PTP move firing IO outputs along the way. Always queued."""
        return await self._set_queued(ProtocolId.PTP_PO_CMD, cmd.pack() + self._parallel_outputs(outputs))

    async def set_ptp_po_with_l_cmd(self, cmd: PTPWithLCmd, outputs: list[ParallelOutputCmd]) -> int:
        return await self._set_queued(
            ProtocolId.PTP_PO_WITH_L_CMD, cmd.pack() + self._parallel_outputs(outputs)
        )

    # --------------- CP ---------------

    async def set_cp_params(self, params: CPParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.CP_PARAMS, params.pack(), is_queued)

    async def get_cp_params(self) -> CPParams:
        return CPParams.unpack((await self._read(ProtocolId.CP_PARAMS)).params)

    async def set_cp_cmd(self, cmd: CPCmd, is_queued: bool = True) -> int | None:
        """Continuous-path segment."""
        return await self._set(ProtocolId.CP_CMD, cmd.pack(), is_queued)

    async def set_cp_le_cmd(self, cmd: CPLECmd, is_queued: bool = True) -> int | None:
        """Continuous-path segment with laser power, for engraving."""
        return await self._set(ProtocolId.CP_LE_CMD, cmd.pack(), is_queued)

    async def set_cp_r_hold_enable(self, enabled: bool) -> None:
        await self._write(ProtocolId.CP_R_HOLD_ENABLE, bytes((int(enabled),)))

    async def get_cp_r_hold_enable(self) -> bool:
        return await self._read_bool(ProtocolId.CP_R_HOLD_ENABLE)

    async def set_cp_common_params(self, params: CPCommonParams, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.CP_COMMON_PARAMS, params.pack(), is_queued)

    async def get_cp_common_params(self) -> CPCommonParams:
        return CPCommonParams.unpack((await self._read(ProtocolId.CP_COMMON_PARAMS)).params)

    # --------------- ARC ---------------

    async def set_arc_params(self, params: ARCParams) -> int:
        return await self._set_queued(ProtocolId.ARC_PARAMS, params.pack())

    async def get_arc_params(self) -> ARCParams:
        return ARCParams.unpack((await self._read(ProtocolId.ARC_PARAMS)).params)

    async def set_arc_cmd(self, cmd: ARCCmd) -> int:
        return await self._set_queued(ProtocolId.ARC_CMD, cmd.pack())

    async def set_circle_cmd(self, cmd: CircleCmd) -> int:
        return await self._set_queued(ProtocolId.CIRCLE_CMD, cmd.pack())

    async def set_arc_common_params(self, params: ARCCommonParams) -> int:
        return await self._set_queued(ProtocolId.ARC_COMMON_PARAMS, params.pack())

    async def get_arc_common_params(self) -> ARCCommonParams:
        return ARCCommonParams.unpack((await self._read(ProtocolId.ARC_COMMON_PARAMS)).params)

    # --------------- WAIT / TRIG ---------------

    async def set_wait_cmd(self, cmd: WAITCmd | int) -> int:
        """Queue a pause. An int is taken as milliseconds."""
        if not isinstance(cmd, WAITCmd):
            cmd = WAITCmd(int(cmd))
        return await self._set_queued(ProtocolId.WAIT_CMD, cmd.pack())

    async def set_trig_cmd(self, cmd: TRIGCmd, is_queued: bool = True) -> int | None:
        return await self._set(ProtocolId.TRIG_CMD, cmd.pack(), is_queued)

    # --------------- Extended IO ---------------

    async def set_io_multiplexing(self, params: IOMultiplexing, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.IO_MULTIPLEXING, params.pack(), is_queued)

    async def get_io_multiplexing(self, address: int) -> IOMultiplexing:
        return IOMultiplexing.unpack((await self._read(ProtocolId.IO_MULTIPLEXING, bytes((address,)))).params)

    async def set_io_do(self, params: IODO, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.IO_DO, params.pack(), is_queued)

    async def get_io_do(self, address: int) -> IODO:
        return IODO.unpack((await self._read(ProtocolId.IO_DO, bytes((address,)))).params)

    async def set_io_pwm(self, params: IOPWM, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.IO_PWM, params.pack(), is_queued)

    async def get_io_pwm(self, address: int) -> IOPWM:
        return IOPWM.unpack((await self._read(ProtocolId.IO_PWM, bytes((address,)))).params)

    async def get_io_di(self, address: int) -> IODI:
        return IODI.unpack((await self._read(ProtocolId.IO_DI, bytes((address,)))).params)

    async def get_io_adc(self, address: int) -> IOADC:
        return IOADC.unpack((await self._read(ProtocolId.IO_ADC, bytes((address,)))).params)

    async def set_e_motor(self, params: EMotor, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.E_MOTOR, params.pack(), is_queued)

    async def set_e_motor_s(self, params: EMotorS, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.E_MOTOR_S, params.pack(), is_queued)

    async def set_color_sensor(self, enabled: bool, port: ColorPort, version: int = 0) -> None:
        await self._write(ProtocolId.COLOR_SENSOR, SensorConfig(enabled, port, version).pack())

    async def get_color_sensor(self) -> ColorReading:
        return ColorReading.unpack((await self._read(ProtocolId.COLOR_SENSOR)).params)

    async def set_infrared_sensor(self, enabled: bool, port: InfraredPort, version: int = 0) -> None:
        await self._write(ProtocolId.IR_SWITCH, SensorConfig(enabled, port, version).pack())

    async def get_infrared_sensor(self, port: InfraredPort) -> int:
        return _require(await self._read(ProtocolId.IR_SWITCH, bytes((int(port),))), 1)[0]

    # --------------- Calibration ---------------

    async def set_angle_sensor_static_error(self, rear_arm_error: float, front_arm_error: float) -> None:
        await self._write(ProtocolId.ANGLE_SENSOR_STATIC_ERROR, _F32x2.pack(rear_arm_error, front_arm_error))

    async def get_angle_sensor_static_error(self) -> tuple[float, float]:
        """Returns (rear arm, front arm) angle error."""
        return await self._read_pair(ProtocolId.ANGLE_SENSOR_STATIC_ERROR)

    async def set_angle_sensor_coef(self, rear_arm_coef: float, front_arm_coef: float) -> None:
        await self._write(ProtocolId.ANGLE_SENSOR_COEF, _F32x2.pack(rear_arm_coef, front_arm_coef))

    async def get_angle_sensor_coef(self) -> tuple[float, float]:
        return await self._read_pair(ProtocolId.ANGLE_SENSOR_COEF)

    async def set_base_decoder_static_error(self, error: float) -> None:
        await self._write(ProtocolId.BASE_DECODER_STATIC_ERROR, _F32.pack(error))

    async def get_base_decoder_static_error(self) -> float:
        return await self._read_float(ProtocolId.BASE_DECODER_STATIC_ERROR)

    async def set_lr_hand_calibrate_value(self, value: float) -> None:
        await self._write(ProtocolId.LR_HAND_CALIBRATE_VALUE, _F32.pack(value))

    async def get_lr_hand_calibrate_value(self) -> float:
        return await self._read_float(ProtocolId.LR_HAND_CALIBRATE_VALUE)

    # --------------- WIFI ---------------

    async def set_wifi_config_mode(self, enabled: bool) -> None:
        await self._write(ProtocolId.WIFI_CONFIG_MODE, bytes((int(enabled),)))

    async def get_wifi_config_mode(self) -> bool:
        return await self._read_bool(ProtocolId.WIFI_CONFIG_MODE)

    async def set_wifi_ssid(self, ssid: str) -> None:
        await self._write(ProtocolId.WIFI_SSID, _cstring(ssid, "SSID"))

    async def get_wifi_ssid(self) -> str:
        return _decode_cstring((await self._read(ProtocolId.WIFI_SSID)).params)

    async def set_wifi_password(self, password: str) -> None:
        await self._write(ProtocolId.WIFI_PASSWORD, _cstring(password, "password"))

    async def get_wifi_password(self) -> str:
        return _decode_cstring((await self._read(ProtocolId.WIFI_PASSWORD)).params)

    async def set_wifi_ip_address(self, address: str, dhcp: bool = False) -> None:
        await self._write(ProtocolId.WIFI_IP_ADDRESS, bytes((int(dhcp),)) + socket.inet_aton(address))

    async def get_wifi_ip_address(self) -> tuple[bool, str]:
        """Returns (dhcp, address)."""
        data = _require(await self._read(ProtocolId.WIFI_IP_ADDRESS), 5)
        return data[0] != 0, _ipv4(data[1:5])

    async def set_wifi_netmask(self, netmask: str) -> None:
        await self._write(ProtocolId.WIFI_NETMASK, socket.inet_aton(netmask))

    async def get_wifi_netmask(self) -> str:
        return _ipv4(_require(await self._read(ProtocolId.WIFI_NETMASK), 4))

    async def set_wifi_gateway(self, gateway: str) -> None:
        await self._write(ProtocolId.WIFI_GATEWAY, socket.inet_aton(gateway))

    async def get_wifi_gateway(self) -> str:
        return _ipv4(_require(await self._read(ProtocolId.WIFI_GATEWAY), 4))

    async def set_wifi_dns(self, dns: str) -> None:
        await self._write(ProtocolId.WIFI_DNS, socket.inet_aton(dns))

    async def get_wifi_dns(self) -> str:
        return _ipv4(_require(await self._read(ProtocolId.WIFI_DNS), 4))

    async def get_wifi_connect_status(self) -> bool:
        return await self._read_bool(ProtocolId.WIFI_CONNECT_STATUS)

    # --------------- Lost step detection ---------------

    async def set_lost_step_params(self, threshold: float, is_queued: bool = False) -> int | None:
        return await self._set(ProtocolId.LOST_STEP_SET, _F32.pack(threshold), is_queued)

    async def set_lost_step_cmd(self, is_queued: bool = True) -> int | None:
        return await self._set(ProtocolId.LOST_STEP_DETECT, b"", is_queued)

    # --------------- Queued command control ---------------

    async def set_queued_cmd_start_exec(self) -> None:
        await self._write(ProtocolId.QUEUED_CMD_START_EXEC)

    async def set_queued_cmd_stop_exec(self) -> None:
        await self._write(ProtocolId.QUEUED_CMD_STOP_EXEC)

    async def set_queued_cmd_force_stop_exec(self) -> None:
        await self._write(ProtocolId.QUEUED_CMD_FORCE_STOP_EXEC)

    async def set_queued_cmd_start_download(self, total_loop: int, line_per_loop: int) -> None:
        await self._write(ProtocolId.QUEUED_CMD_START_DOWNLOAD, QueuedDownload(total_loop, line_per_loop).pack())

    async def set_queued_cmd_stop_download(self) -> None:
        await self._write(ProtocolId.QUEUED_CMD_STOP_DOWNLOAD)

    async def set_queued_cmd_clear(self) -> None:
        await self._write(ProtocolId.QUEUED_CMD_CLEAR)

    async def get_queued_cmd_current_index(self) -> int:
        reply = await self._read(ProtocolId.QUEUED_CMD_CURRENT_INDEX)
        return struct.unpack_from("<Q", _require(reply, 8))[0]

    async def get_queued_cmd_left_space(self) -> int:
        reply = await self._read(ProtocolId.QUEUED_CMD_LEFT_SPACE)
        return struct.unpack_from("<I", _require(reply, 4))[0]

    async def get_queued_cmd_motion_finish(self) -> bool:
        return await self._read_bool(ProtocolId.QUEUED_CMD_MOTION_FINISH)

    async def wait_queued_complete(
        self,
        index: int,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> None:
        """Block until the device has executed queued command ``index``.

        Args:
            index: Queue index returned by a queued setter
            timeout: Give up after this many seconds (None waits forever)
            poll_interval: Seconds between ``QueuedCmdCurrentIndex`` reads

        Raises:
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        interval = cfg.QUEUED_POLL_S if poll_interval is None else poll_interval

        async def _poll() -> None:
            while True:
                current = await self.get_queued_cmd_current_index()
                if current >= index:
                    return
                await asyncio.sleep(interval)

        await asyncio.wait_for(_poll(), timeout=timeout)

    # --------------- Convenience ---------------

    async def home(self, wait: bool = True, timeout: float | None = None) -> int:
        """Queue a homing run and optionally wait for it to finish."""
        index = await self._set_queued(ProtocolId.HOME_CMD, HOMECmd().pack())
        if wait:
            await self.wait_queued_complete(index, timeout=timeout)
        return index

    async def active_alarms(self) -> list[tuple[int, int]]:
        """Nonzero alarm bytes as (group, code) pairs."""
        return [(group, code) for group, code in enumerate(await self.get_alarms_state()) if code]
