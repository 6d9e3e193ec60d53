"""
Synchronous facade for AsyncDobotClient.

- In sync code: use DobotClient and call methods directly.
- In async code (event loop running): use AsyncDobotClient and `await` the methods.
"""

import asyncio
import atexit
import contextlib
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

from ..connection.transports import TransportKind
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
    TRIGCmd,
    WAITCmd,
)
from ..protocol.wire import Message
from .async_client import AsyncDobotClient

T = TypeVar("T")


# Persistent background event loop for sync wrapper
_SYNC_LOOP: asyncio.AbstractEventLoop | None = None
_SYNC_THREAD: threading.Thread | None = None
_SYNC_LOOP_READY = threading.Event()


def _loop_worker(loop: asyncio.AbstractEventLoop) -> None:
    asyncio.set_event_loop(loop)
    _SYNC_LOOP_READY.set()
    loop.run_forever()


def _stop_sync_loop() -> None:
    global _SYNC_LOOP, _SYNC_THREAD
    if _SYNC_LOOP is not None:
        # loop may already be closed at interpreter shutdown
        with contextlib.suppress(RuntimeError):
            _SYNC_LOOP.call_soon_threadsafe(_SYNC_LOOP.stop)
        _SYNC_LOOP = None
        _SYNC_THREAD = None


def _ensure_sync_loop() -> None:
    """Start a persistent background event loop if not started yet."""
    global _SYNC_LOOP, _SYNC_THREAD
    if _SYNC_LOOP is None:
        _SYNC_LOOP = asyncio.new_event_loop()
        _SYNC_THREAD = threading.Thread(
            target=_loop_worker,
            args=(_SYNC_LOOP,),
            name="dobot-sync-loop",
            daemon=True,
        )
        _SYNC_THREAD.start()
        _SYNC_LOOP_READY.wait(timeout=1.0)
        atexit.register(_stop_sync_loop)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run an async coroutine to completion using a persistent background event loop.
    If a loop is already running in this thread, raise to avoid deadlocks.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop in this thread -> submit to persistent loop
        _ensure_sync_loop()
        assert _SYNC_LOOP is not None
        fut = asyncio.run_coroutine_threadsafe(coro, _SYNC_LOOP)
        return fut.result()
    coro.close()
    raise RuntimeError(
        "DobotClient was used while an event loop is running.\n"
        "Use AsyncDobotClient and `await` the method instead."
    )


class DobotClient:
    """
    Synchronous wrapper around AsyncDobotClient.
    All methods return concrete results (never coroutines).

    The connection lives on a shared background event loop, so several
    threads may call into one client; requests are serialized by the
    dispatcher in submission order.

        with DobotClient("/dev/ttyUSB0") as bot:
            index = bot.set_ptp_cmd(PTPCmd(PTPMode.MOVJ_XYZ, 200, 0, 50, 0))
            bot.wait_queued_complete(index)
    """

    # ---------- lifecycle ----------

    def __init__(
        self,
        endpoint: str | None = None,
        *,
        baudrate: int | None = None,
        kind: TransportKind | None = None,
        **options,
    ) -> None:
        self._inner = AsyncDobotClient(endpoint, baudrate=baudrate, kind=kind, **options)

    def connect(self) -> None:
        """Open the connection now instead of on first use."""
        _run(self._inner.connect())

    def close(self) -> None:
        """Close underlying AsyncDobotClient and release resources."""
        _run(self._inner.close())

    def __enter__(self) -> "DobotClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def async_client(self) -> AsyncDobotClient:
        """Access the underlying async client if you need it."""
        return self._inner

    @property
    def endpoint(self) -> str | None:
        return self._inner.endpoint

    @property
    def left_space(self) -> int:
        return self._inner.left_space

    @property
    def alarms(self) -> bytes:
        return self._inner.alarms

    def send(self, message: Message) -> Message:
        """Submit a raw message and return the raw reply."""
        return _run(self._inner.send(message))

    # ---------- device information ----------

    def set_device_sn(self, sn: str) -> None:
        return _run(self._inner.set_device_sn(sn))

    def get_device_sn(self) -> str:
        return _run(self._inner.get_device_sn())

    def set_device_name(self, name: str) -> None:
        return _run(self._inner.set_device_name(name))

    def get_device_name(self) -> str:
        return _run(self._inner.get_device_name())

    def get_device_version(self) -> DeviceVersion:
        return _run(self._inner.get_device_version())

    def set_device_with_l(self, is_with_l: bool, version: int = 0) -> int:
        return _run(self._inner.set_device_with_l(is_with_l, version))

    def get_device_with_l(self) -> bool:
        return _run(self._inner.get_device_with_l())

    def get_device_time(self) -> int:
        return _run(self._inner.get_device_time())

    def get_device_info(self) -> DeviceCountInfo:
        return _run(self._inner.get_device_info())

    # ---------- pose ----------

    def get_pose(self) -> Pose:
        """Current Cartesian pose and joint angles."""
        return _run(self._inner.get_pose())

    def reset_pose(self, manual: bool, rear_arm_angle: float, front_arm_angle: float) -> None:
        return _run(self._inner.reset_pose(manual, rear_arm_angle, front_arm_angle))

    def get_kinematics(self) -> Kinematics:
        return _run(self._inner.get_kinematics())

    def get_pose_l(self) -> float:
        return _run(self._inner.get_pose_l())

    # ---------- alarms ----------

    def get_alarms_state(self) -> bytes:
        return _run(self._inner.get_alarms_state())

    def clear_all_alarms_state(self) -> None:
        """Clear every alarm so commands are accepted again."""
        return _run(self._inner.clear_all_alarms_state())

    def active_alarms(self) -> list[tuple[int, int]]:
        return _run(self._inner.active_alarms())

    # ---------- HOME ----------

    def set_home_params(self, params: HOMEParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_home_params(params, is_queued))

    def get_home_params(self) -> HOMEParams:
        return _run(self._inner.get_home_params())

    def set_home_cmd(self, cmd: HOMECmd | None = None, is_queued: bool = True) -> int | None:
        return _run(self._inner.set_home_cmd(cmd, is_queued))

    def home(self, wait: bool = True, timeout: float | None = None) -> int:
        """Queue a homing run.

        Args:
            wait: If True, block until the device has executed it.
            timeout: Seconds to wait before raising TimeoutError.

        Returns:
            The queue index of the homing command.
        """
        return _run(self._inner.home(wait=wait, timeout=timeout))

    def set_auto_leveling_cmd(self, cmd: AutoLevelingCmd, is_queued: bool = True) -> int | None:
        return _run(self._inner.set_auto_leveling_cmd(cmd, is_queued))

    def get_auto_leveling_result(self) -> float:
        return _run(self._inner.get_auto_leveling_result())

    # ---------- handheld teaching ----------

    def set_hht_trig_mode(self, mode: HHTTrigMode) -> None:
        return _run(self._inner.set_hht_trig_mode(mode))

    def get_hht_trig_mode(self) -> HHTTrigMode:
        return _run(self._inner.get_hht_trig_mode())

    def set_hht_trig_output_enabled(self, enabled: bool) -> None:
        return _run(self._inner.set_hht_trig_output_enabled(enabled))

    def get_hht_trig_output_enabled(self) -> bool:
        return _run(self._inner.get_hht_trig_output_enabled())

    def get_hht_trig_output(self) -> bool:
        return _run(self._inner.get_hht_trig_output())

    # ---------- arm orientation / end effector ----------

    def set_arm_orientation(self, orientation: ArmOrientation, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_arm_orientation(orientation, is_queued))

    def get_arm_orientation(self) -> ArmOrientation:
        return _run(self._inner.get_arm_orientation())

    def set_end_effector_params(self, params: EndEffectorParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_end_effector_params(params, is_queued))

    def get_end_effector_params(self) -> EndEffectorParams:
        return _run(self._inner.get_end_effector_params())

    def set_end_effector_laser(self, enable_ctrl: bool, on: bool, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_end_effector_laser(enable_ctrl, on, is_queued))

    def get_end_effector_laser(self) -> tuple[bool, bool]:
        return _run(self._inner.get_end_effector_laser())

    def set_end_effector_suction_cup(self, enable_ctrl: bool, suck: bool, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_end_effector_suction_cup(enable_ctrl, suck, is_queued))

    def get_end_effector_suction_cup(self) -> tuple[bool, bool]:
        return _run(self._inner.get_end_effector_suction_cup())

    def set_end_effector_gripper(self, enable_ctrl: bool, grip: bool, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_end_effector_gripper(enable_ctrl, grip, is_queued))

    def get_end_effector_gripper(self) -> tuple[bool, bool]:
        return _run(self._inner.get_end_effector_gripper())

    # ---------- JOG ----------

    def set_jog_joint_params(self, params: JOGJointParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_jog_joint_params(params, is_queued))

    def get_jog_joint_params(self) -> JOGJointParams:
        return _run(self._inner.get_jog_joint_params())

    def set_jog_coordinate_params(self, params: JOGCoordinateParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_jog_coordinate_params(params, is_queued))

    def get_jog_coordinate_params(self) -> JOGCoordinateParams:
        return _run(self._inner.get_jog_coordinate_params())

    def set_jog_l_params(self, params: JOGLParams) -> None:
        return _run(self._inner.set_jog_l_params(params))

    def get_jog_l_params(self) -> JOGLParams:
        return _run(self._inner.get_jog_l_params())

    def set_jog_common_params(self, params: JOGCommonParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_jog_common_params(params, is_queued))

    def get_jog_common_params(self) -> JOGCommonParams:
        return _run(self._inner.get_jog_common_params())

    def set_jog_cmd(self, cmd: JOGCmd, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_jog_cmd(cmd, is_queued))

    # ---------- PTP ----------

    def set_ptp_joint_params(self, params: PTPJointParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_ptp_joint_params(params, is_queued))

    def get_ptp_joint_params(self) -> PTPJointParams:
        return _run(self._inner.get_ptp_joint_params())

    def set_ptp_coordinate_params(self, params: PTPCoordinateParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_ptp_coordinate_params(params, is_queued))

    def get_ptp_coordinate_params(self) -> PTPCoordinateParams:
        return _run(self._inner.get_ptp_coordinate_params())

    def set_ptp_l_params(self, params: PTPLParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_ptp_l_params(params, is_queued))

    def get_ptp_l_params(self) -> PTPLParams:
        return _run(self._inner.get_ptp_l_params())

    def set_ptp_jump_params(self, params: PTPJumpParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_ptp_jump_params(params, is_queued))

    def get_ptp_jump_params(self) -> PTPJumpParams:
        return _run(self._inner.get_ptp_jump_params())

    def set_ptp_jump2_params(self, params: PTPJump2Params, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_ptp_jump2_params(params, is_queued))

    def get_ptp_jump2_params(self) -> PTPJump2Params:
        return _run(self._inner.get_ptp_jump2_params())

    def set_ptp_common_params(self, params: PTPCommonParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_ptp_common_params(params, is_queued))

    def get_ptp_common_params(self) -> PTPCommonParams:
        return _run(self._inner.get_ptp_common_params())

    def set_ptp_cmd(self, cmd: PTPCmd, is_queued: bool = True) -> int | None:
        """Point-to-point move; returns the queue index when queued."""
        return _run(self._inner.set_ptp_cmd(cmd, is_queued))

    def set_ptp_with_l_cmd(self, cmd: PTPWithLCmd, is_queued: bool = True) -> int | None:
        return _run(self._inner.set_ptp_with_l_cmd(cmd, is_queued))

    def set_ptp_po_cmd(self, cmd: PTPCmd, outputs: list[ParallelOutputCmd]) -> int:
        return _run(self._inner.set_ptp_po_cmd(cmd, outputs))

    def set_ptp_po_with_l_cmd(self, cmd: PTPWithLCmd, outputs: list[ParallelOutputCmd]) -> int:
        return _run(self._inner.set_ptp_po_with_l_cmd(cmd, outputs))

    # ---------- CP / ARC ----------

    def set_cp_params(self, params: CPParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_cp_params(params, is_queued))

    def get_cp_params(self) -> CPParams:
        return _run(self._inner.get_cp_params())

    def set_cp_cmd(self, cmd: CPCmd, is_queued: bool = True) -> int | None:
        return _run(self._inner.set_cp_cmd(cmd, is_queued))

    def set_cp_le_cmd(self, cmd: CPLECmd, is_queued: bool = True) -> int | None:
        return _run(self._inner.set_cp_le_cmd(cmd, is_queued))

    def set_cp_r_hold_enable(self, enabled: bool) -> None:
        return _run(self._inner.set_cp_r_hold_enable(enabled))

    def get_cp_r_hold_enable(self) -> bool:
        return _run(self._inner.get_cp_r_hold_enable())

    def set_cp_common_params(self, params: CPCommonParams, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_cp_common_params(params, is_queued))

    def get_cp_common_params(self) -> CPCommonParams:
        return _run(self._inner.get_cp_common_params())

    def set_arc_params(self, params: ARCParams) -> int:
        return _run(self._inner.set_arc_params(params))

    def get_arc_params(self) -> ARCParams:
        return _run(self._inner.get_arc_params())

    def set_arc_cmd(self, cmd: ARCCmd) -> int:
        return _run(self._inner.set_arc_cmd(cmd))

    def set_circle_cmd(self, cmd: CircleCmd) -> int:
        return _run(self._inner.set_circle_cmd(cmd))

    def set_arc_common_params(self, params: ARCCommonParams) -> int:
        return _run(self._inner.set_arc_common_params(params))

    def get_arc_common_params(self) -> ARCCommonParams:
        return _run(self._inner.get_arc_common_params())

    # ---------- WAIT / TRIG ----------

    def set_wait_cmd(self, cmd: WAITCmd | int) -> int:
        return _run(self._inner.set_wait_cmd(cmd))

    def set_trig_cmd(self, cmd: TRIGCmd, is_queued: bool = True) -> int | None:
        return _run(self._inner.set_trig_cmd(cmd, is_queued))

    # ---------- extended IO ----------

    def set_io_multiplexing(self, params: IOMultiplexing, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_io_multiplexing(params, is_queued))

    def get_io_multiplexing(self, address: int) -> IOMultiplexing:
        return _run(self._inner.get_io_multiplexing(address))

    def set_io_do(self, params: IODO, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_io_do(params, is_queued))

    def get_io_do(self, address: int) -> IODO:
        return _run(self._inner.get_io_do(address))

    def set_io_pwm(self, params: IOPWM, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_io_pwm(params, is_queued))

    def get_io_pwm(self, address: int) -> IOPWM:
        return _run(self._inner.get_io_pwm(address))

    def get_io_di(self, address: int) -> IODI:
        return _run(self._inner.get_io_di(address))

    def get_io_adc(self, address: int) -> IOADC:
        return _run(self._inner.get_io_adc(address))

    def set_e_motor(self, params: EMotor, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_e_motor(params, is_queued))

    def set_e_motor_s(self, params: EMotorS, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_e_motor_s(params, is_queued))

    def set_color_sensor(self, enabled: bool, port: ColorPort, version: int = 0) -> None:
        return _run(self._inner.set_color_sensor(enabled, port, version))

    def get_color_sensor(self) -> ColorReading:
        return _run(self._inner.get_color_sensor())

    def set_infrared_sensor(self, enabled: bool, port: InfraredPort, version: int = 0) -> None:
        return _run(self._inner.set_infrared_sensor(enabled, port, version))

    def get_infrared_sensor(self, port: InfraredPort) -> int:
        return _run(self._inner.get_infrared_sensor(port))

    # ---------- calibration ----------

    def set_angle_sensor_static_error(self, rear_arm_error: float, front_arm_error: float) -> None:
        return _run(self._inner.set_angle_sensor_static_error(rear_arm_error, front_arm_error))

    def get_angle_sensor_static_error(self) -> tuple[float, float]:
        return _run(self._inner.get_angle_sensor_static_error())

    def set_angle_sensor_coef(self, rear_arm_coef: float, front_arm_coef: float) -> None:
        return _run(self._inner.set_angle_sensor_coef(rear_arm_coef, front_arm_coef))

    def get_angle_sensor_coef(self) -> tuple[float, float]:
        return _run(self._inner.get_angle_sensor_coef())

    def set_base_decoder_static_error(self, error: float) -> None:
        return _run(self._inner.set_base_decoder_static_error(error))

    def get_base_decoder_static_error(self) -> float:
        return _run(self._inner.get_base_decoder_static_error())

    def set_lr_hand_calibrate_value(self, value: float) -> None:
        return _run(self._inner.set_lr_hand_calibrate_value(value))

    def get_lr_hand_calibrate_value(self) -> float:
        return _run(self._inner.get_lr_hand_calibrate_value())

    # ---------- WIFI ----------

    def set_wifi_config_mode(self, enabled: bool) -> None:
        return _run(self._inner.set_wifi_config_mode(enabled))

    def get_wifi_config_mode(self) -> bool:
        return _run(self._inner.get_wifi_config_mode())

    def set_wifi_ssid(self, ssid: str) -> None:
        return _run(self._inner.set_wifi_ssid(ssid))

    def get_wifi_ssid(self) -> str:
        return _run(self._inner.get_wifi_ssid())

    def set_wifi_password(self, password: str) -> None:
        return _run(self._inner.set_wifi_password(password))

    def get_wifi_password(self) -> str:
        return _run(self._inner.get_wifi_password())

    def set_wifi_ip_address(self, address: str, dhcp: bool = False) -> None:
        return _run(self._inner.set_wifi_ip_address(address, dhcp))

    def get_wifi_ip_address(self) -> tuple[bool, str]:
        return _run(self._inner.get_wifi_ip_address())

    def set_wifi_netmask(self, netmask: str) -> None:
        return _run(self._inner.set_wifi_netmask(netmask))

    def get_wifi_netmask(self) -> str:
        return _run(self._inner.get_wifi_netmask())

    def set_wifi_gateway(self, gateway: str) -> None:
        return _run(self._inner.set_wifi_gateway(gateway))

    def get_wifi_gateway(self) -> str:
        return _run(self._inner.get_wifi_gateway())

    def set_wifi_dns(self, dns: str) -> None:
        return _run(self._inner.set_wifi_dns(dns))

    def get_wifi_dns(self) -> str:
        return _run(self._inner.get_wifi_dns())

    def get_wifi_connect_status(self) -> bool:
        return _run(self._inner.get_wifi_connect_status())

    # ---------- lost step ----------

    def set_lost_step_params(self, threshold: float, is_queued: bool = False) -> int | None:
        return _run(self._inner.set_lost_step_params(threshold, is_queued))

    def set_lost_step_cmd(self, is_queued: bool = True) -> int | None:
        return _run(self._inner.set_lost_step_cmd(is_queued))

    # ---------- queued command control ----------

    def set_queued_cmd_start_exec(self) -> None:
        return _run(self._inner.set_queued_cmd_start_exec())

    def set_queued_cmd_stop_exec(self) -> None:
        return _run(self._inner.set_queued_cmd_stop_exec())

    def set_queued_cmd_force_stop_exec(self) -> None:
        return _run(self._inner.set_queued_cmd_force_stop_exec())

    def set_queued_cmd_start_download(self, total_loop: int, line_per_loop: int) -> None:
        return _run(self._inner.set_queued_cmd_start_download(total_loop, line_per_loop))

    def set_queued_cmd_stop_download(self) -> None:
        return _run(self._inner.set_queued_cmd_stop_download())

    def set_queued_cmd_clear(self) -> None:
        return _run(self._inner.set_queued_cmd_clear())

    def get_queued_cmd_current_index(self) -> int:
        return _run(self._inner.get_queued_cmd_current_index())

    def get_queued_cmd_left_space(self) -> int:
        return _run(self._inner.get_queued_cmd_left_space())

    def get_queued_cmd_motion_finish(self) -> bool:
        return _run(self._inner.get_queued_cmd_motion_finish())

    def wait_queued_complete(
        self,
        index: int,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> None:
        """Block until the device has executed queued command ``index``."""
        return _run(self._inner.wait_queued_complete(index, timeout=timeout, poll_interval=poll_interval))
