"""
AsyncDobotClient against the simulated device.
"""

import asyncio
import struct

import pytest

from dobot_magician.client.async_client import AsyncDobotClient
from dobot_magician.errors import ClosedError, InvalidResponse
from dobot_magician.protocol.types import (
    ColorReading,
    EndEffectorParams,
    HOMEParams,
    InfraredPort,
    IODI,
    IODO,
    JOGLParams,
    ParallelOutputCmd,
    PTPCmd,
    PTPMode,
)
from dobot_magician.protocol.wire import ProtocolId


def ptp(x: float = 200.0) -> PTPCmd:
    return PTPCmd(PTPMode.MOVJ_XYZ, x, 0.0, 50.0, 0.0)


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_pose(self, client):
        pose = await client.get_pose()
        assert (pose.x, pose.y, pose.z, pose.r) == (200.0, 0.0, 50.0, 0.0)
        assert pose.joint_angle == (0.0, 30.0, 45.0, 0.0)

    @pytest.mark.asyncio
    async def test_device_identity(self, client):
        assert await client.get_device_sn() == "MOCK0000000001"
        assert await client.get_device_name() == "mock-magician"
        version = await client.get_device_version()
        assert (version.major, version.minor, version.revision) == (3, 7, 0)
        assert await client.get_device_time() == 123456
        info = await client.get_device_info()
        assert info.run_time == 3600

    @pytest.mark.asyncio
    async def test_queue_status(self, client):
        assert await client.get_queued_cmd_left_space() == 32
        assert await client.get_queued_cmd_current_index() == 0
        assert await client.get_queued_cmd_motion_finish() is True

    @pytest.mark.asyncio
    async def test_short_reply_raises_invalid_response(self, client, device):
        device.handlers[ProtocolId.GET_POSE] = lambda request: bytes(8)
        with pytest.raises(InvalidResponse):
            await client.get_pose()


class TestSetters:
    @pytest.mark.asyncio
    async def test_immediate_set_returns_none(self, client, device):
        params = HOMEParams(200.0, 10.0, 20.0, 0.0)
        assert await client.set_home_params(params) is None

        (request,) = device.requests_for(ProtocolId.HOME_PARAMS)
        assert request.rw and not request.is_queued
        assert await client.get_home_params() == params

    @pytest.mark.asyncio
    async def test_queued_set_returns_index(self, client):
        assert await client.set_ptp_cmd(ptp(200.0)) == 1
        assert await client.set_ptp_cmd(ptp(210.0)) == 2
        assert await client.set_end_effector_params(EndEffectorParams(59.7, 0.0, 0.0), is_queued=True) == 3

    @pytest.mark.asyncio
    async def test_queued_reply_without_index_is_invalid(self, client, device):
        device.handlers[ProtocolId.PTP_CMD] = lambda request: b"\x01\x02"
        with pytest.raises(InvalidResponse):
            await client.set_ptp_cmd(ptp())

    @pytest.mark.asyncio
    async def test_jog_l_params_is_immediate(self, client, device):
        await client.set_jog_l_params(JOGLParams(50.0, 50.0))
        (request,) = device.requests_for(ProtocolId.JOG_L_PARAMS)
        assert request.rw and not request.is_queued

    @pytest.mark.asyncio
    async def test_ptp_po_payload(self, client, device):
        outputs = [ParallelOutputCmd(50, 2, 1), ParallelOutputCmd(90, 2, 0)]
        index = await client.set_ptp_po_cmd(ptp(), outputs)

        (request,) = device.requests_for(ProtocolId.PTP_PO_CMD)
        assert request.is_queued
        assert request.params == ptp().pack() + b"\x02" + outputs[0].pack() + outputs[1].pack()
        assert index == 1

    @pytest.mark.asyncio
    async def test_wait_cmd_from_milliseconds(self, client, device):
        await client.set_wait_cmd(250)
        (request,) = device.requests_for(ProtocolId.WAIT_CMD)
        assert request.params == struct.pack("<I", 250)
        assert request.is_queued

    @pytest.mark.asyncio
    async def test_lost_step_detect_has_empty_payload(self, client, device):
        assert await client.set_lost_step_cmd() == 1
        (request,) = device.requests_for(ProtocolId.LOST_STEP_DETECT)
        assert request.params == b""

    @pytest.mark.asyncio
    async def test_device_name_round_trip(self, client, device):
        await client.set_device_name("left-arm")
        assert device.params[ProtocolId.DEVICE_NAME] == b"left-arm\x00"
        assert await client.get_device_name() == "left-arm"

    @pytest.mark.asyncio
    async def test_empty_string_rejected_before_sending(self, client, device):
        with pytest.raises(ValueError):
            await client.set_wifi_ssid("")
        assert device.requests_for(ProtocolId.WIFI_SSID) == []


class TestPeripherals:
    @pytest.mark.asyncio
    async def test_infrared_reads_port(self, client, device):
        device.infrared[InfraredPort.GP2] = 1
        assert await client.get_infrared_sensor(InfraredPort.GP2) == 1
        (request,) = device.requests_for(ProtocolId.IR_SWITCH)
        assert request.params == b"\x01"

    @pytest.mark.asyncio
    async def test_color_sensor(self, client, device):
        device.color = (10, 20, 30)
        assert await client.get_color_sensor() == ColorReading(10, 20, 30)

    @pytest.mark.asyncio
    async def test_digital_io(self, client):
        assert await client.get_io_di(3) == IODI(3, 0)
        await client.set_io_do(IODO(4, 1))
        assert await client.get_io_do(4) == IODO(4, 1)

    @pytest.mark.asyncio
    async def test_adc_reads_address(self, client):
        adc = await client.get_io_adc(6)
        assert (adc.address, adc.value) == (6, 0)

    @pytest.mark.asyncio
    async def test_end_effector_flags(self, client):
        await client.set_end_effector_suction_cup(True, True)
        assert await client.get_end_effector_suction_cup() == (True, True)

    @pytest.mark.asyncio
    async def test_calibration_pairs(self, client):
        await client.set_angle_sensor_static_error(1.5, -0.5)
        assert await client.get_angle_sensor_static_error() == (1.5, -0.5)
        await client.set_base_decoder_static_error(0.25)
        assert await client.get_base_decoder_static_error() == 0.25

    @pytest.mark.asyncio
    async def test_wifi_addresses(self, client):
        await client.set_wifi_ip_address("192.168.1.20", dhcp=True)
        assert await client.get_wifi_ip_address() == (True, "192.168.1.20")
        await client.set_wifi_netmask("255.255.255.0")
        assert await client.get_wifi_netmask() == "255.255.255.0"
        await client.set_wifi_ssid("lab")
        assert await client.get_wifi_ssid() == "lab"


class TestQueuedCompletion:
    @pytest.mark.asyncio
    async def test_wait_for_last_index(self, client, device):
        for x in (200.0, 210.0, 220.0):
            index = await client.set_ptp_cmd(ptp(x))
        await client.wait_queued_complete(index, poll_interval=0)
        assert device.current_index == 3

    @pytest.mark.asyncio
    async def test_wait_times_out(self, client, device):
        device.handlers[ProtocolId.QUEUED_CMD_CURRENT_INDEX] = lambda request: struct.pack("<Q", 0)
        with pytest.raises(asyncio.TimeoutError):
            await client.wait_queued_complete(5, timeout=0.1, poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_home_waits(self, client, device):
        index = await client.home()
        assert index == 1
        assert device.current_index == 1
        (request,) = device.requests_for(ProtocolId.HOME_CMD)
        assert request.is_queued

    @pytest.mark.asyncio
    async def test_clear_queue(self, client, device):
        await client.set_ptp_cmd(ptp())
        await client.set_queued_cmd_clear()
        assert await client.get_queued_cmd_current_index() == device.queue_index


class TestAlarms:
    @pytest.mark.asyncio
    async def test_active_alarms_and_clear(self, client, device):
        device.raise_alarm(1, 0x04)
        assert await client.active_alarms() == [(1, 0x04)]
        await client.clear_all_alarms_state()
        assert await client.active_alarms() == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_lazy_mock_endpoint(self):
        bot = AsyncDobotClient("mock://", reply_timeout=0.5, alarm_poll_s=0)
        assert bot.connection is None
        try:
            assert await bot.get_device_name() == "mock-magician"
            assert bot.connection is not None
        finally:
            await bot.close()
        await bot.close()
        with pytest.raises(ClosedError):
            await bot.get_pose()

    @pytest.mark.asyncio
    async def test_endpoint_from_environment(self, endpoint_file, monkeypatch):
        monkeypatch.setenv("DOBOT_ENDPOINT", "mock://")
        async with AsyncDobotClient(alarm_poll_s=0) as bot:
            assert bot.endpoint == "mock://"
            assert (await bot.get_pose()).x == 200.0

    @pytest.mark.asyncio
    async def test_missing_endpoint(self, endpoint_file):
        bot = AsyncDobotClient()
        with pytest.raises(ValueError):
            await bot.connect()
        await bot.close()

    @pytest.mark.asyncio
    async def test_enter_after_close(self, client):
        await client.close()
        with pytest.raises(ClosedError):
            async with client:
                pass
