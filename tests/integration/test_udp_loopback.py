"""
End-to-end over real UDP sockets on the loopback interface.

A datagram server wraps the simulated device so the client runs its UDP
transport, receiver and dispatcher exactly as against a WIFI module.
"""

import asyncio

import pytest
import pytest_asyncio

from dobot_magician.client.async_client import AsyncDobotClient
from dobot_magician.connection.transports import MockDevice
from dobot_magician.errors import CommandTimeout
from dobot_magician.protocol.types import PTPCmd, PTPMode
from dobot_magician.protocol.wire import FrameDecoder, ProtocolId, encode_frame


class FakeWifiModule(asyncio.DatagramProtocol):
    def __init__(self, device: MockDevice):
        self.device = device
        self.decoder = FrameDecoder()
        self.transport: asyncio.DatagramTransport | None = None
        self.split_replies = False

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        for request in self.decoder.feed(data):
            reply = self.device.handle(request)
            if reply is None:
                continue
            frame = encode_frame(reply)
            if self.split_replies:
                # Frames may straddle datagrams
                self.transport.sendto(frame[:4], addr)
                self.transport.sendto(frame[4:], addr)
            else:
                self.transport.sendto(frame, addr)


@pytest_asyncio.fixture
async def wifi_module():
    loop = asyncio.get_running_loop()
    module = FakeWifiModule(MockDevice())
    transport, _ = await loop.create_datagram_endpoint(
        lambda: module, local_addr=("127.0.0.1", 0)
    )
    host, port = transport.get_extra_info("sockname")[:2]
    try:
        yield module, f"{host}:{port}"
    finally:
        transport.close()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_queued_motion_over_udp(wifi_module):
    module, endpoint = wifi_module
    async with AsyncDobotClient(endpoint, reply_timeout=0.5, alarm_poll_s=0.05) as bot:
        assert (await bot.get_pose()).z == 50.0
        index = await bot.set_ptp_cmd(PTPCmd(PTPMode.MOVJ_XYZ, 220.0, 10.0, 40.0, 0.0))
        await bot.wait_queued_complete(index, timeout=2.0, poll_interval=0.01)

        assert module.device.current_index == index
        assert bot.left_space == 31
        # Alarm polling runs alongside the caller's requests
        await asyncio.sleep(0.12)
        assert module.device.requests_for(ProtocolId.ALARMS_STATE)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_split_datagrams_reassembled(wifi_module):
    module, endpoint = wifi_module
    module.split_replies = True
    async with AsyncDobotClient(endpoint, reply_timeout=0.5, alarm_poll_s=0) as bot:
        assert await bot.get_device_name() == "mock-magician"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_silent_device_times_out(wifi_module):
    module, endpoint = wifi_module
    module.device.silent_ids.add(ProtocolId.GET_POSE)
    async with AsyncDobotClient(endpoint, reply_timeout=0.05, max_attempts=2, alarm_poll_s=0) as bot:
        with pytest.raises(CommandTimeout):
            await bot.get_pose()
        assert len(module.device.requests_for(ProtocolId.GET_POSE)) == 2
        assert await bot.get_device_name() == "mock-magician"
