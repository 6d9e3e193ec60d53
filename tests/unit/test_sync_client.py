"""
DobotClient drives the async client on the shared background loop.
"""

import threading

import pytest

from dobot_magician.client.sync_client import DobotClient
from dobot_magician.errors import ClosedError
from dobot_magician.protocol.types import PTPCmd, PTPMode


def test_context_manager_round_trip():
    with DobotClient("mock://", alarm_poll_s=0, reply_timeout=0.5) as bot:
        assert bot.get_pose().x == 200.0
        first = bot.set_ptp_cmd(PTPCmd(PTPMode.MOVL_XYZ, 210.0, 0.0, 40.0, 0.0))
        second = bot.set_ptp_cmd(PTPCmd(PTPMode.MOVL_XYZ, 220.0, 0.0, 40.0, 0.0))
        assert (first, second) == (1, 2)
        bot.wait_queued_complete(second, timeout=2.0, poll_interval=0)
        assert bot.get_queued_cmd_current_index() >= second


def test_calls_from_several_threads():
    errors: list[BaseException] = []
    names: list[str] = []

    with DobotClient("mock://", alarm_poll_s=0, reply_timeout=0.5) as bot:

        def worker():
            try:
                for _ in range(5):
                    names.append(bot.get_device_name())
            except BaseException as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5.0)

    assert errors == []
    assert names == ["mock-magician"] * 20


def test_use_after_close():
    bot = DobotClient("mock://", alarm_poll_s=0)
    bot.connect()
    bot.close()
    bot.close()
    with pytest.raises(ClosedError):
        bot.get_pose()


@pytest.mark.asyncio
async def test_refuses_running_loop():
    bot = DobotClient("mock://", alarm_poll_s=0)
    with pytest.raises(RuntimeError, match="AsyncDobotClient"):
        bot.get_pose()
