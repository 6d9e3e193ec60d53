"""Shared fixtures: a connection running over the simulated device."""

import pytest
import pytest_asyncio

from dobot_magician.client.async_client import AsyncDobotClient
from dobot_magician.connection import Connection
from dobot_magician.connection.transports import MockDevice, MockTransport


@pytest.fixture
def device() -> MockDevice:
    return MockDevice()


@pytest.fixture
def transport(device) -> MockTransport:
    return MockTransport(device)


@pytest_asyncio.fixture
async def connection(transport):
    """Open connection with short timeouts and alarm polling disabled."""
    await transport.open()
    conn = Connection(transport, reply_timeout=0.05, max_attempts=3, alarm_poll_s=0)
    conn.start()
    try:
        yield conn
    finally:
        await conn.close()


@pytest_asyncio.fixture
async def client(connection):
    bot = AsyncDobotClient(connection=connection)
    try:
        yield bot
    finally:
        await bot.close()


@pytest.fixture
def endpoint_file(tmp_path, monkeypatch):
    """Redirect endpoint persistence to a temporary file."""
    import dobot_magician.config as cfg

    path = tmp_path / "endpoint.txt"
    monkeypatch.setattr(cfg, "ENDPOINT_FILE", str(path))
    monkeypatch.delenv("DOBOT_ENDPOINT", raising=False)
    return path
