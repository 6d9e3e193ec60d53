"""
Transport selection from an endpoint string.

- ``/dev/...`` opens a serial port
- ``mock://`` selects the in-memory simulated device
- anything else is ``host:port`` for UDP

An explicit ``kind`` overrides the inference, which is how Windows ``COMx``
port names are opened.
"""

import logging
from typing import Literal, Protocol

from .mock_transport import MockTransport
from .serial_transport import SerialTransport
from .udp_transport import UDPTransport

logger = logging.getLogger(__name__)

TransportKind = Literal["serial", "udp", "mock"]

MOCK_PREFIX = "mock://"


class Transport(Protocol):
    """Raw byte stream shared by the receiver (read) and dispatcher (write)."""

    @property
    def is_open(self) -> bool: ...

    async def open(self) -> None: ...

    async def read(self) -> bytes: ...

    async def write(self, data: bytes) -> None: ...

    async def close(self) -> None: ...


def infer_kind(endpoint: str) -> TransportKind:
    if endpoint.startswith(MOCK_PREFIX):
        return "mock"
    if endpoint.startswith("/dev/"):
        return "serial"
    return "udp"


def split_host_port(endpoint: str) -> tuple[str, int]:
    """
    Parse ``host:port``.

    Raises:
        ValueError: If the port is missing or not a valid UDP port
    """
    host, sep, port_s = endpoint.rpartition(":")
    if not sep or not host:
        raise ValueError(f"UDP endpoint must be host:port, got {endpoint!r}")
    try:
        port = int(port_s)
    except ValueError:
        raise ValueError(f"invalid UDP port in {endpoint!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"UDP port out of range in {endpoint!r}")
    return host.strip("[]"), port


def create_transport(
    endpoint: str,
    baudrate: int | None = None,
    kind: TransportKind | None = None,
) -> Transport:
    """
    Build (but do not open) the transport for ``endpoint``.

    Args:
        endpoint: Serial device path, ``host:port`` or ``mock://``
        baudrate: Serial baud rate, ignored for other kinds
        kind: Force the transport kind instead of inferring it

    Returns:
        An unopened transport instance
    """
    endpoint = endpoint.strip()
    if not endpoint:
        raise ValueError("empty endpoint")
    kind = kind or infer_kind(endpoint)
    logger.debug("Creating %s transport for %s", kind, endpoint)

    if kind == "serial":
        return SerialTransport(endpoint, baudrate=baudrate)
    if kind == "udp":
        host, port = split_host_port(endpoint)
        return UDPTransport(host, port)
    if kind == "mock":
        return MockTransport()
    raise ValueError(f"unknown transport kind {kind!r}")


async def create_and_open_transport(
    endpoint: str,
    baudrate: int | None = None,
    kind: TransportKind | None = None,
) -> Transport:
    transport = create_transport(endpoint, baudrate=baudrate, kind=kind)
    await transport.open()
    return transport
