"""
UDP transport implementation for the Dobot Magician.

The WiFi module forwards each frame as one datagram. The endpoint is
connected to the device address so only its datagrams are delivered.
"""

import asyncio
import logging
from typing import cast

from ... import config as cfg
from ...config import TRACE
from ...errors import TransportError

logger = logging.getLogger(__name__)

_EOF = b""


class _UDPClientProtocol(asyncio.DatagramProtocol):
    def __init__(self, rx_queue: asyncio.Queue[bytes]):
        self.rx_queue = rx_queue
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = cast(asyncio.DatagramTransport, transport)

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if not data:
            return
        try:
            self.rx_queue.put_nowait(data)
        except asyncio.QueueFull:
            logger.warning("UDP receive queue full, dropping %d byte datagram", len(data))

    def error_received(self, exc: Exception) -> None:
        # ICMP errors (port unreachable while the module boots) are not fatal
        logger.warning(f"UDP socket error: {exc}")

    def connection_lost(self, exc: Exception | None) -> None:
        try:
            self.rx_queue.put_nowait(_EOF)
        except asyncio.QueueFull:
            # Make room for the end-of-stream marker
            self.rx_queue.get_nowait()
            self.rx_queue.put_nowait(_EOF)


class UDPTransport:
    """
    Datagram endpoint connected to ``host:port``.

    This class handles:
    - Endpoint creation
    - Datagram reception through a bounded queue
    - Frame transmission
    - Idempotent close (pending reads observe end of stream)
    """

    def __init__(self, host: str, port: int, queue_size: int = cfg.RX_QUEUE_SIZE):
        """
        Initialize the UDP transport.

        Args:
            host: Device IP address or host name
            port: Device UDP port
            queue_size: Number of datagrams buffered before dropping
        """
        self.host = host
        self.port = port
        self._rx_queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=queue_size)
        self._transport: asyncio.DatagramTransport | None = None
        self._closed = False

    def __repr__(self) -> str:
        return f"UDPTransport(host={self.host!r}, port={self.port})"

    @property
    def is_open(self) -> bool:
        return self._transport is not None and not self._closed

    async def open(self) -> None:
        """
        Create the datagram endpoint.

        Raises:
            TransportError: If the endpoint cannot be created
        """
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _UDPClientProtocol(self._rx_queue),
                remote_addr=(self.host, self.port),
            )
        except OSError as e:
            logger.error(f"Failed to create UDP endpoint: {e}")
            raise TransportError(f"cannot reach {self.host}:{self.port}: {e}") from e
        self._transport = transport
        logger.info(f"UDP endpoint: remote={self.host}:{self.port}")

    async def read(self) -> bytes:
        """Wait for the next datagram. Returns ``b""`` once closed."""
        if self._closed and self._rx_queue.empty():
            return _EOF
        data = await self._rx_queue.get()
        if data:
            logger.log(TRACE, "udp_rx len=%d", len(data))
        return data

    async def write(self, data: bytes) -> None:
        if self._transport is None or self._closed:
            raise TransportError(f"UDP endpoint {self.host}:{self.port} is closed")
        try:
            self._transport.sendto(data)
        except OSError as e:
            raise TransportError(f"UDP send to {self.host}:{self.port} failed: {e}") from e

    async def close(self) -> None:
        """Close the endpoint. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        transport, self._transport = self._transport, None
        if transport is not None:
            await asyncio.sleep(0)
            transport.close()
            logger.info("UDP endpoint closed")
        elif not self._rx_queue.full():
            self._rx_queue.put_nowait(_EOF)
