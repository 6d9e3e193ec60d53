"""
Connection: an open transport with its receiver and dispatcher running.
"""

import logging

from ..protocol.wire import Message
from .dispatcher import Dispatcher
from .receiver import Receiver
from .transports import Transport, TransportKind, create_and_open_transport

logger = logging.getLogger(__name__)


class Connection:
    """
    Owns one transport and the two tasks that drive it.

    Use :meth:`open` to connect from an endpoint string, or construct from an
    already-open transport (the simulated device in tests).
    """

    def __init__(
        self,
        transport: Transport,
        *,
        reply_timeout: float | None = None,
        max_attempts: int | None = None,
        alarm_poll_s: float | None = None,
        rx_queue_size: int | None = None,
        submit_queue_size: int | None = None,
    ):
        self.transport = transport
        self.receiver = (
            Receiver(transport) if rx_queue_size is None else Receiver(transport, rx_queue_size)
        )
        self.dispatcher = Dispatcher(
            transport,
            self.receiver,
            reply_timeout=reply_timeout,
            max_attempts=max_attempts,
            alarm_poll_s=alarm_poll_s,
            submit_queue_size=submit_queue_size,
        )

    @classmethod
    async def open(
        cls,
        endpoint: str,
        baudrate: int | None = None,
        kind: TransportKind | None = None,
        **options,
    ) -> "Connection":
        """
        Open ``endpoint`` and start the connection tasks.

        Args:
            endpoint: ``/dev/...`` serial path, ``host:port`` or ``mock://``
            baudrate: Serial baud rate
            kind: Force ``"serial"``, ``"udp"`` or ``"mock"``
            **options: Forwarded to the constructor (timeouts, queue sizes)

        Raises:
            TransportError: If the transport cannot be opened
            ValueError: If the endpoint cannot be parsed
        """
        transport = await create_and_open_transport(endpoint, baudrate=baudrate, kind=kind)
        conn = cls(transport, **options)
        conn.start()
        logger.info(f"Connected to Dobot at {endpoint}")
        return conn

    def start(self) -> None:
        self.dispatcher.start()

    async def submit(self, message: Message) -> Message:
        return await self.dispatcher.submit(message)

    async def close(self) -> None:
        await self.dispatcher.close()

    @property
    def closed(self) -> bool:
        return self.dispatcher.closed

    @property
    def left_space(self) -> int:
        return self.dispatcher.left_space

    @property
    def alarms(self) -> bytes:
        return self.dispatcher.alarms

    async def __aenter__(self) -> "Connection":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
