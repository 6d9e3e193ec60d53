"""
Serial transport implementation for the Dobot Magician.

The arm enumerates as a USB CDC/CP210x serial device and speaks 8N1 at
115200 baud by default. pyserial is blocking, so reads and writes run on the
default executor; the read side polls with a short timeout so that ``close``
can interrupt a pending read.
"""

import asyncio
import logging

import serial

from ... import config as cfg
from ...config import TRACE
from ...errors import TransportError

logger = logging.getLogger(__name__)


class SerialTransport:
    """
    Byte stream over a serial port.

    This class handles:
    - Opening the port with the fixed 8N1 framing
    - Blocking reads offloaded to a worker thread
    - Frame writes
    - Idempotent close
    """

    def __init__(
        self,
        port: str,
        baudrate: int | None = None,
        timeout: float = cfg.SERIAL_READ_POLL_S,
    ):
        """
        Initialize the serial transport.

        Args:
            port: Serial port name (e.g., 'COM5', '/dev/ttyUSB0')
            baudrate: Baud rate, defaults to ``config.SERIAL_BAUD``
            timeout: Read poll interval in seconds
        """
        self.port = port
        self.baudrate = baudrate or cfg.SERIAL_BAUD
        self.timeout = timeout
        self.serial: serial.Serial | None = None
        self._closing = False

    def __repr__(self) -> str:
        return f"SerialTransport(port={self.port!r}, baudrate={self.baudrate})"

    @property
    def is_open(self) -> bool:
        return self.serial is not None and self.serial.is_open and not self._closing

    async def open(self) -> None:
        """
        Open the serial port.

        Raises:
            TransportError: If the port cannot be opened
        """
        try:
            self.serial = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.timeout,
            )
        except (serial.SerialException, ValueError) as e:
            logger.error(f"Serial connection error: {e}")
            self.serial = None
            raise TransportError(f"cannot open serial port {self.port}: {e}") from e
        logger.info(f"Connected to serial port: {self.port} @ {self.baudrate} baud")

    def _read_blocking(self) -> bytes:
        while not self._closing:
            ser = self.serial
            if ser is None:
                break
            try:
                data = ser.read(ser.in_waiting or 1)
            except (serial.SerialException, OSError, TypeError) as e:
                # pyserial raises TypeError when the fd is closed under it
                if self._closing:
                    break
                raise TransportError(f"serial read failed on {self.port}: {e}") from e
            if data:
                return data
        return b""

    async def read(self) -> bytes:
        """Wait for the next chunk of bytes. Returns ``b""`` once closed."""
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._read_blocking)
        if data:
            logger.log(TRACE, "serial_rx len=%d", len(data))
        return data

    def _write_blocking(self, data: bytes) -> None:
        ser = self.serial
        if ser is None or self._closing:
            raise TransportError(f"serial port {self.port} is closed")
        try:
            ser.write(data)
            ser.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"serial write failed on {self.port}: {e}") from e

    async def write(self, data: bytes) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_blocking, data)

    async def close(self) -> None:
        """Close the serial port. Safe to call multiple times."""
        if self._closing:
            return
        self._closing = True
        ser, self.serial = self.serial, None
        if ser is None:
            return
        try:
            if ser.is_open:
                ser.close()
            logger.info(f"Disconnected from serial port: {self.port}")
        except (serial.SerialException, OSError) as e:
            logger.error(f"Error closing serial port: {e}")
