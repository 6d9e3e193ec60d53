"""
Transport modules for the Dobot Magician driver.

This package provides the byte-stream implementations the connection runs
on: a serial port, a UDP endpoint, and an in-memory simulated device.
"""

from .mock_transport import MockDevice, MockTransport
from .serial_transport import SerialTransport
from .transport_factory import (
    Transport,
    TransportKind,
    create_and_open_transport,
    create_transport,
    infer_kind,
    split_host_port,
)
from .udp_transport import UDPTransport

__all__ = [
    "Transport",
    "TransportKind",
    "SerialTransport",
    "UDPTransport",
    "MockTransport",
    "MockDevice",
    "create_transport",
    "create_and_open_transport",
    "infer_kind",
    "split_host_port",
]
