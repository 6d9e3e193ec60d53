"""
Dobot Magician Python Package

Async-first driver for the Dobot Magician desk arm over USB serial or its WIFI
module, with a sync wrapper and network discovery.

Key components:
- AsyncDobotClient: Async client exposing every protocol command
- DobotClient: Sync wrapper with automatic event loop handling
- discover: Find WIFI modules on the local networks
- Connection: Transport, receiver and request dispatcher for raw messages
"""

from ._version import __version__
from .client.async_client import AsyncDobotClient
from .client.discovery import discover
from .client.sync_client import DobotClient
from .connection import Connection
from .errors import (
    AlarmRaised,
    ClosedError,
    CommandTimeout,
    DobotError,
    InvalidResponse,
    NoQueueSpace,
    OversizeError,
    TransportError,
)
from .protocol.wire import Message, ProtocolId

__all__ = [
    "__version__",
    "AsyncDobotClient",
    "DobotClient",
    "discover",
    "Connection",
    "Message",
    "ProtocolId",
    "DobotError",
    "TransportError",
    "ClosedError",
    "OversizeError",
    "CommandTimeout",
    "NoQueueSpace",
    "AlarmRaised",
    "InvalidResponse",
]
