from .async_client import AsyncDobotClient
from .discovery import broadcast_addresses, discover, discover_async
from .sync_client import DobotClient

__all__ = [
    "AsyncDobotClient",
    "DobotClient",
    "broadcast_addresses",
    "discover",
    "discover_async",
]
