from .connector import Connection
from .dispatcher import Dispatcher, PendingRequest, RequestState
from .receiver import Receiver

__all__ = ["Connection", "Dispatcher", "PendingRequest", "RequestState", "Receiver"]
