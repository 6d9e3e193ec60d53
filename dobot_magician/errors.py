"""
Exception types raised by the Dobot Magician driver.

Only ``TransportError`` is sticky: once raised by the dispatcher, every later
submission fails with ``ClosedError`` chained to it. The rest are scoped to a
single submission.
"""


class DobotError(Exception):
    """Base class for all driver errors."""


class TransportError(DobotError, OSError):
    """The underlying serial port or socket failed or reached end of stream."""


class ClosedError(DobotError):
    """The connection was closed explicitly or after a fatal transport error."""


class OversizeError(DobotError, ValueError):
    """A payload does not fit in a single frame."""


class CommandTimeout(DobotError, TimeoutError):
    """No correlated reply arrived within the allowed attempts."""

    def __init__(self, message_id: int, attempts: int) -> None:
        super().__init__(
            f"No reply to command id={message_id} after {attempts} attempt(s)"
        )
        self.message_id = message_id
        self.attempts = attempts


class NoQueueSpace(DobotError):
    """The device queued-command FIFO reported zero free slots."""


class AlarmRaised(DobotError):
    """The device alarm bitmap was nonzero when a command was about to be sent."""

    def __init__(self, group: int, code: int) -> None:
        super().__init__(f"alarm: {group}-{code:#04x}")
        self.group = group
        self.code = code


class InvalidResponse(DobotError, ValueError):
    """A reply payload was shorter than the command's layout requires."""
