"""
Central configuration for Dobot Magician tunables and shared constants.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

TRACE: int = 5
logging.addLevelName(TRACE, "TRACE")
# Add Logger.trace if missing
if not hasattr(logging.Logger, "trace"):

    def _trace(self, msg, *args, **kwargs):
        if self.isEnabledFor(TRACE):
            self._log(TRACE, msg, args, **kwargs)

    logging.Logger.trace = _trace  # type: ignore[attr-defined]
    logging.TRACE = TRACE  # type: ignore[attr-defined]

TRACE_ENABLED = str(os.getenv("DOBOT_TRACE", "0")).lower() in ("1", "true", "yes", "on")

logger = logging.getLogger(__name__)

# Serial link defaults (8N1 is fixed by the firmware)
SERIAL_BAUD: int = int(os.getenv("DOBOT_BAUDRATE", "115200"))
SERIAL_READ_POLL_S: float = 0.1

# Send-and-wait policy
REPLY_TIMEOUT_S: float = float(os.getenv("DOBOT_REPLY_TIMEOUT_S", "3.0"))
MAX_ATTEMPTS: int = max(1, int(os.getenv("DOBOT_MAX_ATTEMPTS", "3")))

# Alarm register polling period (seconds). 0 disables polling.
ALARM_POLL_S: float = float(os.getenv("DOBOT_ALARM_POLL_S", "0.1"))

# Bounded handoff channels between caller, dispatcher and receiver
RX_QUEUE_SIZE: int = int(os.getenv("DOBOT_RX_QUEUE_SIZE", "64"))
SUBMIT_QUEUE_SIZE: int = int(os.getenv("DOBOT_SUBMIT_QUEUE_SIZE", "64"))

# UDP receive buffer for a single datagram
UDP_BUFFER_SIZE: int = 1024

# Polling period used while waiting for a queued command to execute
QUEUED_POLL_S: float = 0.1

# Discovery (UDP broadcast)
DISCOVERY_LOCAL_PORT: int = 2046
DISCOVERY_PORT: int = 48899
DISCOVERY_KEYWORD: bytes = b"Who is Dobot?"
DISCOVERY_TIMEOUT_S: float = 5.0

# Endpoint persistence file stored in user config directory by default (cross-platform).
_default_endpoint_file = Path.home() / ".dobot_magician" / "endpoint.txt"
ENDPOINT_FILE: str = os.getenv("DOBOT_ENDPOINT_FILE", str(_default_endpoint_file))


def save_endpoint(endpoint: str) -> bool:
    """
    Save the default device endpoint to the persistent file.

    Args:
        endpoint: Serial device path or ``host:port`` string

    Returns:
        True if successful, False otherwise
    """
    try:
        path = Path(ENDPOINT_FILE)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(endpoint.strip())
        logger.info(f"Saved endpoint {endpoint} to {ENDPOINT_FILE}")
        return True
    except OSError as e:
        logger.error(f"Failed to save endpoint: {e}")
        return False


def load_endpoint() -> str | None:
    """
    Load the saved endpoint from file.

    Returns:
        Endpoint string if found, None otherwise
    """
    try:
        path = Path(ENDPOINT_FILE)
        if path.exists():
            endpoint = path.read_text().strip()
            if endpoint:
                logger.info(f"Loaded endpoint {endpoint} from {ENDPOINT_FILE}")
                return endpoint
    except OSError as e:
        logger.error(f"Failed to load endpoint: {e}")
    return None


def get_endpoint_with_fallback() -> str:
    """
    Resolve the device endpoint from environment or file.

    Priority:
      1) Environment variable DOBOT_ENDPOINT
      2) endpoint.txt (if present and non-empty)

    Returns:
      Endpoint string if available, otherwise an empty string "".
    """
    env_endpoint = os.getenv("DOBOT_ENDPOINT")
    if env_endpoint and env_endpoint.strip():
        endpoint = env_endpoint.strip()
        logger.info(f"Using endpoint from environment: {endpoint}")
        return endpoint

    saved = load_endpoint()
    if saved:
        return saved

    return ""
