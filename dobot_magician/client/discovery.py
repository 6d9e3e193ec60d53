"""
UDP broadcast discovery of Dobot Magician WIFI modules.
"""

import asyncio
import ipaddress
import logging
import socket

import psutil  # type: ignore[import-untyped]

from .. import config as cfg

logger = logging.getLogger(__name__)


def broadcast_addresses() -> list[str]:
    """Subnet broadcast address of every up, non-loopback IPv4 interface."""
    stats = psutil.net_if_stats()
    result: list[str] = []
    for name, addrs in psutil.net_if_addrs().items():
        st = stats.get(name)
        if st is None or not st.isup:
            continue
        for addr in addrs:
            if addr.family != socket.AF_INET or not addr.netmask:
                continue
            ip = ipaddress.IPv4Address(addr.address)
            if ip.is_loopback:
                continue
            bcast = addr.broadcast or str(
                ipaddress.IPv4Network(f"{addr.address}/{addr.netmask}", strict=False).broadcast_address
            )
            if bcast not in result:
                result.append(bcast)
    return result


def discover(
    timeout: float = cfg.DISCOVERY_TIMEOUT_S,
    *,
    targets: list[str] | None = None,
    port: int = cfg.DISCOVERY_PORT,
    local_port: int = cfg.DISCOVERY_LOCAL_PORT,
) -> list[tuple[str, int]]:
    """
    Broadcast the discovery keyword and collect device replies.

    A device answers with the text ``"ip:port"`` of its own address; replies
    that do not match their sender are ignored. Collection stops once no
    datagram arrives for ``timeout`` seconds.

    Args:
        timeout: Seconds to wait for each further reply
        targets: Addresses to send to (default: every interface broadcast)
        port: Device discovery port
        local_port: Local port the replies are sent back to

    Returns:
        List of (ip, port) device addresses in reply order
    """
    if targets is None:
        targets = broadcast_addresses()
    found: list[tuple[str, int]] = []
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("0.0.0.0", local_port))
        for target in targets:
            try:
                sock.sendto(cfg.DISCOVERY_KEYWORD, (target, port))
                logger.debug(f"Sent discovery to {target}:{port}")
            except OSError as e:
                logger.warning(f"Discovery send to {target} failed: {e}")

        sock.settimeout(timeout)
        while True:
            try:
                data, addr = sock.recvfrom(cfg.UDP_BUFFER_SIZE)
            except TimeoutError:
                break
            if not data:
                continue
            host, rport = addr[0], addr[1]
            if data.decode("ascii", errors="replace").strip() != f"{host}:{rport}":
                logger.debug(f"Ignoring discovery reply from {host}:{rport}: {data!r}")
                continue
            if (host, rport) not in found:
                logger.info(f"Found Dobot at {host}:{rport}")
                found.append((host, rport))
    return found


async def discover_async(
    timeout: float = cfg.DISCOVERY_TIMEOUT_S,
    *,
    targets: list[str] | None = None,
    port: int = cfg.DISCOVERY_PORT,
    local_port: int = cfg.DISCOVERY_LOCAL_PORT,
) -> list[tuple[str, int]]:
    """Run :func:`discover` in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, lambda: discover(timeout, targets=targets, port=port, local_port=local_port)
    )
