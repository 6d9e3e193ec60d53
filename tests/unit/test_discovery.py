"""
Unit tests for broadcast address selection.
"""

import socket
from types import SimpleNamespace

import pytest

from dobot_magician.client import discovery


def addr(family, address, netmask=None, broadcast=None):
    return SimpleNamespace(family=family, address=address, netmask=netmask, broadcast=broadcast, ptp=None)


@pytest.fixture
def interfaces(monkeypatch):
    addrs = {
        "lo": [addr(socket.AF_INET, "127.0.0.1", "255.0.0.0")],
        "eth0": [
            addr(socket.AF_INET, "192.168.1.23", "255.255.255.0", "192.168.1.255"),
            addr(socket.AF_INET6, "fe80::1", "ffff:ffff:ffff:ffff::"),
        ],
        "wlan0": [addr(socket.AF_INET, "10.20.30.40", "255.255.0.0")],
        "eth1": [addr(socket.AF_INET, "172.16.0.5", "255.255.255.0", "172.16.0.255")],
    }
    stats = {
        "lo": SimpleNamespace(isup=True),
        "eth0": SimpleNamespace(isup=True),
        "wlan0": SimpleNamespace(isup=True),
        "eth1": SimpleNamespace(isup=False),
    }
    monkeypatch.setattr(discovery.psutil, "net_if_addrs", lambda: addrs)
    monkeypatch.setattr(discovery.psutil, "net_if_stats", lambda: stats)


def test_broadcast_addresses(interfaces):
    assert discovery.broadcast_addresses() == ["192.168.1.255", "10.20.255.255"]


def test_no_interfaces(monkeypatch):
    monkeypatch.setattr(discovery.psutil, "net_if_addrs", lambda: {})
    monkeypatch.setattr(discovery.psutil, "net_if_stats", lambda: {})
    assert discovery.broadcast_addresses() == []
