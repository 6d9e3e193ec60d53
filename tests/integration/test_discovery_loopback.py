"""
Discovery against fake WIFI modules answering on the loopback interface.
"""

import socket
import threading

import pytest

import dobot_magician.config as cfg
from dobot_magician.client.discovery import discover


class Responder:
    """Answers the discovery keyword once with ``reply(own_address)``."""

    def __init__(self, reply):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(2.0)
        self.address = self.sock.getsockname()
        self.reply = reply
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        try:
            data, addr = self.sock.recvfrom(1024)
        except TimeoutError:
            return
        if data == cfg.DISCOVERY_KEYWORD:
            self.sock.sendto(self.reply(self.address), addr)

    def close(self):
        self.thread.join(timeout=3.0)
        self.sock.close()


@pytest.mark.integration
def test_device_answering_with_its_address_is_found():
    responder = Responder(lambda a: f"{a[0]}:{a[1]}".encode())
    try:
        found = discover(0.3, targets=["127.0.0.1"], port=responder.address[1], local_port=0)
    finally:
        responder.close()
    assert found == [responder.address]


@pytest.mark.integration
def test_mismatched_reply_is_ignored():
    responder = Responder(lambda a: b"10.0.0.99:8899")
    try:
        found = discover(0.3, targets=["127.0.0.1"], port=responder.address[1], local_port=0)
    finally:
        responder.close()
    assert found == []
