import errno
import time
from collections import deque

import pytest
from scapy.layers.inet import IP, TCP, UDP
from scapy.layers.l2 import ARP, Ether

from netsniff.config import DaemonConfig
from netsniff.core.sources.base import PacketSource


def ip_packet(src: str, dst: str = "10.0.0.1", udp: bool = False):
    l4 = UDP(sport=5353, dport=53) if udp else TCP(sport=40000, dport=80)
    return Ether(src="02:00:00:00:00:01", dst="02:00:00:00:00:02") / IP(src=src, dst=dst) / l4


def arp_packet():
    return Ether() / ARP(psrc="10.0.0.7", pdst="10.0.0.1")


class FakeSource(PacketSource):
    """In-memory stand-in for the raw capture socket."""

    def __init__(self, packets=(), *, open_error=None, recv_errors=0, interface=""):
        self.interface = interface
        self.queue = deque(packets)
        self.open_error = open_error
        self.recv_errors = recv_errors
        self.opened = False
        self.closed = False

    def feed(self, *packets):
        self.queue.extend(packets)

    def open(self):
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    def recv(self, timeout):
        if self.recv_errors:
            self.recv_errors -= 1
            raise OSError(errno.ENETDOWN, "Network is down")
        if self.queue:
            return self.queue.popleft()
        time.sleep(min(timeout, 0.01))
        return None

    def close(self):
        self.closed = True


class SourceFactory:
    """Hands out FakeSources and remembers them, like the live factory would."""

    def __init__(self, **source_kwargs):
        self.source_kwargs = source_kwargs
        self.created = []

    def __call__(self, interface):
        src = FakeSource(interface=interface, **self.source_kwargs)
        self.created.append(src)
        return src

    @property
    def last(self) -> FakeSource:
        return self.created[-1]


def wait_until(predicate, timeout=5.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def config(tmp_path):
    return DaemonConfig(
        socket_path=str(tmp_path / "ctl.sock"),
        stats_dir=tmp_path / "stats",
        interface="eth0",
        poll_interval=0.02,
        retry_delay=0.01,
        request_timeout=2.0,
    )


@pytest.fixture
def sources():
    return SourceFactory()
