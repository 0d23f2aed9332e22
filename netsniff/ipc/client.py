from __future__ import annotations

import socket
from ipaddress import IPv4Address
from typing import List, Optional

from netsniff.config import DEFAULT_SOCKET_PATH, REQUEST_TIMEOUT
from netsniff.core.stats import IPStat
from netsniff.errors import DaemonError, TransportError
from netsniff.ipc import wire
from netsniff.ipc.wire import Opcode


class ControlClient:
    """
    Talks to a running daemon, one connection per call.

    A nonzero reply status raises DaemonError; any connect, send or receive
    problem raises TransportError. Nothing is retried.
    """

    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH, timeout: Optional[float] = REQUEST_TIMEOUT):
        self.socket_path = str(socket_path)
        self.timeout = timeout

    # -------------------------
    # Operations
    # -------------------------

    def start(self) -> None:
        self._call(Opcode.START)

    def stop(self) -> None:
        self._call(Opcode.STOP)

    def set_interface(self, name: str) -> None:
        if not name:
            raise ValueError("interface name must not be empty")
        self._call(Opcode.SET_IFACE, wire.pack_framed(name.encode("utf-8")))

    def stat(self, interface: Optional[str] = None) -> List[List[IPStat]]:
        payload = wire.pack_framed(interface.encode("utf-8") if interface else None)
        tables = self._call(Opcode.STAT, payload, reader=wire.decode_stat_payload)
        return [[IPStat(IPv4Address(ip), count) for ip, count in table] for table in tables]

    def ip_count(self, ip: str) -> int:
        return self._call(Opcode.IP_COUNT, wire.pack_address(str(IPv4Address(ip))), reader=wire.read_u32)

    # -------------------------
    # Transport
    # -------------------------

    def _call(self, opcode: Opcode, payload: bytes = b"", reader=None):
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(self.timeout)
            try:
                sock.connect(self.socket_path)
            except OSError as exc:
                raise TransportError(f"cannot connect to {self.socket_path}: {exc}") from exc

            try:
                sock.sendall(wire.encode_request(opcode, payload))
            except OSError as exc:
                raise TransportError(f"send failed: {exc}") from exc

            try:
                with sock.makefile("rb") as stream:
                    status = wire.read_status(stream)
                    if status:
                        raise DaemonError(status, opcode.name)
                    return reader(stream) if reader else None
            except OSError as exc:
                raise TransportError(f"receive failed: {exc}") from exc
        finally:
            sock.close()
