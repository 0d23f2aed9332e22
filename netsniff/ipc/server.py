from __future__ import annotations

import errno
import logging
import os
import socketserver
from ipaddress import AddressValueError, IPv4Address
from typing import Optional

from netsniff.config import REQUEST_TIMEOUT
from netsniff.core.supervisor import CaptureSupervisor
from netsniff.errors import NetsniffError, ProtocolError, TransportError
from netsniff.ipc import wire
from netsniff.ipc.wire import Opcode

logger = logging.getLogger(__name__)


def status_for(exc: BaseException) -> int:
    """Map an exception raised by a handler to an errno reply status."""
    if isinstance(exc, NetsniffError):
        return exc.errno
    if isinstance(exc, MemoryError):
        return errno.ENOMEM
    if isinstance(exc, OSError):
        return exc.errno or errno.EIO
    if isinstance(exc, RuntimeError):
        # thread creation failure
        return errno.EAGAIN
    return errno.EIO


class ControlRequestHandler(socketserver.StreamRequestHandler):
    """
    Serve exactly one request: opcode, arguments, status, payload.

    Handlers return the success payload or raise; the raised error becomes the
    reply status and nothing else is written after it.
    """

    server: "ControlServer"

    def setup(self) -> None:
        self.timeout = self.server.request_timeout
        super().setup()

    def handle(self) -> None:
        try:
            opcode = wire.read_u32(self.rfile)
        except TransportError as exc:
            logger.error("could not read opcode: %s", exc)
            return

        try:
            op = Opcode(opcode)
        except ValueError:
            logger.error("invalid option received: %d", opcode)
            return

        handler = getattr(self, f"do_{op.name.lower()}")
        logger.debug("request %s", op.name)

        try:
            payload = handler()
            reply = wire.pack_status(0) + payload
        except TransportError as exc:
            logger.error("%s: argument not received: %s", op.name, exc)
            return
        except Exception as exc:  # every failure is reported as a status
            status = status_for(exc)
            logger.error("%s failed: %s", op.name, exc)
            reply = wire.pack_status(status)

        try:
            wire.write_all(self.wfile, reply)
        except TransportError as exc:
            logger.error("%s reply failed: %s", op.name, exc)

    # -------------------------
    # Opcode handlers
    # -------------------------

    @property
    def supervisor(self) -> CaptureSupervisor:
        return self.server.supervisor

    def do_start(self) -> bytes:
        status = self.supervisor.start()
        if status:
            raise OSError(status, os.strerror(status))
        return b""

    def do_stop(self) -> bytes:
        status = self.supervisor.stop()
        if status:
            raise OSError(status, os.strerror(status))
        return b""

    def do_set_iface(self) -> bytes:
        raw = wire.read_framed(self.rfile)
        if not raw:
            raise ProtocolError("SET_IFACE needs an interface name", code=errno.EINVAL)
        self.supervisor.set_interface(self._decode_name(raw))
        return b""

    def do_stat(self) -> bytes:
        raw = wire.read_framed(self.rfile)
        name = self._decode_name(raw) if raw else None
        tables = self.supervisor.interface_tables(name)
        return wire.encode_stat_payload([wire.stat_pairs(entries) for _, entries in tables])

    def do_ip_count(self) -> bytes:
        ip_str = wire.read_address(self.rfile)
        try:
            ip = IPv4Address(ip_str)
        except AddressValueError as exc:
            raise ProtocolError(f"bad address {ip_str!r}: {exc}", code=errno.EINVAL) from exc
        count = self.supervisor.get_count(ip)
        logger.debug("IP_COUNT %s -> %d", ip, count)
        return wire.pack_u32(count)

    @staticmethod
    def _decode_name(raw: bytes) -> str:
        try:
            return raw.rstrip(b"\0").decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("interface name is not valid UTF-8", code=errno.EINVAL) from exc


class ControlServer(socketserver.UnixStreamServer):
    """
    Single-threaded control listener: one connection is fully served before
    the next is accepted.
    """

    def __init__(
        self,
        socket_path: str,
        supervisor: CaptureSupervisor,
        *,
        request_timeout: Optional[float] = REQUEST_TIMEOUT,
    ):
        self.supervisor = supervisor
        self.request_timeout = request_timeout
        self.socket_path = str(socket_path)
        try:
            os.unlink(self.socket_path)
        except FileNotFoundError:
            pass
        super().__init__(self.socket_path, ControlRequestHandler)

    def handle_error(self, request, client_address) -> None:
        logger.exception("unhandled error while serving a control request")

    def server_close(self) -> None:
        super().server_close()
        try:
            os.unlink(self.socket_path)
        except FileNotFoundError:
            pass
