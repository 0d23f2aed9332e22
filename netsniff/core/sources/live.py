import errno
import logging
import select
from typing import Optional

from scapy.all import conf, get_if_hwaddr
from scapy.error import Scapy_Exception

from netsniff.core.sources.base import PacketSource

logger = logging.getLogger(__name__)

NULL_MAC = "00:00:00:00:00:00"


class LiveInterfaceSource(PacketSource):
    """
    Passive listening socket bound to one interface (scapy L2listen).

    - recv() polls the socket with select(), so a quiet link never blocks the
      caller longer than the timeout.
    - Frames whose Ethernet source is the interface's own MAC are outbound and
      are dropped here.
    """

    def __init__(
        self,
        interface: str,
        *,
        bpf_filter: Optional[str] = None,
        promisc: bool = False,
    ):
        self.interface = interface
        self.bpf_filter = bpf_filter
        self.promisc = promisc
        self._sock = None
        self._own_mac: Optional[str] = None

    def open(self) -> None:
        try:
            self._sock = conf.L2listen(
                iface=self.interface,
                filter=self.bpf_filter,
                promisc=self.promisc,
            )
        except Scapy_Exception as exc:
            raise OSError(errno.EINVAL, f"cannot listen on {self.interface}: {exc}") from exc

        try:
            mac = get_if_hwaddr(self.interface)
        except (Scapy_Exception, OSError, ValueError):
            mac = None
        # loopback and tun devices report no usable hardware address
        self._own_mac = mac if mac and mac != NULL_MAC else None
        logger.debug("listening on %s (mac=%s, filter=%s)", self.interface, self._own_mac, self.bpf_filter)

    def recv(self, timeout: float) -> Optional[object]:
        if self._sock is None:
            raise OSError(errno.EBADF, "capture socket is not open")

        ready, _, _ = select.select([self._sock], [], [], timeout)
        if not ready:
            return None

        pkt = self._sock.recv()
        if pkt is None:
            return None

        if self._own_mac and pkt.haslayer("Ether") and pkt["Ether"].src == self._own_mac:
            return None

        return pkt

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None
