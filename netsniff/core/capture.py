from __future__ import annotations

import errno
import logging
import threading
from typing import Optional

from netsniff.config import POLL_INTERVAL, RETRY_DELAY
from netsniff.core.control import CancelToken
from netsniff.core.sources.base import PacketSource
from netsniff.core.stats import InterfaceStats

logger = logging.getLogger(__name__)


def source_address(packet) -> Optional[str]:
    """IPv4 source of a scapy packet, or None if it carries no IPv4 header."""
    try:
        if not packet.haslayer("IP"):
            return None
        return packet["IP"].src
    except (AttributeError, IndexError):
        return None


class CaptureWorker:
    """
    Background thread feeding source addresses into an InterfaceStats.

    Failing to open the capture socket ends the thread immediately; the errno
    is kept in `error` for the supervisor to report on stop. Receive errors are
    logged and retried.
    """

    def __init__(
        self,
        stats: InterfaceStats,
        source: PacketSource,
        cancel_token: CancelToken,
        *,
        poll_interval: float = POLL_INTERVAL,
        retry_delay: float = RETRY_DELAY,
    ):
        self.stats = stats
        self.source = source
        self.cancel_token = cancel_token
        self.poll_interval = poll_interval
        self.retry_delay = retry_delay
        self.error = 0
        self.packets_seen = 0
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("capture worker already started")
        self._thread = threading.Thread(
            target=self._run,
            name=f"capture-{self.stats.interface}",
            daemon=True,
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        iface = self.stats.interface
        self.error = 0

        try:
            self.source.open()
        except OSError as exc:
            self.error = exc.errno or errno.EIO
            logger.error("capture socket creation failed on %s: %s", iface, exc)
            return

        logger.info("start capture: %s", iface)
        try:
            self._loop()
        finally:
            self.source.close()
            logger.info("stop capture: %s (%d packets)", iface, self.packets_seen)

    def _loop(self) -> None:
        while not self.cancel_token.is_cancelled():
            try:
                packet = self.source.recv(self.poll_interval)
            except OSError as exc:
                self.error = exc.errno or errno.EIO
                logger.warning("recv failed on %s: %s", self.stats.interface, exc)
                self.cancel_token.wait(self.retry_delay)
                continue

            if packet is None:
                continue

            src = source_address(packet)
            if src is None:
                continue

            try:
                self.stats.upsert(src)
            except MemoryError:
                self.error = errno.ENOMEM
                logger.error("out of memory recording %s, capture aborted", src)
                return
            except ValueError:
                logger.debug("unparsable source address %r", src)
                continue

            self.error = 0
            self.packets_seen += 1
