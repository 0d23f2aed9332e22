from __future__ import annotations

import logging
import threading
from typing import Optional

from netsniff.config import DaemonConfig
from netsniff.core.supervisor import CaptureSupervisor, SourceFactory
from netsniff.ipc.server import ControlServer

logger = logging.getLogger(__name__)


class Daemon:
    """
    Everything one netsniffd instance owns: config, capture supervisor and
    control server. Several can live in one process (tests do this).
    """

    def __init__(self, config: DaemonConfig, *, source_factory: Optional[SourceFactory] = None):
        self.config = config
        self.supervisor = CaptureSupervisor(config, source_factory=source_factory)
        self.server = ControlServer(
            config.socket_path,
            self.supervisor,
            request_timeout=config.request_timeout,
        )
        self._closed = threading.Event()

    def serve_forever(self, poll_interval: float = 0.5) -> None:
        logger.info("listening on %s (interface %s)", self.config.socket_path, self.supervisor.interface)
        try:
            self.server.serve_forever(poll_interval=poll_interval)
        finally:
            self.close()

    def shutdown(self) -> None:
        """Stop serve_forever() from another thread."""
        self.server.shutdown()

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        status = self.supervisor.stop()
        if status:
            logger.warning("capture stopped with status %d", status)
        self.server.server_close()
        logger.info("daemon closed")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
