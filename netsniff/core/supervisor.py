from __future__ import annotations

import enum
import errno
import logging
import threading
from typing import Callable, List, Optional, Tuple

from netsniff.config import DaemonConfig
from netsniff.core import persistence
from netsniff.core.capture import CaptureWorker
from netsniff.core.control import CancelToken
from netsniff.core.sources.base import PacketSource
from netsniff.core.sources.live import LiveInterfaceSource
from netsniff.core.stats import AddressLike, InterfaceStats, IPStat
from netsniff.errors import CaptureRunningError

logger = logging.getLogger(__name__)

SourceFactory = Callable[[str], PacketSource]
InterfaceTable = Tuple[str, List[IPStat]]


class CaptureState(enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class CaptureSupervisor:
    """
    Owns the start/stop lifecycle of the single capture worker.

    start: load the interface snapshot (or start empty), spawn the worker.
    stop:  cancel and join the worker, dump the stats, clear the store.
    Both are idempotent. Transitions are serialized by one lock.
    """

    def __init__(
        self,
        config: DaemonConfig,
        *,
        source_factory: Optional[SourceFactory] = None,
    ):
        self.config = config
        self.source_factory = source_factory or self._live_source
        self._lock = threading.Lock()
        self._state = CaptureState.STOPPED
        self._interface = persistence.validate_interface_name(config.interface)
        self._stats = InterfaceStats(self._interface)
        self._worker: Optional[CaptureWorker] = None
        self._cancel: Optional[CancelToken] = None

    def _live_source(self, interface: str) -> PacketSource:
        return LiveInterfaceSource(interface, bpf_filter=self.config.bpf_filter)

    # -------------------------
    # Introspection
    # -------------------------

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is CaptureState.RUNNING

    @property
    def interface(self) -> str:
        return self._interface

    @property
    def stats(self) -> InterfaceStats:
        return self._stats

    def stats_path(self, interface: Optional[str] = None):
        return persistence.stats_path(
            self.config.stats_dir,
            interface or self._interface,
            self.config.stats_suffix,
        )

    # -------------------------
    # Lifecycle
    # -------------------------

    def start(self) -> int:
        with self._lock:
            if self._state is CaptureState.RUNNING:
                logger.debug("start: capture already running on %s", self._interface)
                return 0

            path = self.stats_path()
            try:
                stats = persistence.load(path, self._interface)
                logger.info("previous stats loaded from %s (%d entries)", path, stats.entry_count)
            except OSError as exc:
                logger.info("previous stats not loaded (%s), starting empty", exc.strerror or exc)
                stats = InterfaceStats(self._interface)

            cancel = CancelToken()
            worker = CaptureWorker(
                stats,
                self.source_factory(self._interface),
                cancel,
                poll_interval=self.config.poll_interval,
                retry_delay=self.config.retry_delay,
            )
            worker.start()

            self._stats = stats
            self._cancel = cancel
            self._worker = worker
            self._state = CaptureState.RUNNING
            return 0

    def stop(self) -> int:
        """Returns the worker's error, else the dump's errno, else 0."""
        with self._lock:
            if self._state is CaptureState.STOPPED:
                logger.debug("stop: capture not running")
                return 0

            self._cancel.cancel()
            self._worker.join()
            worker_error = self._worker.error
            if worker_error:
                logger.error("error encountered in capture worker: %s", errno.errorcode.get(worker_error, worker_error))

            dump_error = 0
            path = self.stats_path()
            try:
                persistence.dump(self._stats, path)
            except OSError as exc:
                dump_error = exc.errno or errno.EIO
                logger.error("could not dump stats to %s: %s", path, exc)

            self._stats.clear()
            self._worker = None
            self._cancel = None
            self._state = CaptureState.STOPPED
            return worker_error or dump_error

    def set_interface(self, name: str) -> None:
        persistence.validate_interface_name(name)
        with self._lock:
            if self._state is CaptureState.RUNNING:
                raise CaptureRunningError(
                    f"capture running on {self._interface}; stop it before selecting {name}"
                )
            self._interface = name
            self._stats.interface = name
            logger.info("interface selected: %s", name)

    # -------------------------
    # Queries
    # -------------------------

    def get_count(self, ip: AddressLike) -> int:
        return self._stats.get_count(ip)

    def interface_tables(self, name: Optional[str] = None) -> List[InterfaceTable]:
        """
        Per-interface snapshots for STAT.

        The running interface is read live; any other comes from its snapshot
        file. An empty name means every known interface, sorted by name.
        Interfaces with no data are left out.
        """
        if name:
            persistence.validate_interface_name(name)
            names = [name]
        else:
            names = persistence.persisted_interfaces(self.config.stats_dir, self.config.stats_suffix)
            if self.running and self._interface not in names:
                names = sorted(names + [self._interface])

        tables: List[InterfaceTable] = []
        for iface in names:
            table = self._table_for(iface)
            if table is not None:
                tables.append((iface, table))
        return tables

    def _table_for(self, iface: str) -> Optional[List[IPStat]]:
        with self._lock:
            if self.running and iface == self._interface:
                return self._stats.snapshot()
            path = self.stats_path(iface)

        try:
            return persistence.load(path, iface).snapshot()
        except FileNotFoundError:
            return None
