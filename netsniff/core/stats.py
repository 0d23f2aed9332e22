from __future__ import annotations

import bisect
import threading
from dataclasses import dataclass
from ipaddress import IPv4Address
from typing import Dict, List, Union

from netsniff.config import DEFAULT_IFACE

AddressLike = Union[str, int, IPv4Address]


@dataclass(frozen=True)
class IPStat:
    ip: IPv4Address
    count: int

    def __str__(self) -> str:
        return f"{self.ip};{self.count}"


def to_address(ip: AddressLike) -> IPv4Address:
    if isinstance(ip, IPv4Address):
        return ip
    return IPv4Address(ip)


class InterfaceStats:
    """
    Per-interface packet counters keyed by source IPv4 address.

    Every public method takes the internal lock, so the capture worker and the
    control server can share one instance without extra locking. Keys are kept
    in a sorted list next to the counter dict; enumeration is always in
    ascending numeric address order.
    """

    def __init__(self, interface: str = DEFAULT_IFACE):
        self._lock = threading.Lock()
        self._interface = interface
        self._counts: Dict[IPv4Address, int] = {}
        self._order: List[IPv4Address] = []

    # -------------------------
    # Interface tag
    # -------------------------

    @property
    def interface(self) -> str:
        with self._lock:
            return self._interface

    @interface.setter
    def interface(self, name: str) -> None:
        with self._lock:
            self._interface = name

    # -------------------------
    # Counters
    # -------------------------

    def upsert(self, ip: AddressLike) -> int:
        """Count one sighting of `ip` and return its new count."""
        addr = to_address(ip)
        with self._lock:
            count = self._counts.get(addr)
            if count is None:
                bisect.insort(self._order, addr)
                self._counts[addr] = 1
                return 1
            self._counts[addr] = count + 1
            return count + 1

    def set_count(self, ip: AddressLike, count: int) -> None:
        if count < 0:
            raise ValueError(f"negative count for {ip}: {count}")
        addr = to_address(ip)
        with self._lock:
            if addr not in self._counts:
                bisect.insort(self._order, addr)
            self._counts[addr] = count

    def get_count(self, ip: AddressLike) -> int:
        addr = to_address(ip)
        with self._lock:
            return self._counts.get(addr, 0)

    def snapshot(self) -> List[IPStat]:
        with self._lock:
            return [IPStat(addr, self._counts[addr]) for addr in self._order]

    def clear(self) -> None:
        with self._lock:
            self._counts.clear()
            self._order.clear()

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._counts)

    def __len__(self) -> int:
        return self.entry_count

    def __repr__(self) -> str:
        return f"InterfaceStats(interface={self.interface!r}, entries={self.entry_count})"
