"""
Snapshot files for interface statistics.

One line per address, ascending order:

    10.0.0.5;3
    10.0.0.9;1
"""
from __future__ import annotations

import logging
from ipaddress import AddressValueError
from pathlib import Path
from typing import List, Optional

from netsniff.config import STATS_SUFFIX
from netsniff.core.stats import InterfaceStats
from netsniff.errors import InvalidInterfaceName

logger = logging.getLogger(__name__)

# IFNAMSIZ minus the terminating NUL
IFACE_NAME_MAX = 15
_FORBIDDEN = set("/:\0")


def validate_interface_name(name: str) -> str:
    """
    Reject anything the kernel would not accept as an interface name.
    Names end up in file paths, so this also keeps them inside the stats dir.
    """
    if not name:
        raise InvalidInterfaceName("interface name is empty")
    if len(name.encode("utf-8")) > IFACE_NAME_MAX:
        raise InvalidInterfaceName(f"interface name too long: {name!r}")
    if name in (".", ".."):
        raise InvalidInterfaceName(f"invalid interface name: {name!r}")
    if any(ch in _FORBIDDEN or ch.isspace() for ch in name):
        raise InvalidInterfaceName(f"invalid character in interface name: {name!r}")
    return name


def stats_path(stats_dir: str | Path, interface: str, suffix: str = STATS_SUFFIX) -> Path:
    validate_interface_name(interface)
    return Path(stats_dir) / f"{interface}{suffix}"


def persisted_interfaces(stats_dir: str | Path, suffix: str = STATS_SUFFIX) -> List[str]:
    directory = Path(stats_dir)
    if not directory.is_dir():
        return []

    names = []
    for path in directory.glob(f"*{suffix}"):
        name = path.name[: -len(suffix)] if suffix else path.name
        try:
            validate_interface_name(name)
        except InvalidInterfaceName:
            logger.debug("ignoring stray snapshot file %s", path)
            continue
        if path.is_file():
            names.append(name)
    return sorted(names)


def dump(stats: InterfaceStats, path: str | Path) -> int:
    """
    Write `stats` to `path`, truncating it. Returns the number of lines written.
    OSError propagates; the store is only read.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    entries = stats.snapshot()
    with path.open("w", encoding="ascii") as f:
        for entry in entries:
            f.write(f"{entry.ip};{entry.count}\n")

    logger.debug("dumped %d entries to %s", len(entries), path)
    return len(entries)


def load(path: str | Path, interface: Optional[str] = None) -> InterfaceStats:
    """
    Rebuild statistics from a snapshot file.

    Opening errors propagate (callers treat a missing file as "start fresh").
    Malformed lines are logged and skipped; a repeated address keeps the value
    from its last line.
    """
    path = Path(path)
    if interface is None:
        if path.name.endswith(STATS_SUFFIX):
            interface = path.name[: -len(STATS_SUFFIX)]
        else:
            interface = path.stem
    stats = InterfaceStats(interface)

    skipped = 0
    with path.open("r", encoding="ascii", errors="replace") as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line:
                continue

            ip_str, sep, count_str = line.partition(";")
            if not sep:
                logger.warning("%s:%d: missing ';' separator, line skipped", path, lineno)
                skipped += 1
                continue

            try:
                if not (count_str.isascii() and count_str.isdigit()):
                    raise ValueError(f"not a decimal count: {count_str!r}")
                count = int(count_str, 10)
                stats.set_count(ip_str.strip(), count)
            except AddressValueError as exc:
                logger.warning("%s:%d: bad address (%s), line skipped", path, lineno, exc)
                skipped += 1
            except ValueError as exc:
                logger.warning("%s:%d: bad count (%s), line skipped", path, lineno, exc)
                skipped += 1

    logger.debug("loaded %d entries from %s (%d skipped)", stats.entry_count, path, skipped)
    return stats
