from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_SOCKET_PATH = "/tmp/netsniffd.sock"
DEFAULT_STATS_DIR = "/var/tmp/netsniffd"
STATS_SUFFIX = ".stat"
DEFAULT_IFACE = "ens33"

# seconds
POLL_INTERVAL = 0.5
RETRY_DELAY = 0.1
REQUEST_TIMEOUT = 10.0


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class DaemonConfig:
    """
    Runtime settings for one daemon context.
    Everything has a default so tests can override only what they need.
    """
    socket_path: str = DEFAULT_SOCKET_PATH
    stats_dir: Path = Path(DEFAULT_STATS_DIR)
    stats_suffix: str = STATS_SUFFIX
    interface: str = DEFAULT_IFACE
    poll_interval: float = POLL_INTERVAL
    retry_delay: float = RETRY_DELAY
    request_timeout: Optional[float] = REQUEST_TIMEOUT
    bpf_filter: Optional[str] = None

    def __post_init__(self):
        self.stats_dir = Path(self.stats_dir)

    @classmethod
    def from_env(cls, **overrides) -> "DaemonConfig":
        values = {
            "socket_path": os.environ.get("NETSNIFF_SOCKET") or DEFAULT_SOCKET_PATH,
            "stats_dir": os.environ.get("NETSNIFF_STATS_DIR") or DEFAULT_STATS_DIR,
            "interface": os.environ.get("NETSNIFF_IFACE") or DEFAULT_IFACE,
            "poll_interval": _env_float("NETSNIFF_POLL_INTERVAL", POLL_INTERVAL),
            "request_timeout": _env_float("NETSNIFF_REQUEST_TIMEOUT", REQUEST_TIMEOUT),
        }
        # CLI flags left unset come through as None
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
