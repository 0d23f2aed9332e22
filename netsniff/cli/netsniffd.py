from __future__ import annotations

import argparse
import logging
import logging.handlers
import signal
import threading
from typing import List, Optional

from netsniff.config import DaemonConfig
from netsniff.daemon import Daemon
from netsniff.errors import InvalidInterfaceName

logger = logging.getLogger("netsniff")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(verbosity: int = 0, use_syslog: bool = False) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger()
    root.setLevel(level)

    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(ch)

    if use_syslog:
        sh = logging.handlers.SysLogHandler(
            address="/dev/log",
            facility=logging.handlers.SysLogHandler.LOG_DAEMON,
        )
        sh.ident = "netsniffd: "
        sh.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        root.addHandler(sh)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="netsniffd", description="netsniff capture daemon (per-source IPv4 packet counts)")
    p.add_argument("--socket", dest="socket_path", default=None, help="Control socket path")
    p.add_argument("--stats-dir", default=None, help="Directory for <iface>.stat snapshot files")
    p.add_argument("--iface", dest="interface", default=None, help="Interface captured by the next start")
    p.add_argument("--poll-interval", type=float, default=None,
                   help="Seconds between cancellation checks while no packet arrives")
    p.add_argument("--request-timeout", type=float, default=None, help="Per-connection socket timeout in seconds")
    p.add_argument("--bpf", dest="bpf_filter", default=None, help="Optional BPF capture filter")
    p.add_argument("--start", action="store_true", help="Start capturing immediately")
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug")
    p.add_argument("--syslog", action="store_true", help="Also log to syslog (LOG_DAEMON)")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.syslog)

    try:
        config = DaemonConfig.from_env(
            socket_path=args.socket_path,
            stats_dir=args.stats_dir,
            interface=args.interface,
            poll_interval=args.poll_interval,
            request_timeout=args.request_timeout,
            bpf_filter=args.bpf_filter,
        )
        daemon = Daemon(config)
    except (ValueError, InvalidInterfaceName) as exc:
        logger.error("bad configuration: %s", exc)
        return 2
    except OSError as exc:
        logger.error("cannot open control socket: %s", exc)
        return 1

    def handle_signal(signum, _frame):
        logger.info("signal %d received, exiting", signum)
        # shutdown() waits for serve_forever, which runs on this thread
        threading.Thread(target=daemon.shutdown, daemon=True).start()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    if args.start:
        daemon.supervisor.start()

    daemon.serve_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
