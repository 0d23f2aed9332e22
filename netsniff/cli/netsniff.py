from __future__ import annotations

import argparse
import json
import os
import sys
from typing import List, Optional

from netsniff.config import DEFAULT_SOCKET_PATH, REQUEST_TIMEOUT
from netsniff.errors import DaemonError, NetsniffError, TransportError
from netsniff.ipc.client import ControlClient

PROGRAM_NAME = "netsniff"
PROGRAM_VERSION = "1.0"

ABOUT = f"{PROGRAM_NAME}: CLI control app for netsniffd version {PROGRAM_VERSION}."


# ----------------------------
# Rendering helpers
# ----------------------------

def _table(rows: List[List[str]], headers: List[str]) -> str:
    """Small dependency-free table renderer."""
    cols = len(headers)
    widths = [len(h) for h in headers]
    for r in rows:
        for i in range(cols):
            widths[i] = max(widths[i], len(r[i]) if i < len(r) else 0)

    def fmt_row(r: List[str]) -> str:
        r = (r + [""] * cols)[:cols]
        return " | ".join((r[i] or "").ljust(widths[i]) for i in range(cols))

    sep = "-+-".join("-" * w for w in widths)
    out = [fmt_row(headers), sep]
    out += [fmt_row(r) for r in rows]
    return "\n".join(out)


def render_stat_text(tables, interface: Optional[str] = None) -> str:
    if not tables:
        return "(no statistics recorded)\n"

    parts: List[str] = []
    for i, table in enumerate(tables):
        title = interface if interface and len(tables) == 1 else f"interface #{i + 1}"
        total = sum(e.count for e in table)
        parts.append(f"=== {title}: {len(table)} addresses, {total} packets ===")
        rows = [[str(e.ip), str(e.count)] for e in table]
        parts.append(_table(rows, headers=["Source", "Packets"]))
        parts.append("")
    return "\n".join(parts).rstrip() + "\n"


def render_stat_json(tables) -> str:
    payload = [
        [{"ip": str(e.ip), "count": e.count} for e in table]
        for table in tables
    ]
    return json.dumps(payload, indent=2) + "\n"


# ----------------------------
# Commands
# ----------------------------

def cmd_start(client: ControlClient, args) -> int:
    client.start()
    print("[+] Capture started")
    return 0


def cmd_stop(client: ControlClient, args) -> int:
    client.stop()
    print("[+] Capture stopped, stats saved")
    return 0


def cmd_show(client: ControlClient, args) -> int:
    count = client.ip_count(args.ip)
    print(f"{args.ip}: {count}")
    return 0


def cmd_select(client: ControlClient, args) -> int:
    client.set_interface(args.name)
    print(f"[+] Interface selected: {args.name}")
    return 0


def cmd_stat(client: ControlClient, args) -> int:
    tables = client.stat(args.iface)
    if args.format == "json":
        print(render_stat_json(tables), end="")
    else:
        print(render_stat_text(tables, args.iface), end="")
    return 0


def cmd_web(client: ControlClient, args) -> int:
    import uvicorn

    os.environ["NETSNIFF_SOCKET"] = client.socket_path
    print(f"\nListening on http://{args.host}:{args.port}")
    print("Press Ctrl-C to stop\n")
    uvicorn.run("netsniff.web.app:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog=PROGRAM_NAME, description="Control a running netsniffd")
    p.add_argument("--about", action="store_true", help="Print info about the application")
    p.add_argument("--socket", default=os.environ.get("NETSNIFF_SOCKET") or DEFAULT_SOCKET_PATH,
                   help="Daemon control socket")
    p.add_argument("--timeout", type=float, default=REQUEST_TIMEOUT, help="Seconds to wait for the daemon")
    sub = p.add_subparsers(dest="command")

    start = sub.add_parser("start", help="Start sniffing packets on the selected interface")
    start.set_defaults(func=cmd_start)

    stop = sub.add_parser("stop", help="Stop sniffing")
    stop.set_defaults(func=cmd_stop)

    show = sub.add_parser("show", help="Print the packet count of an IP: show <ip> count")
    show.add_argument("ip", help="IPv4 address")
    show.add_argument("what", choices=["count"])
    show.set_defaults(func=cmd_show)

    select = sub.add_parser("select", help="Select interface for sniffing: select iface <name>")
    select.add_argument("what", choices=["iface"])
    select.add_argument("name", help="Interface name")
    select.set_defaults(func=cmd_select)

    stat = sub.add_parser("stat", help="Show statistics for an interface (all when omitted)")
    stat.add_argument("iface", nargs="?", default=None)
    stat.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    stat.set_defaults(func=cmd_stat)

    web = sub.add_parser("web", help="Serve the browser dashboard")
    web.add_argument("--host", default="127.0.0.1")
    web.add_argument("--port", type=int, default=8000)
    web.set_defaults(func=cmd_web)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.about:
        print(ABOUT)
        return 0

    if not args.command:
        parser.print_usage()
        print("Use --help for details.")
        return 2

    client = ControlClient(args.socket, timeout=args.timeout)
    try:
        return args.func(client, args)
    except DaemonError as exc:
        print(f"ERROR: {exc} ({os.strerror(exc.errno)})", file=sys.stderr)
        return 1
    except TransportError as exc:
        print(f"ERROR: {exc} (is netsniffd running?)", file=sys.stderr)
        return 1
    except (NetsniffError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
