"""
Binary framing for the control channel.

Request:  u32 opcode, then opcode-specific arguments.
Reply:    i32 status (0 or an errno value); payload only when status == 0.

Framed value: u32 length followed by exactly `length` raw bytes, no terminator.
Length 0 means "absent".

All integers use native byte order and standard sizes; both ends live on the
same host.
"""
from __future__ import annotations

import enum
import errno
import struct
from typing import BinaryIO, Iterable, List, Optional, Sequence, Tuple

from netsniff.errors import ProtocolError, TransportError

U32 = struct.Struct("=I")
STATUS = struct.Struct("=i")

INET_ADDRSTRLEN = 16
U32_MAX = 0xFFFFFFFF
FRAME_MAX = 256


class Opcode(enum.IntEnum):
    START = 0
    STOP = 1
    SET_IFACE = 2
    STAT = 3
    IP_COUNT = 4


# -------------------------
# Reading
# -------------------------

def read_exact(stream: BinaryIO, size: int) -> bytes:
    if size == 0:
        return b""
    try:
        data = stream.read(size)
    except OSError as exc:
        raise TransportError(f"receive failed: {exc}") from exc
    if data is None or len(data) != size:
        got = 0 if not data else len(data)
        raise TransportError(f"short read: expected {size} bytes, got {got}")
    return data


def read_u32(stream: BinaryIO) -> int:
    return U32.unpack(read_exact(stream, U32.size))[0]


def read_status(stream: BinaryIO) -> int:
    return STATUS.unpack(read_exact(stream, STATUS.size))[0]


def read_framed(stream: BinaryIO, max_size: int = FRAME_MAX) -> bytes:
    size = read_u32(stream)
    if size > max_size:
        raise ProtocolError(f"framed value of {size} bytes exceeds {max_size}", code=errno.EMSGSIZE)
    return read_exact(stream, size)


def read_address(stream: BinaryIO) -> str:
    return unpack_address(read_exact(stream, INET_ADDRSTRLEN))


# -------------------------
# Writing
# -------------------------

def write_all(stream: BinaryIO, data: bytes) -> None:
    try:
        stream.write(data)
        stream.flush()
    except OSError as exc:
        raise TransportError(f"send failed: {exc}") from exc


def pack_u32(value: int) -> bytes:
    return U32.pack(min(max(value, 0), U32_MAX))


def pack_status(status: int) -> bytes:
    return STATUS.pack(status)


def pack_framed(data: Optional[bytes]) -> bytes:
    data = data or b""
    return U32.pack(len(data)) + data


def pack_address(ip: str) -> bytes:
    raw = str(ip).encode("ascii")
    if len(raw) >= INET_ADDRSTRLEN:
        raise ValueError(f"address string too long: {ip!r}")
    return raw.ljust(INET_ADDRSTRLEN, b"\0")


def unpack_address(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("ascii", errors="replace").strip()


# -------------------------
# Requests
# -------------------------

def encode_request(opcode: Opcode, payload: bytes = b"") -> bytes:
    return U32.pack(int(opcode)) + payload


# -------------------------
# STAT reply
# -------------------------

StatTable = Sequence[Tuple[str, int]]


def encode_stat_payload(tables: Sequence[StatTable]) -> bytes:
    """
    u32 N, then N u32 entry counts, then every (address, u32 count) pair of
    table 0, table 1, ... in order.
    """
    parts: List[bytes] = [pack_u32(len(tables))]
    parts.extend(pack_u32(len(table)) for table in tables)
    for table in tables:
        for ip, count in table:
            parts.append(pack_address(ip))
            parts.append(pack_u32(count))
    return b"".join(parts)


def decode_stat_payload(stream: BinaryIO) -> List[List[Tuple[str, int]]]:
    table_count = read_u32(stream)
    sizes = [read_u32(stream) for _ in range(table_count)]
    tables = []
    for size in sizes:
        tables.append([(read_address(stream), read_u32(stream)) for _ in range(size)])
    return tables


def stat_pairs(entries: Iterable) -> List[Tuple[str, int]]:
    """IPStat-like objects to (address, count) pairs."""
    return [(str(e.ip), e.count) for e in entries]
