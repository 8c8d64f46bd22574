"""Packet format and helpers for the selective-reject file transfer protocol.

A packet is a 7-byte header followed by the payload. The header holds the
sequence number (4 bytes, network order), the Internet checksum of the whole
packet (2 bytes, little-endian) and a flag byte.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from .checksum import in_cksum
from .networks import Connection, safe_recvfrom, safe_sendto
from .poll import PollSet

__all__ = [
    "MAX_LEN",
    "SIZE_OF_BUF_SIZE",
    "START_SEQ_NUM",
    "MAX_TRIES",
    "LONG_TIME",
    "SHORT_TIME",
    "HEADER_SIZE",
    "FNAME_OK",
    "FNAME_BAD",
    "Flag",
    "CrcError",
    "Retries",
    "is_data",
    "build_packet",
    "parse_packet",
    "send_buf",
    "recv_buf",
    "process_select",
]

MAX_LEN = 1400
SIZE_OF_BUF_SIZE = 4
START_SEQ_NUM = 1
MAX_TRIES = 10
LONG_TIME = 10
SHORT_TIME = 1
HEADER_SIZE = 7

# Payload of a FNAME_RESP packet.
FNAME_OK = 9
FNAME_BAD = 10

_SEQ_MASK = 0xFFFFFFFF


class Flag(IntEnum):
    """Packet types carried in the header's flag byte."""

    ACK = 5
    SREJ = 6
    FNAME = 8
    FNAME_RESP = 9
    END_OF_FILE = 10
    EOF_ACK = 11
    DATA = 16
    RESENT_SREJ = 17
    RESENT_TIMEOUT = 18


class CrcError(Exception):
    """A packet failed its checksum or is otherwise unusable."""


@dataclass
class Retries:
    """Counts consecutive waits that ended without a reply."""

    count: int = 0


def is_data(flag: int) -> bool:
    """Return whether ``flag`` marks a packet that carries file data."""
    return flag in (Flag.DATA, Flag.RESENT_SREJ, Flag.RESENT_TIMEOUT)


def build_packet(data: bytes | bytearray, flag: int, seq_num: int) -> bytes:
    """Return the packet holding ``data`` with a header for ``flag`` and ``seq_num``."""
    seq = struct.pack("!I", seq_num & _SEQ_MASK)
    flag_byte = struct.pack("B", int(flag))
    payload = bytes(data)
    checksum = in_cksum(seq + b"\x00\x00" + flag_byte + payload)
    return seq + struct.pack("<H", checksum) + flag_byte + payload


def parse_packet(raw: bytes | bytearray) -> tuple[int, int, bytes]:
    """Split a received packet into ``(flag, seq_num, payload)``.

    Raises :class:`CrcError` when the checksum does not hold or the packet
    is shorter than a header.
    """
    if len(raw) < HEADER_SIZE or in_cksum(raw) != 0:
        raise CrcError("packet failed checksum")
    (seq_num,) = struct.unpack_from("!I", raw)
    return raw[6], seq_num, bytes(raw[HEADER_SIZE:])


def send_buf(data: bytes | bytearray, connection: Connection, flag: int, seq_num: int) -> int:
    """Send ``data`` as one packet to the connection's remote; return bytes sent."""
    return safe_sendto(build_packet(data, flag, seq_num), connection)


def recv_buf(sock: Any, bufsize: int, connection: Connection) -> tuple[int, int, bytes]:
    """Receive one packet on ``sock`` and return ``(flag, seq_num, payload)``.

    The sender becomes the connection's remote. Raises :class:`CrcError`
    for a damaged packet.
    """
    return parse_packet(safe_recvfrom(sock, bufsize, connection))


def process_select(
    connection: Connection,
    poll_set: PollSet,
    retries: Retries,
    timeout_state: Any,
    ready_state: Any,
    done_state: Any,
) -> Any:
    """Wait briefly for data on the connection's socket.

    Returns ``done_state`` once more than ``MAX_TRIES`` waits in a row went
    unanswered, ``ready_state`` when data arrived (resetting the count), and
    ``timeout_state`` otherwise.
    """
    retries.count += 1
    if retries.count > MAX_TRIES:
        print(f"No response for other side for {MAX_TRIES} attempts, terminating connection")
        return done_state
    ready = poll_set.poll(SHORT_TIME * 1000)
    if ready is not None and ready == connection.sock:
        retries.count = 0
        return ready_state
    return timeout_state