"""Internet checksum over packet bytes."""

from __future__ import annotations

import struct

__all__ = ["in_cksum"]


def in_cksum(data: bytes | bytearray | memoryview) -> int:
    """Return the 16-bit one's-complement Internet checksum of ``data``.

    The data is read as little-endian 16-bit words. An odd trailing byte is
    padded with a zero byte. A buffer that already holds its own checksum,
    written little-endian into a field that was zero when the checksum was
    computed, checksums to 0.
    """
    buf = bytes(data)
    if len(buf) % 2:
        buf += b"\x00"
    total = sum(word for (word,) in struct.iter_unpack("<H", buf))
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return ~total & 0xFFFF