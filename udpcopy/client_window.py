"""Receiving side of the sliding window: reorders data and sends RRs and SREJs."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from .networks import Connection
from .srej import HEADER_SIZE, MAX_LEN, CrcError, Flag, is_data, recv_buf, send_buf

__all__ = ["MsgStatus", "seq_lt", "seq_le", "ClientWindow"]

_MASK = 0xFFFFFFFF


class MsgStatus(IntEnum):
    """Whether more messages can be read without waiting on the network."""

    NO_MSGS = 0
    MORE_MSGS = 1
    EOF = 2


def _signed_diff(a: int, b: int) -> int:
    diff = (a - b) & _MASK
    return diff - (1 << 32) if diff & 0x80000000 else diff


def seq_lt(a: int, b: int) -> bool:
    """Return whether sequence number ``a`` comes before ``b``, allowing 32-bit wrap."""
    return _signed_diff(a, b) < 0


def seq_le(a: int, b: int) -> bool:
    """Return whether ``a`` comes before or equals ``b``, allowing 32-bit wrap."""
    return _signed_diff(a, b) <= 0


@dataclass
class _Slot:
    data: bytes
    seq_num: int
    flag: int


class ClientWindow:
    """Buffers out-of-order packets and hands data back in sequence order."""

    def __init__(self, window_size: int, buffer_size: int, starting_seq_num: int) -> None:
        if window_size < 1:
            raise ValueError("window size must be at least 1")
        self.window_size = window_size
        self.buffer_size = buffer_size
        self.slots: list[_Slot | None] = [None] * window_size
        self.highest_unread = starting_seq_num & _MASK
        self.expected = starting_seq_num & _MASK
        self.highest_recv = (starting_seq_num - 1) & _MASK
        self.client_seq_num = starting_seq_num & _MASK

    def message_ready(self) -> MsgStatus:
        """Return ``MORE_MSGS`` when buffered in-order data is waiting to be read."""
        return MsgStatus.MORE_MSGS if self.highest_unread != self.expected else MsgStatus.NO_MSGS

    def _send_control(self, connection: Connection, flag: Flag, seq: int) -> None:
        send_buf(struct.pack("!I", seq & _MASK), connection, flag, self.client_seq_num)
        self.client_seq_num = (self.client_seq_num + 1) & _MASK

    def _send_rr(self, connection: Connection) -> None:
        self._send_control(connection, Flag.ACK, self.expected)

    def _send_srejs(self, connection: Connection, recv_seq: int) -> None:
        missing = (self.highest_recv + 1) & _MASK
        while seq_lt(missing, recv_seq):
            self._send_control(connection, Flag.SREJ, missing)
            missing = (missing + 1) & _MASK
        if seq_lt(self.highest_recv, recv_seq):
            self.highest_recv = recv_seq

    def _take_buffered(self) -> _Slot | None:
        if not self.message_ready():
            return None
        index = self.highest_unread % self.window_size
        slot = self.slots[index]
        self.slots[index] = None
        self.highest_unread = (self.highest_unread + 1) & _MASK
        return slot

    def _direct_return(self, connection: Connection, flag: int, seq_num: int, data: bytes) -> tuple[MsgStatus, bytes]:
        self.expected = (self.expected + 1) & _MASK
        self.highest_unread = (self.highest_unread + 1) & _MASK
        index = seq_num + 1
        for _ in range(self.window_size):
            if self.slots[index % self.window_size] is None:
                break
            index += 1
            self.expected = (self.expected + 1) & _MASK
        self._send_rr(connection)
        if seq_lt(self.highest_recv, seq_num):
            self.highest_recv = seq_num
        if flag == Flag.END_OF_FILE:
            return MsgStatus.EOF, data
        return self.message_ready(), data

    def recv_data(self, connection: Connection, bufsize: int = MAX_LEN + HEADER_SIZE) -> tuple[MsgStatus, bytes | None]:
        """Return the next in-order data and whether more can be read at once.

        Buffered in-order data is returned without touching the network;
        otherwise one packet is read from the connection's socket, which must
        already be readable. The data is ``None`` when the packet gave nothing
        to deliver (damaged, duplicate, out of order or not data). The status
        is ``MsgStatus.EOF`` once the end-of-file packet is reached.
        """
        slot = self._take_buffered()
        if slot is not None:
            if slot.flag == Flag.END_OF_FILE:
                return MsgStatus.EOF, slot.data
            return self.message_ready(), slot.data

        try:
            flag, seq_num, data = recv_buf(connection.sock, bufsize, connection)
        except CrcError:
            return self.message_ready(), None

        if seq_lt(seq_num, self.expected):
            # Old packet, likely a nudge: say again what is expected.
            self._send_rr(connection)
            if flag == Flag.END_OF_FILE:
                return MsgStatus.EOF, data
            return self.message_ready(), None
        if not is_data(flag) and flag != Flag.END_OF_FILE:
            return self.message_ready(), None
        if seq_num != self.expected:
            self._send_srejs(connection, seq_num)
            self.slots[seq_num % self.window_size] = _Slot(data, seq_num, flag)
            return self.message_ready(), None
        return self._direct_return(connection, flag, seq_num, data)