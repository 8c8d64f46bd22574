"""Sending side of the sliding window: keeps unacknowledged data for resending."""

from __future__ import annotations

import struct

from .networks import Connection
from .srej import MAX_LEN, CrcError, Flag, recv_buf, send_buf

__all__ = ["ServerWindow"]


class ServerWindow:
    """Holds the data packets sent but not yet acknowledged.

    ``lower`` is the oldest unacknowledged sequence number, ``current`` the
    next to send and ``upper`` the first that does not fit in the window.
    """

    def __init__(self, window_size: int, buffer_size: int, starting_seq_num: int) -> None:
        if window_size < 1:
            raise ValueError("window size must be at least 1")
        self.window_size = window_size
        self.buffer_size = buffer_size
        self.buffers: list[bytes] = [b""] * window_size
        self.lower = starting_seq_num
        self.current = starting_seq_num
        self.upper = starting_seq_num + window_size
        self.file_done = False

    def is_open(self) -> bool:
        """Return whether another packet may be sent."""
        return self.current != self.upper

    def send_lowest(self, connection: Connection) -> int:
        """Resend the oldest unacknowledged packet to nudge the receiver."""
        index = self.lower % self.window_size
        flag = Flag.RESENT_TIMEOUT
        if self.file_done and self.current == self.lower + 1:
            flag = Flag.END_OF_FILE
        return send_buf(self.buffers[index], connection, flag, self.lower)

    @staticmethod
    def _seq_from(payload: bytes) -> int:
        if len(payload) != 4:
            raise CrcError(f"expected a 4-byte sequence number, got {len(payload)} bytes")
        return struct.unpack("!i", payload)[0]

    def receive_ack(self, payload: bytes) -> bool:
        """Slide the window to the RR'ed sequence number in ``payload``.

        Returns ``True`` once the file is done and every packet is
        acknowledged. Raises :class:`CrcError` for a malformed or stale RR and
        ``RuntimeError`` for an RR of data never sent.
        """
        acked = self._seq_from(payload)
        change = acked - self.lower
        if change < 0:
            raise CrcError("RR for a frame no longer in the window")
        if self.file_done and self.current == acked:
            self.lower += change
            self.upper += change
            return True
        if acked > self.current:
            raise RuntimeError(f"RR {acked} is past the next sequence number {self.current}")
        self.lower += change
        self.upper += change
        return False

    def receive_srej(self, payload: bytes, connection: Connection) -> int:
        """Resend the packet whose sequence number ``payload`` rejects.

        Raises :class:`CrcError` when the number is malformed or outside the
        unacknowledged part of the window.
        """
        rejected = self._seq_from(payload)
        if rejected < self.lower or rejected >= self.current:
            raise CrcError("SREJ for a sequence number outside the window")
        index = rejected % self.window_size
        return send_buf(self.buffers[index], connection, Flag.RESENT_SREJ, rejected)

    def receive(self, connection: Connection, bufsize: int = MAX_LEN) -> tuple[int, int, bool]:
        """Read one RR or SREJ from the connection's socket and act on it.

        Returns ``(flag, seq_num, eof_acked)``; for an SREJ the sequence
        number is one past the received one. Raises :class:`CrcError` for a
        damaged packet or one that is neither RR nor SREJ.
        """
        flag, seq_num, payload = recv_buf(connection.sock, bufsize, connection)
        if flag == Flag.ACK:
            return flag, seq_num, self.receive_ack(payload)
        if flag == Flag.SREJ:
            self.receive_srej(payload, connection)
            return flag, seq_num + 1, False
        raise CrcError(f"unexpected packet flag {flag}")

    def send_data(
        self,
        data: bytes | bytearray,
        connection: Connection,
        flag: int,
        seq_num: int,
        file_done: bool = False,
    ) -> int:
        """Keep ``data`` for resending, send it and return the next sequence number.

        ``file_done`` marks that this is the last packet of the file. Raises
        ``RuntimeError`` when the window is full and ``ValueError`` when the
        data does not fit a buffer.
        """
        if file_done:
            self.file_done = True
        if not self.is_open():
            raise RuntimeError("attempting to send on a full window")
        if len(data) > self.buffer_size:
            raise ValueError(f"data of {len(data)} bytes exceeds buffer size {self.buffer_size}")
        self.buffers[self.current % self.window_size] = bytes(data)
        self.current += 1
        send_buf(data, connection, flag, seq_num)
        return seq_num + 1