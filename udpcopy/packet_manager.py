"""Sends and receives packets through a chain of message events.

Every outgoing packet passes through all standard events, and with a chance
set by the error rate through one randomly chosen random event. Events may
change the packet or drop it. Incoming packets are logged and checked for a
bad checksum.
"""

from __future__ import annotations

import random
import struct
from typing import Any

from .checksum import in_cksum
from .debug import DebugLevel, dbg_print
from .msgevents import EventResult, MsgEvent

__all__ = ["describe_packet", "PacketManager"]

_MSG_LEVEL = DebugLevel.INFO
_FLAG_OFFSET = 6
_PAYLOAD_OFFSET = 7


def _msg(text: str) -> None:
    dbg_print(_MSG_LEVEL, text)


def _u32(packet: bytes | bytearray, offset: int = 0) -> int:
    if len(packet) < offset + 4:
        return 0
    return struct.unpack_from("!I", packet, offset)[0]


def _flag(packet: bytes | bytearray) -> int:
    return packet[_FLAG_OFFSET] if len(packet) > _FLAG_OFFSET else 0


def describe_packet(flag: int, packet: bytes | bytearray) -> str:
    """Return a short description of a packet of type ``flag``."""
    if flag == 1:
        return "  -SETUP Init    "
    if flag == 2:
        return "  -SETUP Response"
    if flag in (3, 16):
        return f"  -Data #: {_u32(packet):4d}"
    if flag in (4, 17):
        return f"  -Resent Data #: {_u32(packet):4d}"
    if flag == 5:
        return f"  -RR #:   {_u32(packet, _PAYLOAD_OFFSET):4d}"
    if flag == 6:
        return f"  -SREJ #: {_u32(packet, _PAYLOAD_OFFSET):4d}"
    if flag in (7, 18):
        return f"  -Timeout resent data #: {_u32(packet):4d}"
    if flag == 8:
        return "  -FNAME request"
    if flag == 9:
        return "  -FNAME response"
    return "  -User defined "


class PacketManager:
    """Runs message events on outgoing packets and logs all traffic."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng if rng is not None else random.Random()
        self.error_rate = 0.0
        self.msg_no = 0
        self.standard_events: list[MsgEvent] = []
        self.random_events: list[MsgEvent] = []

    def set_rand_seed(self, seed: int) -> None:
        """Reseed the random source used to pick and run random events."""
        self.rng.seed(seed)

    def set_error_rate(self, rate: float) -> None:
        """Set the chance, from 0 to 1, that a random event runs on a packet."""
        self.error_rate = float(rate)

    def add_standard_event(self, event: MsgEvent) -> None:
        """Add an event that runs on every packet."""
        if event is None:
            raise ValueError("event is None")
        self.standard_events.append(event)

    def add_random_event(self, event: MsgEvent) -> None:
        """Add an event that may be chosen to run on a packet by chance."""
        if event is None:
            raise ValueError("event is None")
        self.random_events.append(event)

    def process_events(self, packet: bytearray, msg_no: int) -> EventResult:
        """Run the events on ``packet`` in place and report the combined result."""
        if packet is None:
            raise ValueError("packet is None")
        dropped = False
        changed = False
        for event in self.standard_events:
            result = event.run(packet, msg_no)
            if result == EventResult.DROP:
                dropped = True
                break
            if result == EventResult.CHANGED:
                changed = True

        chance = self.rng.random()
        if self.random_events and chance <= self.error_rate:
            chosen = self.random_events[int(len(self.random_events) * self.rng.random())]
            result = chosen.run(packet, msg_no)
            if result == EventResult.DROP:
                dropped = True
            else:
                changed = result == EventResult.CHANGED

        if dropped:
            return EventResult.DROP
        return EventResult.CHANGED if changed else EventResult.UNCHANGED

    def _prepare(self, data: bytes | bytearray, prefix: str) -> tuple[bytearray, EventResult]:
        if data is None:
            raise ValueError("data is None")
        if len(data) == 0:
            raise ValueError("len == 0")
        self.msg_no += 1
        flag = _flag(data)
        _msg(f"{prefix}{self.msg_no:3d} SEQ# {_u32(data):3d} LEN {len(data):4d} FLAGS {flag:2d} ")
        _msg(describe_packet(flag, data))
        packet = bytearray(data)
        result = self.process_events(packet, self.msg_no)
        _msg("\n")
        return packet, result

    def send(self, sock: Any, data: bytes | bytearray) -> int:
        """Send ``data`` on a connected socket after running the events.

        A dropped packet counts as sent in full.
        """
        packet, result = self._prepare(data, "MSG# ")
        if result == EventResult.DROP:
            return len(data)
        sent = sock.send(bytes(packet))
        return len(data) if sent == len(packet) else sent

    def sendto(self, sock: Any, data: bytes | bytearray, address: Any) -> int:
        """Send ``data`` to ``address`` after running the events.

        A dropped packet counts as sent in full.
        """
        if address is None:
            raise ValueError("address is None")
        packet, result = self._prepare(data, "SEND MSG# ")
        if result == EventResult.DROP:
            return len(data)
        sent = sock.sendto(bytes(packet), address)
        return len(data) if sent == len(packet) else sent

    def _log_received(self, prefix: str, data: bytes, corrupt_note: str) -> None:
        flag = _flag(data)
        _msg(f"{prefix}SEQ# {_u32(data):3d} LEN {len(data):4d} FLAGS {flag:2d} ")
        _msg(describe_packet(flag, data))
        if in_cksum(data) != 0:
            _msg(corrupt_note)
        _msg("\n")

    def recv(self, sock: Any, bufsize: int) -> bytes:
        """Receive from a connected socket and log the packet."""
        data = sock.recv(bufsize)
        self._log_received("RECV         ", data, "  - RECV Corrupted packet")
        return data

    def recvfrom(self, sock: Any, bufsize: int) -> tuple[bytes, Any]:
        """Receive a datagram and its sender's address and log the packet."""
        data, address = sock.recvfrom(bufsize)
        self._log_received("RECV          ", data, " - RECV Corrupted packet")
        return data, address