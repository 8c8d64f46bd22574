"""Events run on each outgoing packet: drops, bit flips and sequence logging."""

from __future__ import annotations

import random
import struct
import sys
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable
from enum import IntEnum

from .debug import DebugLevel, dbg_print

__all__ = ["EventResult", "MsgEvent", "ErrorDrop", "ErrorFlipBits", "InfoSeqNo"]

MSG_PRINT_LEVEL = DebugLevel.INFO


class EventResult(IntEnum):
    """What an event did to a packet."""

    UNCHANGED = 0
    CHANGED = 1
    DROP = 2


def _check_packet(packet: bytearray | None) -> bytearray:
    if packet is None:
        raise ValueError("packet is None")
    return packet


def _seq_no(packet: bytearray) -> int:
    if len(packet) < 4:
        raise ValueError("packet too short to hold a sequence number")
    return struct.unpack_from("!I", packet)[0]


class MsgEvent(ABC):
    """An action run on a packet before it is sent.

    ``run`` may change the packet in place and reports what it did.
    """

    name = "msgEvent"

    @abstractmethod
    def run(self, packet: bytearray, msg_no: int) -> EventResult:
        """Process ``packet``, the ``msg_no``-th message sent."""

    def report(self) -> str:
        """Return a summary of what the event has seen."""
        return ""


class ErrorDrop(MsgEvent):
    """Drops every packet, or only the packets with listed message numbers."""

    name = "errorDrop"

    def __init__(self) -> None:
        self.drop_all = True
        self.drop_list: list[int] = []

    def set_drop_all(self, drop_all: bool) -> None:
        """Drop every packet when ``drop_all`` is true."""
        self.drop_all = bool(drop_all)

    def set_drop_specific(self, drop_list: Iterable[int]) -> None:
        """Drop only packets whose message number is in ``drop_list``."""
        self.drop_all = False
        self.drop_list = list(drop_list)

    def run(self, packet: bytearray, msg_no: int) -> EventResult:
        _check_packet(packet)
        if self.drop_all or msg_no in self.drop_list:
            dbg_print(MSG_PRINT_LEVEL, " - DROPPED ")
            return EventResult.DROP
        return EventResult.UNCHANGED

    def report(self) -> str:
        return ""


class ErrorFlipBits(MsgEvent):
    """Inverts every bit of one randomly chosen byte of the packet."""

    name = "errorFlipBits"

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng if rng is not None else random.Random()

    def run(self, packet: bytearray, msg_no: int) -> EventResult:
        _check_packet(packet)
        if not packet:
            raise ValueError("cannot flip bits of an empty packet")
        dbg_print(MSG_PRINT_LEVEL, " - FLIPPED BITS ")
        index = int(len(packet) * self.rng.random())
        packet[index] ^= 0xFF
        return EventResult.CHANGED

    def report(self) -> str:
        return ""


class InfoSeqNo(MsgEvent):
    """Records the sequence number (first four bytes, network order) of each packet."""

    name = "infoSeqNo"

    def __init__(self) -> None:
        self.history: list[int] = []
        self.counts: Counter[int] = Counter()

    def run(self, packet: bytearray, msg_no: int) -> EventResult:
        seq = _seq_no(_check_packet(packet))
        self.history.append(seq)
        self.counts[seq] += 1
        return EventResult.UNCHANGED

    def report(self) -> str:
        """Write the totals to standard error and return them."""
        text = (
            "======== SeqNo Report ========\n"
            f"  Msgs (Total)       : {len(self.history):5d}\n"
            f"  Msgs (Unique SeqNo): {len(self.counts):5d}\n"
            "==============================\n"
        )
        sys.stderr.write(text)
        return text