"""Client that fetches a file from the server over UDP with selective reject.

Usage: rcopy fromFile toFile window_size buffer_size error_rate hostname port
"""

from __future__ import annotations

import os
import re
import socket
import struct
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, auto
from typing import BinaryIO

from .client_window import ClientWindow, MsgStatus
from .hooks import NetworkHooks, get_hooks
from .networks import Connection, format_ipv6_info, udp_client_setup
from .poll import PollSet
from .srej import (
    FNAME_BAD,
    FNAME_OK,
    HEADER_SIZE,
    LONG_TIME,
    MAX_LEN,
    START_SEQ_NUM,
    CrcError,
    Flag,
    Retries,
    process_select,
    recv_buf,
    send_buf,
)

__all__ = ["RcopyArgs", "check_args", "process_file", "main"]

USAGE = "Usage rcopy fromFile toFile window_size buffer_size error_rate hostname port"
MAX_NAME_LEN = 1000
MAX_WINDOW_SIZE = 0x40000000
MIN_BUFFER_SIZE = 400
MAX_BUFFER_SIZE = 1400

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _atoi(text: str) -> int:
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _atof(text: str) -> float:
    match = _FLOAT_RE.match(text)
    return float(match.group(1)) if match else 0.0


@dataclass(frozen=True)
class RcopyArgs:
    """The checked command-line arguments."""

    from_file: str
    to_file: str
    window_size: int
    buffer_size: int
    error_rate: float
    host: str
    port: int


def check_args(argv: Sequence[str]) -> RcopyArgs:
    """Check the arguments (without the program name) and return them parsed.

    Raises ``ValueError`` with a message describing the first problem found.
    """
    argv = list(argv)
    if len(argv) != 7:
        raise ValueError(USAGE)
    from_file, to_file = argv[0], argv[1]
    from_len = len(os.fsencode(from_file))
    if from_len > MAX_NAME_LEN:
        raise ValueError(f"FROM filename too long, needs to be less than 1000 and is: {from_len}")
    to_len = len(os.fsencode(to_file))
    if to_len > MAX_NAME_LEN:
        raise ValueError(f"TO filename too long, needs to be less than 1000 and is: {to_len}")
    window_size = _atoi(argv[2])
    if window_size < 1 or window_size > MAX_WINDOW_SIZE:
        raise ValueError(f"Window size needs to be between 1 and 2^30 and is: {window_size}")
    buffer_size = _atoi(argv[3])
    if buffer_size < MIN_BUFFER_SIZE or buffer_size > MAX_BUFFER_SIZE:
        raise ValueError(f"Buffer size needs to be between 400 and 1400 and is: {buffer_size}")
    error_rate = _atof(argv[4])
    if error_rate < 0 or error_rate >= 1:
        raise ValueError(f"Error rate needs to be between 0 and less than 1 and is: {error_rate:f}")
    return RcopyArgs(from_file, to_file, window_size, buffer_size, error_rate, argv[5], _atoi(argv[6]))


class _State(Enum):
    DONE = auto()
    START = auto()
    FILENAME = auto()
    FILE_OK = auto()
    RECV_DATA = auto()


def _private_opener(path: str, flags: int) -> int:
    return os.open(path, flags, 0o600)


class _Transfer:
    """State machine for one file fetch."""

    def __init__(self, args: RcopyArgs, hooks: NetworkHooks) -> None:
        self.args = args
        self.hooks = hooks
        self.connection: Connection | None = None
        self.poll_set = PollSet()
        self.window: ClientWindow | None = None
        self.output: BinaryIO | None = None
        self.retries = Retries()
        self.client_seq_num = 0

    def run(self) -> None:
        handlers = {
            _State.START: self._start,
            _State.FILENAME: self._filename,
            _State.FILE_OK: self._file_ok,
            _State.RECV_DATA: self._recv_data,
        }
        state = _State.START
        try:
            while state is not _State.DONE:
                state = handlers[state]()
        finally:
            self.close()

    def close(self) -> None:
        if self.output is not None:
            self.output.close()
            self.output = None
        if self.connection is not None:
            self.connection.close()
            self.connection = None
        self.poll_set.close()

    def _start(self) -> _State:
        if self.connection is not None:
            self.poll_set.remove(self.connection.sock)
            self.connection.close()
            self.connection = None
        try:
            self.connection = udp_client_setup(self.args.host, self.args.port, self.hooks)
        except socket.gaierror as exc:
            print(exc.strerror or exc)
            print("couldnt connect to server")
            return _State.DONE

        self.window = ClientWindow(self.args.window_size, self.args.buffer_size, START_SEQ_NUM)
        request = struct.pack("!Ii", self.args.buffer_size, self.args.window_size) + os.fsencode(
            self.args.from_file
        )
        print(format_ipv6_info(self.connection.remote))
        self.poll_set.add(self.connection.sock)
        send_buf(request, self.connection, Flag.FNAME, self.client_seq_num)
        return _State.FILENAME

    def _filename(self) -> _State:
        state = process_select(
            self.connection, self.poll_set, self.retries, _State.START, _State.FILE_OK, _State.DONE
        )
        if state is not _State.FILE_OK:
            return state
        try:
            _, _, payload = recv_buf(self.connection.sock, MAX_LEN + HEADER_SIZE, self.connection)
        except CrcError:
            return _State.FILENAME
        if len(payload) != 1:
            return _State.FILENAME
        if payload[0] == FNAME_OK:
            return _State.FILE_OK
        if payload[0] == FNAME_BAD:
            print(f"Server reported File {self.args.from_file} not found")
            return _State.DONE
        return _State.FILENAME

    def _file_ok(self) -> _State:
        try:
            self.output = open(self.args.to_file, "wb", opener=_private_opener)
        except OSError:
            print(f"Error on open of output file: {self.args.to_file}")
            return _State.DONE
        return _State.RECV_DATA

    def _recv_data(self) -> _State:
        if self.poll_set.poll(LONG_TIME * 1000) is None:
            print("Timeout after 10 seconds, server must be gone.")
            return _State.DONE
        status = MsgStatus.MORE_MSGS
        while status == MsgStatus.MORE_MSGS:
            status, data = self.window.recv_data(self.connection, MAX_LEN + HEADER_SIZE)
            if status == MsgStatus.EOF:
                self.output.close()
                self.output = None
                return _State.DONE
            if data:
                self.output.write(data)
        return _State.RECV_DATA


def process_file(args: RcopyArgs, hooks: NetworkHooks | None = None) -> None:
    """Fetch ``args.from_file`` from the server into ``args.to_file``."""
    _Transfer(args, hooks if hooks is not None else get_hooks()).run()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the client; ``argv`` excludes the program name."""
    argv = sys.argv[1:] if argv is None else argv
    try:
        args = check_args(argv)
    except ValueError as exc:
        print(exc)
        return 1
    hooks = get_hooks()
    hooks.init(args.error_rate, True, True, True, True)
    process_file(args, hooks)
    return 0


if __name__ == "__main__":
    sys.exit(main())