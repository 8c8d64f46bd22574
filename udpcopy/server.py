"""Server that sends requested files to clients over UDP with selective reject.

Usage: server error_rate [port number]
"""

from __future__ import annotations

import os
import re
import signal
import struct
import sys
import traceback
from collections.abc import Sequence
from enum import Enum, auto
from typing import Any, BinaryIO

from .hooks import NetworkHooks, get_hooks
from .networks import Connection, udp_server_setup, udp_socket
from .poll import PollSet
from .server_window import ServerWindow
from .srej import (
    FNAME_BAD,
    FNAME_OK,
    MAX_LEN,
    SIZE_OF_BUF_SIZE,
    START_SEQ_NUM,
    CrcError,
    Flag,
    Retries,
    process_select,
    recv_buf,
    send_buf,
)

__all__ = ["process_args", "process_server", "serve_client", "main"]

USAGE = "Usage server error_rate [port number]"

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_REQUEST_HEADER = struct.Struct("!ii")


def _atoi(text: str) -> int:
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _atof(text: str) -> float:
    match = _FLOAT_RE.match(text)
    return float(match.group(1)) if match else 0.0


def process_args(argv: Sequence[str]) -> tuple[float, int]:
    """Return ``(error_rate, port)`` from the arguments (without the program name).

    The port is 0, meaning any free port, when it is not given. Raises
    ``ValueError`` with the usage text for a wrong number of arguments.
    """
    argv = list(argv)
    if not 1 <= len(argv) <= 2:
        raise ValueError(USAGE)
    port = _atoi(argv[1]) if len(argv) == 2 else 0
    return _atof(argv[0]), port


class _State(Enum):
    START = auto()
    DONE = auto()
    FILENAME = auto()
    SEND_DATA = auto()
    WAIT_ON_ACK = auto()
    TIMEOUT_ON_ACK = auto()


class _ClientSession:
    """State machine that sends one file to one client."""

    def __init__(self, connection: Connection, request: bytes, hooks: NetworkHooks) -> None:
        self.connection = connection
        if connection.hooks is None:
            connection.hooks = hooks
        self.request = bytes(request)
        self.hooks = hooks
        self.poll_set = PollSet()
        self.window: ServerWindow | None = None
        self.data_file: BinaryIO | None = None
        self.buf_size = 0
        self.seq_num = START_SEQ_NUM
        self.file_done = False
        self.retries = Retries()

    def run(self) -> None:
        handlers = {
            _State.START: lambda: _State.FILENAME,
            _State.FILENAME: self._filename,
            _State.SEND_DATA: self._send_data,
            _State.WAIT_ON_ACK: self._wait_on_ack,
            _State.TIMEOUT_ON_ACK: self._timeout_on_ack,
        }
        state = _State.START
        try:
            while state is not _State.DONE:
                state = handlers[state]()
        finally:
            self.close()

    def close(self) -> None:
        if self.data_file is not None:
            self.data_file.close()
            self.data_file = None
        self.connection.close()
        self.poll_set.close()

    def _filename(self) -> _State:
        if len(self.request) < _REQUEST_HEADER.size:
            raise ValueError("file name request too short")
        self.buf_size, window_size = _REQUEST_HEADER.unpack_from(self.request)
        name = self.request[SIZE_OF_BUF_SIZE + 4 :].split(b"\0", 1)[0]
        fname = os.fsdecode(name)

        self.window = ServerWindow(window_size, self.buf_size, self.seq_num)
        self.connection.sock = udp_socket(self.hooks)
        self.poll_set.add(self.connection.sock)

        try:
            self.data_file = open(fname, "rb")
        except OSError:
            send_buf(bytes([FNAME_BAD]), self.connection, Flag.FNAME_RESP, 0)
            print(f"Error file {fname} not found")
            return _State.DONE
        send_buf(bytes([FNAME_OK]), self.connection, Flag.FNAME_RESP, 0)
        return _State.SEND_DATA

    def _send_data(self) -> _State:
        state = _State.DONE
        while self.window.is_open():
            try:
                chunk = self.data_file.read(self.buf_size)
            except OSError as exc:
                print(f"send_data, read error: {exc}")
                return _State.DONE
            if not chunk:
                self.seq_num = self.window.send_data(
                    b"", self.connection, Flag.END_OF_FILE, self.seq_num, file_done=True
                )
                self.file_done = True
                return _State.WAIT_ON_ACK
            self.seq_num = self.window.send_data(chunk, self.connection, Flag.DATA, self.seq_num)
            state = _State.WAIT_ON_ACK
        return state

    def _wait_on_ack(self) -> _State:
        state = _State.DONE
        while self.file_done or not self.window.is_open():
            state = process_select(
                self.connection,
                self.poll_set,
                self.retries,
                _State.TIMEOUT_ON_ACK,
                _State.SEND_DATA,
                _State.DONE,
            )
            if state is not _State.SEND_DATA:
                return state
            try:
                _, _, eof_acked = self.window.receive(self.connection, MAX_LEN)
            except CrcError:
                # Damaged or unexpected packets do not count as attempts.
                self.retries.count -= 1
                state = _State.WAIT_ON_ACK
                continue
            if eof_acked:
                return _State.DONE
        return state

    def _timeout_on_ack(self) -> _State:
        self.window.send_lowest(self.connection)
        return _State.WAIT_ON_ACK


def serve_client(connection: Connection, request: bytes, hooks: NetworkHooks | None = None) -> None:
    """Send the file named in ``request`` to the client at ``connection.remote``.

    ``request`` is the file name packet's payload: buffer size and window
    size (4 bytes each, network order) followed by the file name. A new
    socket is opened on ``connection`` for the transfer and closed after it.
    """
    _ClientSession(connection, request, hooks if hooks is not None else get_hooks()).run()


def _reap_children(signum: int, frame: Any) -> None:
    while True:
        try:
            pid, _ = os.waitpid(-1, os.WNOHANG)
        except ChildProcessError:
            return
        if pid == 0:
            return


def process_server(sock: Any, hooks: NetworkHooks | None = None) -> None:
    """Wait for file requests on ``sock`` forever, serving each in a child process."""
    hooks = hooks if hooks is not None else get_hooks()
    signal.signal(signal.SIGCHLD, _reap_children)
    while True:
        client = Connection(hooks=hooks)
        try:
            _, _, request = recv_buf(sock, MAX_LEN, client)
        except CrcError:
            continue
        if hooks.fork() == 0:
            code = 0
            try:
                serve_client(client, request, hooks)
            except Exception:
                traceback.print_exc()
                code = 1
            sys.stdout.flush()
            sys.stderr.flush()
            os._exit(code)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the server; ``argv`` excludes the program name."""
    argv = sys.argv[1:] if argv is None else argv
    try:
        error_rate, port = process_args(argv)
    except ValueError as exc:
        print(exc)
        return 1
    hooks = get_hooks()
    hooks.init(error_rate, True, True, True, True)
    sock = udp_server_setup(port, hooks)
    try:
        process_server(sock, hooks)
    finally:
        sock.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())