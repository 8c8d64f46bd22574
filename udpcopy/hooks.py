"""Socket hooks that pass every packet through the error-injecting packet manager.

Environment settings (see :mod:`udpcopy.settings`) take precedence over the
values the program asks for.
"""

from __future__ import annotations

import copy
import functools
import os
import re
import select as _select
import socket as _socket
import time
from collections.abc import Iterable, Mapping
from typing import Any

from .debug import DebugLevel, dbg_print
from .msgevents import InfoSeqNo
from .packet_manager import PacketManager
from .settings import EnvKey, SettingsManager

__all__ = ["RANDOM_SEED", "NetworkHooks", "get_hooks"]

RANDOM_SEED = 10
_STANDARD_TIMEOUTS = (0, 1, 10)
_LONG_RE = re.compile(r"\s*([+-]?\d+)")


def _atol(text: str) -> int:
    match = _LONG_RE.match(text)
    return int(match.group(1)) if match else 0


def _info(text: str) -> None:
    dbg_print(DebugLevel.INFO, text)


class NetworkHooks:
    """Socket operations that log traffic and inject drops and bit flips."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self.environ = os.environ if environ is None else environ
        self.packet_manager = PacketManager()
        self.settings = SettingsManager(self.packet_manager, self.environ)
        self.next_seed = RANDOM_SEED
        self.is_child = False
        self._port_overridden = False

    def init(self, error_rate: float, drop: bool, flip: bool, debug: bool, random_seed: bool) -> None:
        """Set up error injection; call once per program.

        ``error_rate`` is the chance (0 to below 1) that a packet is damaged.
        With ``random_seed`` false the seed is fixed, making runs repeatable.
        """
        dbg_print(DebugLevel.VDEBUG, "\n")
        self.packet_manager.add_standard_event(InfoSeqNo())
        self.settings.set_error_rate(error_rate)
        self.settings.set_drop(drop)
        self.settings.set_flip(flip)
        now = int(time.time())
        self.settings.set_seed(now if random_seed else self.next_seed)
        # A child handler then gets a different seed.
        self.next_seed = now if random_seed else self.next_seed + 1
        self.settings.set_debug(1 if debug else 0)

        def yes_no(value: bool) -> str:
            return "Y" if value else "N"

        _info(
            f"Send Err-INIT ErrRate: {error_rate:.2f} Drop: {yes_no(drop)} "
            f"Flip: {yes_no(flip)} Rand: {yes_no(random_seed)} Debug: {yes_no(debug)}\n"
        )

    def socket(self, family: int, kind: int) -> _socket.socket:
        """Create a socket of the given address family and type."""
        return _socket.socket(family, kind)

    def bind(self, sock: _socket.socket, address: tuple[Any, ...]) -> int:
        """Bind ``sock`` and return the port it got.

        The first bind uses the port from the environment when one is set there.
        """
        env_port = self.environ.get(EnvKey.OVERRIDE_PORT.value)
        if env_port is not None and not self._port_overridden:
            self._port_overridden = True
            port = _atol(env_port)
            dbg_print(DebugLevel.WARN, f"Port Override - {port}\n")
            address = (address[0], port, *address[2:])
        sock.bind(address)
        port = sock.getsockname()[1]
        dbg_print(DebugLevel.DEBUG, f"Port {port}\n")
        return port

    def select(self, socks: Iterable[Any], timeout: float | None) -> list[Any]:
        """Wait up to ``timeout`` seconds (``None``: forever) for readable sockets."""
        if timeout is None:
            _info("Selected called with NULL Time value - not allowed in this program.\n")
        elif timeout not in _STANDARD_TIMEOUTS:
            _info(f"Selected called with non standard value - was sec: {timeout} ")
            _info("should be either 0, 1 or 10 seconds\n")
        ready, _, _ = _select.select(list(socks), [], [], timeout)
        if not ready and timeout:
            if self.is_child:
                _info(" Child process - ")
            _info(f"Select Timed Out - pid: {os.getpid()}")
            _info(f" sec: {timeout}\n")
        return ready

    def fork(self) -> NetworkHooks:
        """Return independent hooks for a child handler.

        The child starts with a copy of this object's error settings and
        events, reseeded with the next seed so its errors differ from the
        parent's.
        """
        seed = self.next_seed
        self.next_seed += 1
        memo: dict[int, Any] = {id(self.environ): self.environ}
        child = copy.copy(self)
        child.packet_manager = copy.deepcopy(self.packet_manager, memo)
        child.settings = copy.deepcopy(self.settings, memo)
        child.settings.set_seed(seed)
        child.is_child = True
        return child

    def send(self, sock: Any, data: bytes | bytearray) -> int:
        """Send on a connected socket through the error events."""
        return self.packet_manager.send(sock, data)

    def recv(self, sock: Any, bufsize: int) -> bytes:
        """Receive from a connected socket and log the packet."""
        return self.packet_manager.recv(sock, bufsize)

    def sendto(self, sock: Any, data: bytes | bytearray, address: Any) -> int:
        """Send a datagram to ``address`` through the error events."""
        return self.packet_manager.sendto(sock, data, address)

    def recvfrom(self, sock: Any, bufsize: int) -> tuple[bytes, Any]:
        """Receive a datagram and its sender's address and log the packet."""
        return self.packet_manager.recvfrom(sock, bufsize)


@functools.lru_cache(maxsize=None)
def get_hooks() -> NetworkHooks:
    """Return the process-wide hooks, built from the environment on first use."""
    return NetworkHooks()