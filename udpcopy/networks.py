"""UDP client and server set-up over IPv6 sockets."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Any

from .addresses import format_ip_info, gethostbyname6
from .hooks import NetworkHooks, get_hooks

__all__ = [
    "Connection",
    "udp_socket",
    "udp_server_setup",
    "udp_client_setup",
    "safe_sendto",
    "safe_recvfrom",
    "select_call",
    "format_ipv6_info",
]


@dataclass
class Connection:
    """A socket and the remote address it exchanges datagrams with."""

    sock: socket.socket | None = None
    remote: tuple[Any, ...] | None = None
    hooks: NetworkHooks | None = None

    @property
    def active_hooks(self) -> NetworkHooks:
        return self.hooks if self.hooks is not None else get_hooks()

    def close(self) -> None:
        """Close the socket if one is open."""
        if self.sock is not None:
            self.sock.close()
            self.sock = None


def udp_socket(hooks: NetworkHooks | None = None) -> socket.socket:
    """Create an IPv6 UDP socket."""
    hooks = hooks if hooks is not None else get_hooks()
    return hooks.socket(socket.AF_INET6, socket.SOCK_DGRAM)


def udp_server_setup(port: int, hooks: NetworkHooks | None = None) -> socket.socket:
    """Create a UDP socket bound to ``port`` on every local address (0: any port)."""
    hooks = hooks if hooks is not None else get_hooks()
    sock = udp_socket(hooks)
    try:
        bound = hooks.bind(sock, ("::", port))
    except OSError:
        sock.close()
        raise
    print(f"Server using Port #: {bound}")
    return sock


def udp_client_setup(host_name: str, port: int, hooks: NetworkHooks | None = None) -> Connection:
    """Create a UDP socket aimed at ``host_name``:``port``.

    Raises ``socket.gaierror`` when the host is not found.
    """
    hooks = hooks if hooks is not None else get_hooks()
    sock = udp_socket(hooks)
    try:
        packed = gethostbyname6(host_name)
    except socket.gaierror as exc:
        sock.close()
        raise socket.gaierror(exc.errno, f"Host not found: {host_name}") from exc
    remote = (socket.inet_ntop(socket.AF_INET6, packed), port, 0, 0)
    print("Server info - ")
    print(format_ipv6_info(remote))
    return Connection(sock=sock, remote=remote, hooks=hooks)


def safe_sendto(packet: bytes | bytearray, connection: Connection) -> int:
    """Send ``packet`` to the connection's remote address."""
    if connection.sock is None or connection.remote is None:
        raise ValueError("connection has no socket or remote address")
    return connection.active_hooks.sendto(connection.sock, packet, connection.remote)


def safe_recvfrom(sock: socket.socket, bufsize: int, connection: Connection) -> bytes:
    """Receive a datagram on ``sock`` and record its sender in ``connection``."""
    data, address = connection.active_hooks.recvfrom(sock, bufsize)
    connection.remote = address
    return data


def select_call(sock: Any, seconds: int) -> bool:
    """Return whether ``sock`` becomes readable within ``seconds``; -1 waits forever."""
    timeout = None if seconds == -1 else seconds
    return sock in get_hooks().select([sock], timeout)


def format_ipv6_info(address: tuple[Any, ...]) -> str:
    """Return ``IP: <host> Port: <port>`` for an address tuple."""
    return format_ip_info(address)