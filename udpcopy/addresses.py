"""Host name lookups for IPv4 and IPv6 (including IPv4-mapped) addresses."""

from __future__ import annotations

import socket
from typing import Any

__all__ = [
    "gethostbyname4",
    "gethostbyname6",
    "ip_address_string",
    "format_ip_info",
    "describe_lookup",
]

_NOT_FOUND = "(IP not found)"


def _lookup(host_name: str, family: int, flags: int) -> bytes:
    try:
        infos = socket.getaddrinfo(host_name, None, family, 0, 0, flags)
    except socket.gaierror as exc:
        raise socket.gaierror(
            exc.errno, f"Error getaddrinfo (host: {host_name}): {exc.strerror}"
        ) from exc
    if not infos:
        raise socket.gaierror(f"Error getaddrinfo (host: {host_name}): no addresses")
    host = infos[0][4][0].split("%", 1)[0]
    return socket.inet_pton(family, host)


def gethostbyname4(host_name: str) -> bytes:
    """Return the first IPv4 address of ``host_name`` as 4 packed bytes.

    Raises ``socket.gaierror`` when the name cannot be resolved.
    """
    return _lookup(host_name, socket.AF_INET, 0)


def gethostbyname6(host_name: str) -> bytes:
    """Return the first IPv6 (or IPv4-mapped) address of ``host_name`` as 16 bytes.

    Raises ``socket.gaierror`` when the name cannot be resolved.
    """
    flags = getattr(socket, "AI_V4MAPPED", 0) | getattr(socket, "AI_ALL", 0)
    return _lookup(host_name, socket.AF_INET6, flags)


def ip_address_string(address: bytes | None) -> str:
    """Return a printable form of a packed 4- or 16-byte address."""
    if address is None:
        return _NOT_FOUND
    if len(address) == 4:
        return socket.inet_ntop(socket.AF_INET, address)
    if len(address) == 16:
        return socket.inet_ntop(socket.AF_INET6, address)
    raise ValueError(f"packed address must be 4 or 16 bytes, not {len(address)}")


def format_ip_info(address: tuple[Any, ...]) -> str:
    """Return ``IP: <host> Port: <port>`` for a socket address tuple."""
    return f"IP: {address[0]} Port: {address[1]}"


def describe_lookup(host_name: str) -> str:
    """Look ``host_name`` up as IPv6 and IPv4 and describe what was found."""
    lines = []
    try:
        lines.append(f"IPV6 Host: {host_name} IP: {ip_address_string(gethostbyname6(host_name))} \n")
    except socket.gaierror:
        pass
    try:
        lines.append(f"IPv4 Host: {host_name} IP: {ip_address_string(gethostbyname4(host_name))} \n")
    except socket.gaierror:
        pass
    lines.append("\n")
    return "".join(lines)