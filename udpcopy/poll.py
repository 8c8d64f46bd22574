"""A set of sockets waited on together for readability."""

from __future__ import annotations

import selectors
import time
from typing import Any

__all__ = ["POLL_SET_SIZE", "POLL_WAIT_FOREVER", "PollSet"]

POLL_SET_SIZE = 10
POLL_WAIT_FOREVER = -1


class PollSet:
    """Sockets (or file descriptors) waited on for incoming data."""

    def __init__(self) -> None:
        self._selector = selectors.DefaultSelector()

    def add(self, sock: Any) -> None:
        """Watch ``sock`` for readability; adding it twice is harmless."""
        try:
            self._selector.register(sock, selectors.EVENT_READ)
        except KeyError:
            pass

    def remove(self, sock: Any) -> None:
        """Stop watching ``sock``; removing an unknown socket does nothing."""
        try:
            self._selector.unregister(sock)
        except (KeyError, ValueError):
            pass

    def __contains__(self, sock: Any) -> bool:
        return any(key.fileobj is sock or key.fd == sock for key in self._selector.get_map().values())

    def __len__(self) -> int:
        return len(self._selector.get_map())

    def poll(self, timeout_ms: int) -> Any | None:
        """Wait for a watched socket to become readable.

        Returns the ready socket with the lowest descriptor, or ``None`` on
        timeout. A negative timeout waits forever; 0 checks and returns at once.
        """
        timeout = None if timeout_ms < 0 else timeout_ms / 1000.0
        if not self._selector.get_map():
            if timeout is None:
                raise RuntimeError("poll set is empty; nothing to wait for")
            time.sleep(timeout)
            return None
        events = self._selector.select(timeout)
        if not events:
            return None
        key, _ = min(events, key=lambda item: item[0].fd)
        return key.fileobj

    def close(self) -> None:
        """Release the underlying selector."""
        self._selector.close()

    def __enter__(self) -> PollSet:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()