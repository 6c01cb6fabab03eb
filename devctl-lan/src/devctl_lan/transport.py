"""Byte transports carrying instrument exchanges.

This module defines the :class:`ExchangeTransport` protocol, the interface the
exchanger uses to move bytes to and from an instrument. One transport instance
backs exactly one connection; the exchanger asks its transport factory for a
fresh instance whenever it connects.

Implementations include:
- :class:`SocketTransport`: plain TCP socket (the default)
- :class:`devctl_lan.visa.VisaTransport`: PyVISA raw socket resource
- Recording fakes in the unit tests
"""

from __future__ import annotations

import errno
import socket
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from devctl_lan.endpoint import Endpoint


class ExchangeTransport(Protocol):
    """Protocol for the byte stream under one instrument connection.

    Implementations raise :class:`TimeoutError` when an operation exceeds its
    timeout and :class:`OSError` for any other network failure. The exchanger
    translates both into :mod:`devctl_lan.errors` types.

    Example:
        >>> class LoopbackTransport:
        ...     def open(self, endpoint, timeout): ...
        ...     def write(self, payload, timeout): self.last = payload
        ...     def read(self, max_bytes, timeout): return self.last[:max_bytes]
        ...     def close(self): ...
        ...     is_open = True
    """

    @property
    def is_open(self) -> bool:
        """Return True while the stream is connected."""
        ...

    def open(self, endpoint: Endpoint, timeout: float) -> None:
        """Connect to *endpoint* within *timeout* seconds."""
        ...

    def write(self, payload: bytes, timeout: float) -> None:
        """Send all of *payload* within *timeout* seconds."""
        ...

    def read(self, max_bytes: int, timeout: float) -> bytes:
        """Read up to *max_bytes*, waiting at most *timeout* seconds.

        Returns:
            The received bytes; ``b""`` once the peer has closed the stream.
        """
        ...

    def close(self) -> None:
        """Close the stream. Safe to call multiple times."""
        ...


class SocketTransport:
    """TCP socket transport.

    Opens the connection with :func:`socket.create_connection` and disables
    Nagle's algorithm so short commands leave immediately.

    Example:
        >>> transport = SocketTransport()
        >>> transport.open(Endpoint("192.0.2.10", 5025), timeout=5.0)
        >>> transport.write(b"*IDN?\\n", timeout=5.0)
        >>> transport.read(1024, timeout=5.0)
        >>> transport.close()
    """

    def __init__(self) -> None:
        self._sock: socket.socket | None = None

    @property
    def is_open(self) -> bool:
        """Return True if the socket is connected."""
        return self._sock is not None

    def open(self, endpoint: Endpoint, timeout: float) -> None:
        """Connect the socket.

        Args:
            endpoint: Instrument address.
            timeout: Connect timeout in seconds.

        Raises:
            TimeoutError: If the connect does not finish in time.
            OSError: If the connection is refused or the network fails.
        """
        if self._sock is not None:
            return
        sock = socket.create_connection((endpoint.host, endpoint.port), timeout=timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._sock = sock

    def write(self, payload: bytes, timeout: float) -> None:
        """Send the whole payload."""
        sock = self._require_open()
        sock.settimeout(timeout)
        sock.sendall(payload)

    def read(self, max_bytes: int, timeout: float) -> bytes:
        """Receive up to *max_bytes* bytes."""
        sock = self._require_open()
        sock.settimeout(timeout)
        return sock.recv(max_bytes)

    def close(self) -> None:
        """Shut down and close the socket."""
        if self._sock is None:
            return
        sock, self._sock = self._sock, None
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer already gone; the close below still releases the descriptor.
            pass
        sock.close()

    def _require_open(self) -> socket.socket:
        if self._sock is None:
            raise OSError(errno.ENOTCONN, "Socket transport is not open")
        return self._sock
