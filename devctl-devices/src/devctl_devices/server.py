"""TCP server exposing an emulated instrument on the LAN wire protocol.

Serves any :class:`LineInstrument` (typically an
:class:`~devctl_devices.emulator.N5746AEmulator`) over TCP so that a real
:class:`~devctl_lan.exchanger.LanExchanger`, telnet or netcat can talk to it
as if it were the instrument.

Example:
    Start an emulator server on an ephemeral port::

        from devctl_devices import EmulatorServer, create_n5746a, make_n5746a_emulator

        server = EmulatorServer(make_n5746a_emulator(), port=0)
        server.start()

        host, port = server.address
        psu = create_n5746a(host, port)
        psu.set_voltage(5.0)

        server.stop()
"""

from __future__ import annotations

import logging
import socketserver
import threading
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class LineInstrument(Protocol):
    """An emulated instrument driven one text line at a time."""

    def write(self, message: str) -> None:
        """Process one line of commands."""
        ...

    def read(self) -> str:
        """Return and clear the reply to the queries of the last line."""
        ...

    def close(self) -> None:
        ...


class _LineRequestHandler(socketserver.StreamRequestHandler):
    """Handle one TCP connection, forwarding lines to the instrument.

    Each line is one or more ``;``-separated commands. A reply line is sent
    back only if the line contained a ``?``.
    """

    server: _LineTcpServer

    def handle(self) -> None:
        peer = "%s:%s" % self.client_address[:2]
        logger.debug("Emulator client %s connected", peer)
        for raw_line in self.rfile:
            line = raw_line.decode("ascii", errors="replace").strip()
            if not line:
                continue
            instrument = self.server.instrument
            instrument.write(line)
            if "?" in line:
                response = instrument.read()
                self.wfile.write((response + "\n").encode("ascii"))
                self.wfile.flush()
        logger.debug("Emulator client %s disconnected", peer)


class _LineTcpServer(socketserver.TCPServer):
    """TCP server holding the served instrument."""

    allow_reuse_address = True

    def __init__(
        self,
        server_address: tuple[str, int],
        instrument: LineInstrument,
        **kwargs: Any,
    ) -> None:
        self.instrument = instrument
        super().__init__(server_address, _LineRequestHandler, **kwargs)


class EmulatorServer:
    """TCP server wrapping a :class:`LineInstrument` for network access.

    Runs in a background daemon thread. Connections are served one at a
    time, in the order they were accepted, so a command sent on a connection
    that has since closed is applied before the next connection is read.

    Args:
        instrument: The emulated instrument to serve.
        host: Bind address (default ``"127.0.0.1"``).
        port: Bind port (default ``5025``). Use ``0`` for an OS-assigned
            ephemeral port.
    """

    def __init__(
        self,
        instrument: LineInstrument,
        host: str = "127.0.0.1",
        port: int = 5025,
    ) -> None:
        self._server = _LineTcpServer((host, port), instrument)
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start serving in a daemon thread."""
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info("Emulator server listening on %s:%d", *self.address)

    def stop(self) -> None:
        """Shut down the server and wait for the thread to exit."""
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join()
            self._thread = None
        self._server.server_close()
        logger.info("Emulator server on %s:%d stopped", *self.address)

    @property
    def address(self) -> tuple[str, int]:
        """Return the actual bound ``(host, port)`` address.

        Useful when binding to port 0.
        """
        addr = self._server.server_address
        return (str(addr[0]), int(addr[1]))

    def __enter__(self) -> EmulatorServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
