"""Serialized command/reply exchange with one LAN instrument.

This module provides :class:`LanExchanger`, the component every device driver
talks through. It owns the connection to the instrument, serializes concurrent
callers behind one lock, checks that the instrument is alive before
connecting, frames each command/reply exchange and parses numeric replies
independently of the host locale.

Each transaction runs through these phases while holding the lock::

    IDLE -> PROBING -> CONNECTING -> SENDING -> [RECEIVING] -> CLOSING -> IDLE

Any phase may fail straight to CLOSING, which always closes the connection
and releases the lock.

Typical usage::

    from devctl_lan import LanExchanger

    with LanExchanger("192.0.2.10", 5025) as exchanger:
        exchanger.send_without_request("OUTP ON;")
        volts = exchanger.send_with_request_double("MEAS:VOLT?;")
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from types import TracebackType
from typing import TYPE_CHECKING, Callable

from devctl_core.errors import StateError

from devctl_lan.config import ConnectionPolicy, ExchangeConfig
from devctl_lan.endpoint import Endpoint
from devctl_lan.errors import (
    CommunicationError,
    DeviceUnreachableError,
    ExchangeError,
    ExchangeTimeoutError,
    ReplyParseError,
)
from devctl_lan.number import parse_int, parse_number
from devctl_lan.probe import make_probe
from devctl_lan.transport import SocketTransport

if TYPE_CHECKING:
    from devctl_lan.probe import LivenessProbe
    from devctl_lan.transport import ExchangeTransport

logger = logging.getLogger(__name__)

QUERY_MARKER = "?"


def is_query_command(command: str) -> bool:
    """Return True if *command* expects a reply.

    Any ``?`` in the command marks it as a query, not only a trailing one,
    so ``"TRIG:SOUR?;"`` is a query.
    """
    return QUERY_MARKER in command


class ConnectionState(Enum):
    """Lifecycle of one instrument connection."""

    NOT_CONNECTED = "not_connected"
    CONNECTED = "connected"
    CLOSED = "closed"


class TransactionPhase(Enum):
    """Phase of the transaction currently holding the exchanger."""

    IDLE = "idle"
    PROBING = "probing"
    CONNECTING = "connecting"
    SENDING = "sending"
    RECEIVING = "receiving"
    CLOSING = "closing"


class _Connection:
    """One transport bound to one endpoint, with an enforced lifecycle.

    A connection moves NOT_CONNECTED -> CONNECTED -> CLOSED exactly once.
    A closed connection is never reopened.
    """

    def __init__(self, endpoint: Endpoint, transport: ExchangeTransport) -> None:
        self._endpoint = endpoint
        self._transport = transport
        self._state = ConnectionState.NOT_CONNECTED

    @property
    def state(self) -> ConnectionState:
        return self._state

    def open(self, timeout: float) -> None:
        if self._state is not ConnectionState.NOT_CONNECTED:
            raise StateError(f"Cannot open a connection in state {self._state.name}")
        self._transport.open(self._endpoint, timeout)
        self._state = ConnectionState.CONNECTED

    def write(self, payload: bytes, timeout: float) -> None:
        self._require_connected()
        self._transport.write(payload, timeout)

    def read(self, max_bytes: int, timeout: float) -> bytes:
        self._require_connected()
        return self._transport.read(max_bytes, timeout)

    def close(self) -> None:
        if self._state is ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CLOSED
        self._transport.close()

    def _require_connected(self) -> None:
        if self._state is not ConnectionState.CONNECTED:
            raise StateError(f"Connection to {self._endpoint} is {self._state.name}")


class _Deadline:
    """Remaining time budget of one transaction."""

    def __init__(self, budget: float) -> None:
        self.budget = budget
        self._expires = time.monotonic() + budget

    def remaining(self) -> float:
        return self._expires - time.monotonic()

    def bound(self, limit: float | None = None) -> float:
        """Return the time allowed for the next step.

        Raises:
            TimeoutError: If the budget is already spent.
        """
        remaining = self.remaining()
        if remaining <= 0:
            raise TimeoutError(f"transaction budget of {self.budget:.3g}s exhausted")
        return remaining if limit is None else min(limit, remaining)


class LanExchanger:
    """Serialized text exchange with one instrument endpoint.

    All four ``send_*`` operations share one transaction primitive. At most
    one transaction is in flight per exchanger; concurrent callers block on a
    lock until the running transaction has finished, including the close of
    its connection.

    Args:
        host: Instrument IPv4/IPv6 address.
        port: Instrument TCP port (1-65535).
        config: Exchange configuration. Defaults to :class:`ExchangeConfig()`.
        probe: Liveness probe. Defaults to the probe named by ``config.probe``.
        transport_factory: Callable returning a fresh, unopened
            :class:`~devctl_lan.transport.ExchangeTransport` for each
            connection. Defaults to :class:`SocketTransport`.

    Raises:
        InvalidEndpointError: If host or port is invalid.

    Example:
        >>> exchanger = LanExchanger("192.0.2.10", 5025)
        >>> exchanger.send_with_request_int("OUTP:STAT?;")
        1
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        config: ExchangeConfig | None = None,
        probe: LivenessProbe | None = None,
        transport_factory: Callable[[], ExchangeTransport] | None = None,
    ) -> None:
        self._endpoint = Endpoint(host, port)
        self._config = config if config is not None else ExchangeConfig()
        self._probe = probe if probe is not None else make_probe(self._config.probe, port)
        self._transport_factory = transport_factory or SocketTransport
        self._lock = threading.Lock()
        self._connection: _Connection | None = None
        self._phase = TransactionPhase.IDLE

    @classmethod
    def from_endpoint(cls, endpoint: Endpoint, **kwargs: object) -> LanExchanger:
        """Create an exchanger for an existing :class:`Endpoint`.

        Args:
            endpoint: Instrument endpoint.
            **kwargs: Keyword arguments of the constructor.
        """
        return cls(endpoint.host, endpoint.port, **kwargs)  # type: ignore[arg-type]

    # -- Properties ----------------------------------------------------------

    @property
    def endpoint(self) -> Endpoint:
        """The instrument endpoint."""
        return self._endpoint

    @property
    def config(self) -> ExchangeConfig:
        """The exchange configuration."""
        return self._config

    @property
    def phase(self) -> TransactionPhase:
        """Phase of the transaction in flight, IDLE if none."""
        return self._phase

    @property
    def connection_state(self) -> ConnectionState:
        """State of the current connection, NOT_CONNECTED if there is none."""
        if self._connection is None:
            return ConnectionState.NOT_CONNECTED
        return self._connection.state

    # -- Operations ----------------------------------------------------------

    def send_without_request(self, command: str, *, timeout: float | None = None) -> None:
        """Send a command and return nothing.

        A plain command is never followed by a read, even if the instrument
        has unsolicited bytes pending. A command containing ``?`` still has its
        reply read and discarded so it cannot leak into a later transaction.

        Args:
            command: SCPI command (e.g. ``"OUTP ON;"``).
            timeout: Transaction budget in seconds, overriding the config.

        Raises:
            DeviceUnreachableError: If the liveness probe fails.
            CommunicationError: If connecting or writing fails.
            ExchangeTimeoutError: If the transaction exceeds its budget.
        """
        self._run(command, expect_reply=is_query_command(command), timeout=timeout)

    def send_with_request_string(self, command: str, *, timeout: float | None = None) -> str:
        """Send a command and return the raw reply.

        The reply is stripped of its terminator and surrounding whitespace but
        not otherwise interpreted. Commands without ``?`` return ``""``.

        Args:
            command: SCPI command (e.g. ``"*IDN?;"``).
            timeout: Transaction budget in seconds, overriding the config.

        Returns:
            The reply text.

        Raises:
            DeviceUnreachableError: If the liveness probe fails.
            CommunicationError: If the exchange fails on the network.
            ExchangeTimeoutError: If the transaction exceeds its budget.
        """
        reply = self.query(command, timeout=timeout)
        return "" if reply is None else reply

    def send_with_request_int(self, command: str, *, timeout: float | None = None) -> int:
        """Send a command and parse the reply as a base-10 integer.

        Raises:
            ReplyParseError: If the reply is not an integer literal.
            DeviceUnreachableError, CommunicationError, ExchangeTimeoutError:
                As for :meth:`send_with_request_string`.
        """
        reply = self.send_with_request_string(command, timeout=timeout)
        try:
            return parse_int(reply)
        except ValueError as exc:
            raise ReplyParseError(
                f"Reply {reply!r} is not an integer", reply=reply, command=command, cause=exc
            ) from exc

    def send_with_request_double(self, command: str, *, timeout: float | None = None) -> float:
        """Send a command and parse the reply as a float.

        Either ``.`` or ``,`` is accepted as decimal separator, whatever the
        locale of this process.

        Raises:
            ReplyParseError: If the reply is not numeric.
            DeviceUnreachableError, CommunicationError, ExchangeTimeoutError:
                As for :meth:`send_with_request_string`.
        """
        reply = self.send_with_request_string(command, timeout=timeout)
        try:
            return parse_number(reply)
        except ValueError as exc:
            raise ReplyParseError(
                f"Reply {reply!r} is not a number", reply=reply, command=command, cause=exc
            ) from exc

    def query(self, command: str, *, timeout: float | None = None) -> str | None:
        """Run one transaction, reading a reply only if *command* has a ``?``.

        Args:
            command: SCPI command or query.
            timeout: Transaction budget in seconds, overriding the config.

        Returns:
            The reply text for queries, None for plain commands.
        """
        return self._run(command, expect_reply=is_query_command(command), timeout=timeout)

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close a connection kept open by the PERSISTENT policy.

        Waits for any transaction in flight. Safe to call multiple times.
        """
        with self._lock:
            self._discard_connection()

    def __enter__(self) -> LanExchanger:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"LanExchanger({self._endpoint}, phase={self._phase.name})"

    # -- Transaction ---------------------------------------------------------

    def _run(self, command: str, *, expect_reply: bool, timeout: float | None) -> str | None:
        budget = self._config.transaction_timeout if timeout is None else timeout
        if budget <= 0:
            raise ValueError("timeout must be positive")
        payload = (command + self._config.terminator).encode(self._config.encoding)
        deadline = _Deadline(budget)

        if not self._lock.acquire(timeout=budget):
            raise ExchangeTimeoutError(
                f"Timed out after {budget:.3g}s waiting for {self._endpoint}", command=command
            )
        try:
            return self._transact(command, payload, expect_reply, deadline)
        finally:
            self._lock.release()

    def _transact(
        self, command: str, payload: bytes, expect_reply: bool, deadline: _Deadline
    ) -> str | None:
        failed = True
        # Set when bytes past the reply frame may remain on the connection
        dirty = False
        try:
            connection = self._ensure_connected(command, deadline)

            self._phase = TransactionPhase.SENDING
            logger.debug("%s <- %r", self._endpoint, command)
            connection.write(payload, deadline.bound())

            reply = None
            if expect_reply:
                self._phase = TransactionPhase.RECEIVING
                reply, dirty = self._receive(connection, command, deadline)
                logger.debug("%s -> %r", self._endpoint, reply)
            failed = False
            return reply
        except ExchangeError as exc:
            if exc.command is None:
                exc.command = command
            logger.warning("Exchange with %s failed: %s", self._endpoint, exc)
            raise
        except TimeoutError as exc:
            phase = self._phase.value
            logger.warning("Exchange with %s timed out while %s", self._endpoint, phase)
            raise ExchangeTimeoutError(
                f"Timed out while {phase} ({exc})", command=command, cause=exc
            ) from exc
        except OSError as exc:
            phase = self._phase.value
            logger.warning("Exchange with %s failed while %s: %s", self._endpoint, phase, exc)
            raise CommunicationError(
                f"Communication with {self._endpoint} failed while {phase}: {exc}",
                command=command,
                cause=exc,
            ) from exc
        finally:
            self._phase = TransactionPhase.CLOSING
            if (
                failed
                or dirty
                or self._config.connection_policy is ConnectionPolicy.CLOSE_AFTER_TRANSACTION
            ):
                self._discard_connection()
            self._phase = TransactionPhase.IDLE

    def _ensure_connected(self, command: str, deadline: _Deadline) -> _Connection:
        if self._connection is not None and self._connection.state is ConnectionState.CONNECTED:
            return self._connection

        self._phase = TransactionPhase.PROBING
        probe_timeout = deadline.bound(self._config.probe_timeout)
        if not self._probe.check(self._endpoint.host, probe_timeout):
            raise DeviceUnreachableError(
                f"Device {self._endpoint.host} did not answer the liveness probe "
                f"within {probe_timeout:.3g}s",
                command=command,
            )

        self._phase = TransactionPhase.CONNECTING
        connection = _Connection(self._endpoint, self._transport_factory())
        self._connection = connection
        connection.open(deadline.bound(self._config.connect_timeout))
        logger.debug("Connected to %s", self._endpoint)
        return connection

    def _receive(
        self, connection: _Connection, command: str, deadline: _Deadline
    ) -> tuple[str, bool]:
        """Read one reply frame.

        Returns:
            Tuple of (reply text, dirty). Dirty is True when the connection may
            hold bytes beyond the frame and must not be reused.
        """
        config = self._config
        dirty = False
        terminator = config.terminator.encode(config.encoding)
        buffer = bytearray()
        while True:
            chunk = connection.read(config.buffer_size, deadline.bound())
            if not chunk:
                if buffer:
                    break
                raise CommunicationError(
                    f"{self._endpoint} closed the connection before replying", command=command
                )
            buffer.extend(chunk)
            if not config.read_until_terminator:
                if len(chunk) >= config.buffer_size:
                    logger.warning(
                        "Reply to %r filled the %d-byte buffer and may be truncated",
                        command,
                        config.buffer_size,
                    )
                break
            if terminator in buffer:
                break
            if len(buffer) > config.max_reply_size:
                raise CommunicationError(
                    f"Reply exceeded {config.max_reply_size} bytes without a terminator",
                    command=command,
                )

        text = buffer.decode(config.encoding, errors="replace")
        frame, found, rest = text.partition(config.terminator)
        if rest:
            dirty = True
            if rest.strip():
                logger.warning("Discarding %d bytes after the reply to %r", len(rest), command)
        elif not found:
            dirty = True
        return frame.strip(), dirty

    def _discard_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.close()
        except OSError as exc:
            logger.debug("Error closing connection to %s: %s", self._endpoint, exc)
        else:
            logger.debug("Closed connection to %s", self._endpoint)
