"""Instrument exchange error types.

Every failure surfaced by :class:`~devctl_lan.exchanger.LanExchanger` is an
:class:`ExchangeError` whose :attr:`~ExchangeError.kind` tells the caller what
went wrong without string matching. Connectivity problems (check the cabling)
and data problems (check the instrument firmware) are distinct kinds.

Exception hierarchy:
    DevctlError
    +-- ExchangeError (base, carries kind/command/cause)
        +-- InvalidEndpointError: malformed host or out-of-range port
        +-- DeviceUnreachableError: liveness probe failed, nothing was sent
        +-- CommunicationError: connect/write/read failed after the probe
        +-- ExchangeTimeoutError: a transaction exceeded its time budget
        +-- ReplyParseError: reply could not be read as the requested type
"""

from __future__ import annotations

from enum import Enum

from devctl_core.errors import DevctlError


class ExchangeErrorKind(Enum):
    """Failure kinds reported by the exchange client."""

    INVALID_ENDPOINT = "invalid_endpoint"
    DEVICE_UNREACHABLE = "device_unreachable"
    COMMUNICATION = "communication"
    TIMEOUT = "timeout"
    PARSE = "parse"


_CONNECTIVITY_KINDS = frozenset(
    {
        ExchangeErrorKind.DEVICE_UNREACHABLE,
        ExchangeErrorKind.COMMUNICATION,
        ExchangeErrorKind.TIMEOUT,
    }
)


class ExchangeError(DevctlError):
    """Base exception for instrument exchange failures.

    Attributes:
        kind: The failure kind.
        command: The command being exchanged, or None if the failure happened
            outside a transaction (e.g. at construction).
        cause: The underlying exception, if any.
    """

    kind: ExchangeErrorKind

    def __init__(
        self,
        message: str,
        *,
        command: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.command = command
        self.cause = cause
        super().__init__(message)

    @property
    def is_connectivity(self) -> bool:
        """Return True for failures of the link rather than of the data."""
        return self.kind in _CONNECTIVITY_KINDS

    def __str__(self) -> str:
        message = super().__str__()
        if self.command is not None:
            message = f"{message} (command {self.command!r})"
        return message


class InvalidEndpointError(ExchangeError, ValueError):
    """Raised when a host address or port is malformed."""

    kind = ExchangeErrorKind.INVALID_ENDPOINT


class DeviceUnreachableError(ExchangeError):
    """Raised when the liveness probe fails before any byte was sent."""

    kind = ExchangeErrorKind.DEVICE_UNREACHABLE


class CommunicationError(ExchangeError):
    """Raised when connecting, writing or reading fails after the probe."""

    kind = ExchangeErrorKind.COMMUNICATION


class ExchangeTimeoutError(ExchangeError, TimeoutError):
    """Raised when a transaction exceeds its allotted time."""

    kind = ExchangeErrorKind.TIMEOUT


class ReplyParseError(ExchangeError, ValueError):
    """Raised when a reply cannot be interpreted as the requested type.

    Attributes:
        reply: The reply text that failed to parse.
    """

    kind = ExchangeErrorKind.PARSE

    def __init__(
        self,
        message: str,
        *,
        reply: str,
        command: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.reply = reply
        super().__init__(message, command=command, cause=cause)
