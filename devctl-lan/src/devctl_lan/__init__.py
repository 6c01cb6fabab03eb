"""LAN exchange client for SCPI instruments.

This package provides the serialized command/reply exchange that devctl
device drivers use to talk to instruments over TCP. It includes:

- Validated instrument endpoints
- The blocking :class:`LanExchanger` and its asyncio wrapper
- Liveness probes run before connecting
- Socket and PyVISA byte transports
- Locale-independent parsing of numeric replies
- A tagged exception taxonomy for exchange failures

Typical usage::

    from devctl_lan import LanExchanger

    exchanger = LanExchanger("192.0.2.10", 5025)
    exchanger.send_without_request("VOLT 5.0;")
    volts = exchanger.send_with_request_double("VOLT?;")
"""

from devctl_lan.aio import AsyncLanExchanger
from devctl_lan.config import ConnectionPolicy, ExchangeConfig
from devctl_lan.endpoint import Endpoint
from devctl_lan.errors import (
    CommunicationError,
    DeviceUnreachableError,
    ExchangeError,
    ExchangeErrorKind,
    ExchangeTimeoutError,
    InvalidEndpointError,
    ReplyParseError,
)
from devctl_lan.exchanger import (
    ConnectionState,
    LanExchanger,
    TransactionPhase,
    is_query_command,
)
from devctl_lan.number import (
    ScpiSpecial,
    format_bool,
    format_number,
    parse_bool,
    parse_int,
    parse_number,
    parse_special,
)
from devctl_lan.probe import LivenessProbe, NullProbe, PingProbe, TcpProbe, make_probe
from devctl_lan.transport import ExchangeTransport, SocketTransport
from devctl_lan.visa import VisaTransport

__all__ = [
    # Exchanger
    "AsyncLanExchanger",
    "ConnectionState",
    "LanExchanger",
    "TransactionPhase",
    "is_query_command",
    # Configuration
    "ConnectionPolicy",
    "Endpoint",
    "ExchangeConfig",
    # Errors
    "CommunicationError",
    "DeviceUnreachableError",
    "ExchangeError",
    "ExchangeErrorKind",
    "ExchangeTimeoutError",
    "InvalidEndpointError",
    "ReplyParseError",
    # Number parsing/formatting
    "ScpiSpecial",
    "format_bool",
    "format_number",
    "parse_bool",
    "parse_int",
    "parse_number",
    "parse_special",
    # Probes
    "LivenessProbe",
    "NullProbe",
    "PingProbe",
    "TcpProbe",
    "make_probe",
    # Transports
    "ExchangeTransport",
    "SocketTransport",
    "VisaTransport",
]
