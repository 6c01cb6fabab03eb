"""Validated instrument network endpoint."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass

from devctl_lan.errors import InvalidEndpointError

MIN_PORT = 1
MAX_PORT = 65535


@dataclass(frozen=True)
class Endpoint:
    """Immutable ``(host, port)`` pair addressing one instrument.

    The host must be a textual IPv4 or IPv6 address; hostnames are not
    resolved. Validation happens at construction so a bad address fails
    before any connection is attempted.

    Attributes:
        host: Normalized textual IP address.
        port: TCP port in ``[1, 65535]``.

    Raises:
        InvalidEndpointError: If the host is empty or not an IP address, or
            the port is not an integer in range.

    Example:
        >>> Endpoint("192.0.2.10", 5025)
        Endpoint(host='192.0.2.10', port=5025)
    """

    host: str
    port: int

    def __post_init__(self) -> None:
        if not isinstance(self.host, str) or not self.host.strip():
            raise InvalidEndpointError("Host address must be a non-empty string")
        try:
            address = ipaddress.ip_address(self.host.strip())
        except ValueError as exc:
            raise InvalidEndpointError(
                f"Host {self.host!r} is not a valid IPv4/IPv6 address", cause=exc
            ) from exc
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise InvalidEndpointError(f"Port must be an integer, got {self.port!r}")
        if not MIN_PORT <= self.port <= MAX_PORT:
            raise InvalidEndpointError(
                f"Port {self.port} out of range [{MIN_PORT}, {MAX_PORT}]"
            )
        object.__setattr__(self, "host", str(address))

    @property
    def is_ipv6(self) -> bool:
        """Return True if the host is an IPv6 address."""
        return ipaddress.ip_address(self.host).version == 6

    @classmethod
    def parse(cls, text: str) -> Endpoint:
        """Parse ``"host:port"`` or ``"[v6-host]:port"`` into an endpoint.

        Args:
            text: Endpoint string.

        Returns:
            The validated endpoint.

        Raises:
            InvalidEndpointError: If the text is malformed.
        """
        text = text.strip()
        if text.startswith("["):
            host, sep, rest = text[1:].partition("]")
            if not sep or not rest.startswith(":"):
                raise InvalidEndpointError(f"Malformed IPv6 endpoint {text!r}")
            port_text = rest[1:]
        else:
            host, sep, port_text = text.rpartition(":")
            if not sep or ":" in host:
                raise InvalidEndpointError(f"Endpoint {text!r} must be 'host:port'")
        try:
            port = int(port_text)
        except ValueError as exc:
            raise InvalidEndpointError(f"Invalid port in {text!r}", cause=exc) from exc
        return cls(host, port)

    def __str__(self) -> str:
        if self.is_ipv6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"
