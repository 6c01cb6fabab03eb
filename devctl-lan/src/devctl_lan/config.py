"""Configuration for LAN instrument exchanges."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping

PROBE_KINDS: frozenset[str] = frozenset({"ping", "tcp", "none"})


class ConnectionPolicy(Enum):
    """When the exchanger releases its connection.

    Attributes:
        CLOSE_AFTER_TRANSACTION: Open a fresh connection for every transaction
            and close it when the transaction ends.
        PERSISTENT: Keep the connection open between transactions. It is still
            closed and discarded after any failure.
    """

    CLOSE_AFTER_TRANSACTION = "close_after_transaction"
    PERSISTENT = "persistent"


@dataclass(frozen=True)
class ExchangeConfig:
    """Configuration for a :class:`~devctl_lan.exchanger.LanExchanger`.

    Attributes:
        probe: Liveness probe run before connecting ("ping", "tcp" or "none").
        probe_timeout: Upper bound for the liveness probe in seconds.
        connect_timeout: Upper bound for the TCP connect in seconds.
        transaction_timeout: Default budget for a whole transaction in seconds,
            including waiting for the lock.
        buffer_size: Size of each socket read in bytes.
        max_reply_size: Largest reply accepted before the exchange fails.
        terminator: Line terminator appended to commands and ending replies.
        encoding: Text encoding of commands and replies.
        read_until_terminator: If True, keep reading until the terminator
            arrives. If False, the first non-empty read is the whole reply
            and longer replies are truncated to ``buffer_size``.
        connection_policy: Whether connections outlive a transaction.
    """

    probe: str = "ping"
    probe_timeout: float = 5.0
    connect_timeout: float = 5.0
    transaction_timeout: float = 10.0
    buffer_size: int = 1024
    max_reply_size: int = 65536
    terminator: str = "\n"
    encoding: str = "ascii"
    read_until_terminator: bool = True
    connection_policy: ConnectionPolicy = ConnectionPolicy.CLOSE_AFTER_TRANSACTION

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.probe not in PROBE_KINDS:
            raise ValueError(
                f"Unknown probe {self.probe!r}, expected one of {sorted(PROBE_KINDS)}"
            )
        if self.probe_timeout <= 0:
            raise ValueError("probe_timeout must be positive")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.transaction_timeout <= 0:
            raise ValueError("transaction_timeout must be positive")
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        if self.max_reply_size < self.buffer_size:
            raise ValueError("max_reply_size must be at least buffer_size")
        if not self.terminator:
            raise ValueError("terminator must be non-empty")
        if not isinstance(self.connection_policy, ConnectionPolicy):
            raise ValueError(f"Invalid connection_policy {self.connection_policy!r}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExchangeConfig:
        """Create a config from a mapping such as a parsed YAML section.

        ``connection_policy`` may be given by enum value
        (e.g. ``"persistent"``).

        Args:
            data: Field names mapped to values.

        Returns:
            ExchangeConfig instance.

        Raises:
            ValueError: If the mapping has unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown exchange config keys: {sorted(unknown)}")
        kwargs = dict(data)
        policy = kwargs.get("connection_policy")
        if isinstance(policy, str):
            try:
                kwargs["connection_policy"] = ConnectionPolicy(policy.lower())
            except ValueError as exc:
                raise ValueError(f"Invalid connection_policy {policy!r}") from exc
        return cls(**kwargs)
