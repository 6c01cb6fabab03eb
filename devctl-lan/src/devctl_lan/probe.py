"""Network liveness probes run before connecting to an instrument.

A probe answers one question: does the instrument answer on the network at
all? It runs before the TCP connect so an unplugged instrument is reported as
:class:`~devctl_lan.errors.DeviceUnreachableError` instead of a generic
connection failure.
"""

from __future__ import annotations

import logging
import math
import socket
import subprocess
import sys
from typing import Protocol

logger = logging.getLogger(__name__)


class LivenessProbe(Protocol):
    """Protocol for reachability checks.

    Implementations must return within roughly *timeout* seconds and must
    not raise for an unreachable host; they return False instead.
    """

    def check(self, host: str, timeout: float) -> bool:
        """Return True if *host* answers within *timeout* seconds."""
        ...


class PingProbe:
    """One ICMP echo request sent by the system ``ping`` executable.

    Raw ICMP sockets need elevated privileges, so the setuid system tool is
    used instead.

    Args:
        executable: Name or path of the ping program.
    """

    def __init__(self, executable: str = "ping") -> None:
        self._executable = executable

    def build_command(self, host: str, timeout: float) -> list[str]:
        """Return the argv for a single echo request on this platform.

        Args:
            host: Target IP address.
            timeout: Reply timeout in seconds.
        """
        is_v6 = ":" in host
        if sys.platform == "win32":
            cmd = [self._executable, "-n", "1", "-w", str(max(1, int(timeout * 1000)))]
            if is_v6:
                cmd.append("-6")
        elif sys.platform == "darwin":
            # macOS ping6 has no per-reply timeout; the subprocess timeout bounds it.
            if is_v6:
                cmd = [f"{self._executable}6", "-c", "1"]
            else:
                cmd = [self._executable, "-c", "1", "-W", str(max(1, int(timeout * 1000)))]
        else:
            cmd = [self._executable, "-c", "1", "-W", str(max(1, math.ceil(timeout)))]
            if is_v6:
                cmd.append("-6")
        cmd.append(host)
        return cmd

    def check(self, host: str, timeout: float) -> bool:
        """Send one echo request and wait for the reply.

        Args:
            host: Target IP address.
            timeout: Reply timeout in seconds. The ping process is killed when
                it expires, even if its own timeout flag was rounded up.

        Returns:
            True if ``ping`` exited with status 0.
        """
        cmd = self.build_command(host, timeout)
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError:
            logger.warning("Ping executable %r not found; treating %s as unreachable",
                           self._executable, host)
            return False
        except subprocess.TimeoutExpired:
            logger.warning("Ping to %s did not finish within %.1fs", host, timeout)
            return False
        return result.returncode == 0


class TcpProbe:
    """Reachability check by opening and closing a TCP connection.

    Useful where ICMP is filtered but the instrument port is open.

    Args:
        port: TCP port to connect to.
    """

    def __init__(self, port: int) -> None:
        self._port = port

    @property
    def port(self) -> int:
        """The probed TCP port."""
        return self._port

    def check(self, host: str, timeout: float) -> bool:
        """Return True if a TCP connection to ``host:port`` succeeds."""
        try:
            with socket.create_connection((host, self._port), timeout=timeout):
                return True
        except OSError as exc:
            logger.debug("TCP probe of %s:%d failed: %s", host, self._port, exc)
            return False


class NullProbe:
    """Probe that always succeeds, disabling the liveness check."""

    def check(self, host: str, timeout: float) -> bool:  # noqa: ARG002
        """Return True without touching the network."""
        return True


def make_probe(kind: str, port: int) -> LivenessProbe:
    """Build the probe named in an :class:`~devctl_lan.config.ExchangeConfig`.

    Args:
        kind: "ping", "tcp" or "none".
        port: Instrument port, used by the TCP probe.

    Returns:
        The probe instance.

    Raises:
        ValueError: If *kind* is not a known probe name.
    """
    if kind == "ping":
        return PingProbe()
    if kind == "tcp":
        return TcpProbe(port)
    if kind == "none":
        return NullProbe()
    raise ValueError(f"Unknown probe kind: {kind!r}")
