"""PyVISA transport for LAN instruments.

This module provides an :class:`~devctl_lan.transport.ExchangeTransport`
backed by a PyVISA raw socket resource (``TCPIP::<host>::<port>::SOCKET``).
The PyVISA library is lazily imported so the rest of devctl-lan works without
it installed.

Use it where a VISA installation is already managing instrument I/O::

    from devctl_lan import LanExchanger, VisaTransport

    exchanger = LanExchanger("192.0.2.10", 5025, transport_factory=VisaTransport)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from devctl_lan.errors import CommunicationError

if TYPE_CHECKING:
    from devctl_lan.endpoint import Endpoint


def resource_string(endpoint: Endpoint) -> str:
    """Return the VISA raw socket resource string for *endpoint*."""
    return f"TCPIP::{endpoint.host}::{endpoint.port}::SOCKET"


class VisaTransport:
    """Exchange transport backed by PyVISA.

    The exchanger frames commands itself, so the resource is opened with no
    write termination and bytes are passed through unchanged with
    ``write_raw``/``read_raw``.

    Args:
        backend: Optional PyVISA backend string (e.g. ``"@py"`` for
            pyvisa-py). Defaults to PyVISA's own choice.
    """

    def __init__(self, backend: str | None = None) -> None:
        self._backend = backend
        self._pyvisa: Any = None
        self._rm: Any = None
        self._resource: Any = None

    @property
    def is_open(self) -> bool:
        """Return True if the resource is currently open."""
        return self._resource is not None

    def open(self, endpoint: Endpoint, timeout: float) -> None:
        """Open the raw socket resource.

        Raises:
            CommunicationError: If ``pyvisa`` is not installed.
            TimeoutError: If opening the resource timed out.
            OSError: If the resource cannot be opened.
        """
        if self._resource is not None:
            return

        try:
            import pyvisa  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise CommunicationError(
                "pyvisa library is not installed. Install with: pip install pyvisa",
                cause=exc,
            ) from exc

        self._pyvisa = pyvisa
        try:
            self._rm = pyvisa.ResourceManager(self._backend or "")
            self._resource = self._rm.open_resource(
                resource_string(endpoint),
                read_termination=None,
                write_termination="",
                open_timeout=int(timeout * 1000),
            )
        except Exception as exc:
            self.close()
            raise self._translate(exc, f"Failed to open VISA resource for {endpoint}") from exc

    def write(self, payload: bytes, timeout: float) -> None:
        """Send the payload unchanged."""
        resource = self._require_open()
        resource.timeout = int(timeout * 1000)
        try:
            resource.write_raw(payload)
        except Exception as exc:
            raise self._translate(exc, "VISA write failed") from exc

    def read(self, max_bytes: int, timeout: float) -> bytes:
        """Read one chunk of at most *max_bytes* bytes."""
        resource = self._require_open()
        resource.timeout = int(timeout * 1000)
        try:
            data: bytes = resource.read_raw(max_bytes)
        except Exception as exc:
            raise self._translate(exc, "VISA read failed") from exc
        return data[:max_bytes]

    def close(self) -> None:
        """Close the VISA resource and resource manager.

        Safe to call multiple times.
        """
        if self._resource is not None:
            try:
                self._resource.close()
            except Exception:  # pylint: disable=broad-except
                pass
            self._resource = None
        if self._rm is not None:
            try:
                self._rm.close()
            except Exception:  # pylint: disable=broad-except
                pass
            self._rm = None

    def _require_open(self) -> Any:
        if self._resource is None:
            raise OSError("VISA resource is not open")
        return self._resource

    def _translate(self, exc: Exception, message: str) -> OSError:
        """Map a PyVISA exception onto the transport contract."""
        visa_io_error = getattr(getattr(self._pyvisa, "errors", None), "VisaIOError", None)
        if visa_io_error is not None and isinstance(exc, visa_io_error):
            timeout_code = self._pyvisa.constants.StatusCode.error_timeout
            if getattr(exc, "error_code", None) == timeout_code:
                return TimeoutError(f"{message}: {exc}")
        if isinstance(exc, OSError):
            return exc
        return OSError(f"{message}: {exc}")
