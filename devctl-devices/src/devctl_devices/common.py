"""IEEE 488.2 common commands shared by every devctl instrument driver.

Every driver wraps one :class:`~devctl_lan.exchanger.LanExchanger` and sends
``;``-terminated SCPI commands through it. Exchange errors are never caught
here: a driver call fails with the same
:class:`~devctl_lan.errors.ExchangeError` the exchanger raised.
"""

from __future__ import annotations

from types import TracebackType

from devctl_core import InstrumentIdentity
from devctl_lan import (
    LanExchanger,
    ReplyParseError,
    ScpiSpecial,
    format_bool,
    format_number,
    parse_int,
)

MAX_STATE_SLOT = 15
MAX_REGISTER_MASK = 255


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Parse a ``*IDN?`` reply into an :class:`InstrumentIdentity`.

    The reply has four comma-separated fields::

        manufacturer,model,serial_number,firmware_version

    Extra fields are joined into the firmware string.

    Args:
        response: The raw ``*IDN?`` reply.

    Returns:
        Parsed identity.

    Raises:
        ValueError: If the reply has fewer than four fields.
    """
    parts = [p.strip() for p in response.split(",")]
    if len(parts) < 4:
        raise ValueError(
            f"Expected at least 4 comma-separated fields in *IDN? response, "
            f"got {len(parts)}: {response!r}"
        )
    return InstrumentIdentity(
        manufacturer=parts[0],
        model=parts[1],
        serial=parts[2],
        firmware=",".join(parts[3:]),
    )


def parse_error_response(response: str) -> tuple[int, str]:
    """Parse a ``SYST:ERR?`` reply such as ``-100,"Command error"``.

    Returns:
        Tuple of (error code, message). Code 0 means the queue is empty.

    Raises:
        ValueError: If the reply has no integer code.
    """
    code_text, _, message = response.partition(",")
    code = parse_int(code_text)
    return code, message.strip().strip('"')


def _check_range(name: str, value: int, upper: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= upper:
        raise ValueError(f"{name} must be an integer in [0, {upper}], got {value!r}")


class CommonCommands:
    """Base driver implementing the IEEE 488.2 common command set.

    Args:
        exchanger: Exchanger bound to the instrument endpoint.
    """

    def __init__(self, exchanger: LanExchanger) -> None:
        self._exchanger = exchanger

    @property
    def exchanger(self) -> LanExchanger:
        """The exchanger this driver talks through."""
        return self._exchanger

    # -- Helpers used by drivers -------------------------------------------

    def _command(self, header: str, *args: str) -> None:
        text = header if not args else f"{header} {' '.join(args)}"
        self._exchanger.send_without_request(f"{text};")

    def _set_number(
        self, header: str, value: float | ScpiSpecial, unit: str | None = None
    ) -> None:
        args = [format_number(value if isinstance(value, ScpiSpecial) else float(value))]
        if unit is not None:
            args.append(unit)
        self._command(header, *args)

    def _set_bool(self, header: str, state: bool) -> None:
        self._command(header, format_bool(state))

    def _query_string(self, header: str) -> str:
        return self._exchanger.send_with_request_string(f"{header}?;")

    def _query_int(self, header: str) -> int:
        return self._exchanger.send_with_request_int(f"{header}?;")

    def _query_number(self, header: str) -> float:
        return self._exchanger.send_with_request_double(f"{header}?;")

    def _query_bool(self, header: str) -> bool:
        return self._query_int(header) == 1

    # -- Identity ------------------------------------------------------------

    def identify(self) -> str:
        """Query the identification string (``*IDN?``)."""
        return self._query_string("*IDN")

    def get_identity(self) -> InstrumentIdentity:
        """Query and parse the identification (``*IDN?``).

        Raises:
            ReplyParseError: If the reply is not a four-field identity.
        """
        reply = self.identify()
        try:
            return parse_idn_response(reply)
        except ValueError as exc:
            raise ReplyParseError(
                f"Malformed identity {reply!r}", reply=reply, command="*IDN?;", cause=exc
            ) from exc

    # -- Status and housekeeping ---------------------------------------------

    def reset(self) -> None:
        """Reset the instrument to its power-on defaults (``*RST``)."""
        self._command("*RST")

    def clear_status(self) -> None:
        """Clear the status registers and error queue (``*CLS``)."""
        self._command("*CLS")

    def operation_complete(self) -> bool:
        """Return True once all pending operations are complete (``*OPC?``)."""
        return self._query_bool("*OPC")

    def wait(self) -> None:
        """Hold off further commands until pending ones finish (``*WAI``)."""
        self._command("*WAI")

    def self_test(self) -> bool:
        """Run the self test (``*TST?``) and return True if it passed."""
        return self._query_int("*TST") == 0

    def get_event_status_enable(self) -> int:
        """Query the standard event status enable mask (``*ESE?``)."""
        return self._query_int("*ESE")

    def set_event_status_enable(self, mask: int) -> None:
        """Set the standard event status enable mask (``*ESE``).

        Args:
            mask: Register mask, 0-255.

        Raises:
            ValueError: If *mask* is out of range.
        """
        _check_range("mask", mask, MAX_REGISTER_MASK)
        self._command("*ESE", str(mask))

    def get_event_status(self) -> int:
        """Read and clear the standard event status register (``*ESR?``)."""
        return self._query_int("*ESR")

    def save_state(self, slot: int) -> None:
        """Save the instrument state to memory *slot* (``*SAV``), 0-15."""
        _check_range("slot", slot, MAX_STATE_SLOT)
        self._command("*SAV", str(slot))

    def recall_state(self, slot: int) -> None:
        """Recall a state saved with :meth:`save_state` (``*RCL``), 0-15."""
        _check_range("slot", slot, MAX_STATE_SLOT)
        self._command("*RCL", str(slot))

    def trigger(self) -> None:
        """Send a bus trigger (``*TRG``)."""
        self._command("*TRG")

    def get_error(self) -> tuple[int, str]:
        """Pop the oldest entry of the error queue (``SYST:ERR?``).

        Returns:
            Tuple of (code, message), ``(0, "No error")`` when empty.

        Raises:
            ReplyParseError: If the reply has no integer code.
        """
        reply = self._query_string("SYST:ERR")
        try:
            return parse_error_response(reply)
        except ValueError as exc:
            raise ReplyParseError(
                f"Malformed error entry {reply!r}", reply=reply, command="SYST:ERR?;", cause=exc
            ) from exc

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close the underlying exchanger."""
        self._exchanger.close()

    def __enter__(self) -> CommonCommands:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._exchanger.endpoint})"
