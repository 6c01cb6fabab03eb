"""Agilent N5746A DC power supply driver.

The N5746A is a single-output 40 V / 19 A supply of the N5700 series. Its
LAN socket interface listens on port 5025.

Example::

    from devctl_devices import create_n5746a

    psu = create_n5746a("192.0.2.10")
    psu.set_voltage(12.0)
    psu.set_current(1.5)
    psu.set_output_state(True)
    print(psu.measure_voltage())
"""

from __future__ import annotations

from enum import Enum
from typing import Callable

from devctl_lan import ExchangeConfig, LanExchanger, ReplyParseError, ScpiSpecial
from devctl_lan.probe import LivenessProbe
from devctl_lan.transport import ExchangeTransport

from devctl_devices.common import CommonCommands

DEFAULT_PORT = 5025


class OutputPowerOnState(Enum):
    """Output state restored at power-on (``OUTP:PON:STAT``)."""

    RST = "RST"
    AUTO = "AUTO"


class N5746A(CommonCommands):
    """Driver for the Agilent N5746A power supply.

    Args:
        exchanger: Exchanger bound to the supply.
    """

    # -- Output -------------------------------------------------------------

    def set_output_state(self, enabled: bool) -> None:
        """Enable or disable the output (``OUTP:STAT``)."""
        self._set_bool("OUTP:STAT", enabled)

    def get_output_state(self) -> bool:
        """Query whether the output is enabled."""
        return self._query_bool("OUTP:STAT")

    def set_output_power_on_state(self, state: OutputPowerOnState) -> None:
        """Select the output state restored at power-on."""
        self._command("OUTP:PON:STAT", state.value)

    def get_output_power_on_state(self) -> OutputPowerOnState:
        """Query the power-on output state.

        Raises:
            ReplyParseError: If the reply is neither ``RST`` nor ``AUTO``.
        """
        reply = self._query_string("OUTP:PON:STAT")
        try:
            return OutputPowerOnState(reply.upper())
        except ValueError as exc:
            raise ReplyParseError(
                f"Unknown power-on state {reply!r}",
                reply=reply,
                command="OUTP:PON:STAT?;",
                cause=exc,
            ) from exc

    def clear_protection(self) -> None:
        """Clear a latched protection fault and restore the output (``OUTP:PROT:CLE``)."""
        self._command("OUTP:PROT:CLE")

    # -- Source -------------------------------------------------------------

    def set_voltage(self, voltage: float | ScpiSpecial) -> None:
        """Set the immediate output voltage in volts.

        Args:
            voltage: Volts, or ``ScpiSpecial.MIN``/``MAX``/``DEF`` to program
                the limit the supply reports for that keyword.
        """
        self._set_number("VOLT", voltage)

    def get_voltage(self) -> float:
        """Query the immediate output voltage setpoint."""
        return self._query_number("VOLT")

    def set_current(self, current: float | ScpiSpecial) -> None:
        """Set the immediate output current in amps, or by ``MIN``/``MAX``/``DEF``."""
        self._set_number("CURR", current)

    def get_current(self) -> float:
        """Query the immediate output current setpoint."""
        return self._query_number("CURR")

    def set_triggered_voltage(self, voltage: float) -> None:
        """Set the voltage applied at the next trigger."""
        self._set_number("VOLT:TRIG", voltage)

    def get_triggered_voltage(self) -> float:
        return self._query_number("VOLT:TRIG")

    def set_triggered_current(self, current: float) -> None:
        """Set the current applied at the next trigger."""
        self._set_number("CURR:TRIG", current)

    def get_triggered_current(self) -> float:
        return self._query_number("CURR:TRIG")

    def set_ovp_level(self, voltage: float | ScpiSpecial) -> None:
        """Set the over-voltage protection level in volts.

        ``ScpiSpecial.MAX`` selects the highest level the supply allows.
        """
        self._set_number("VOLT:PROT:LEV", voltage)

    def get_ovp_level(self) -> float:
        return self._query_number("VOLT:PROT:LEV")

    def set_voltage_low_limit(self, voltage: float) -> None:
        """Set the lowest voltage the setpoint may be programmed to."""
        self._set_number("VOLT:LIM:LOW", voltage)

    def get_voltage_low_limit(self) -> float:
        return self._query_number("VOLT:LIM:LOW")

    def set_current_protection_state(self, enabled: bool) -> None:
        """Enable or disable over-current (foldback) protection."""
        self._set_bool("CURR:PROT:STAT", enabled)

    def get_current_protection_state(self) -> bool:
        return self._query_bool("CURR:PROT:STAT")

    # -- Measure ------------------------------------------------------------

    def measure_voltage(self) -> float:
        """Measure the output voltage."""
        return self._query_number("MEAS:VOLT")

    def measure_current(self) -> float:
        """Measure the output current."""
        return self._query_number("MEAS:CURR")

    # -- Trigger ------------------------------------------------------------

    def set_trigger_source_bus(self) -> None:
        """Select the bus (``*TRG``/``TRIG``) as trigger source."""
        self._command("TRIG:SOUR", "BUS")

    def get_trigger_source(self) -> str:
        return self._query_string("TRIG:SOUR")

    def initiate(self) -> None:
        """Arm the trigger system (``INIT``)."""
        self._command("INIT")

    def abort(self) -> None:
        """Disarm the trigger system and cancel pending triggered levels (``ABOR``)."""
        self._command("ABOR")

    def trigger_immediate(self) -> None:
        """Trigger the armed supply (``TRIG``)."""
        self._command("TRIG")

    # -- Status -------------------------------------------------------------

    def get_questionable_condition(self) -> int:
        """Query the questionable status condition register."""
        return self._query_int("STAT:QUES:COND")


def create_instrument(
    host: str,
    port: int = DEFAULT_PORT,
    *,
    config: ExchangeConfig | None = None,
    probe: LivenessProbe | None = None,
    transport_factory: Callable[[], ExchangeTransport] | None = None,
) -> N5746A:
    """Create an N5746A driver for the supply at *host*:*port*.

    No connection is made until the first command.

    Raises:
        InvalidEndpointError: If host or port is invalid.
    """
    exchanger = LanExchanger(
        host, port, config=config, probe=probe, transport_factory=transport_factory
    )
    return N5746A(exchanger)
