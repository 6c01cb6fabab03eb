"""Rohde & Schwarz SMB100A RF signal generator driver.

Frequencies are in hertz, times in seconds and levels in dBm. Values are
sent with explicit units so that the instrument's own default units do not
matter.
"""

from __future__ import annotations

from typing import Callable

from devctl_lan import ExchangeConfig, LanExchanger
from devctl_lan.probe import LivenessProbe
from devctl_lan.transport import ExchangeTransport

from devctl_devices.common import CommonCommands

DEFAULT_PORT = 5025


class SMB100A(CommonCommands):
    """Driver for the Rohde & Schwarz SMB100A signal generator.

    Args:
        exchanger: Exchanger bound to the generator.
    """

    # -- RF output ----------------------------------------------------------

    def set_rf_output_state(self, enabled: bool) -> None:
        """Switch the RF output on or off."""
        self._set_bool(":OUTP:STAT", enabled)

    def get_rf_output_state(self) -> bool:
        return self._query_bool(":OUTP:STAT")

    def set_frequency(self, hertz: float) -> None:
        """Set the RF frequency."""
        self._set_number(":FREQ", hertz, "Hz")

    def get_frequency(self) -> float:
        """Query the RF frequency in hertz."""
        return self._query_number(":FREQ")

    def set_power_level(self, dbm: float) -> None:
        """Set the RF level."""
        self._set_number(":POW", dbm, "dBm")

    def get_power_level(self) -> float:
        """Query the RF level in dBm."""
        return self._query_number(":POW")

    # -- Modulation ---------------------------------------------------------

    def set_modulation_state(self, enabled: bool) -> None:
        """Switch all active modulations on or off together."""
        self._set_bool(":SOUR:MOD:ALL:STAT", enabled)

    def get_modulation_state(self) -> bool:
        return self._query_bool(":SOUR:MOD:ALL:STAT")

    def set_am_state(self, enabled: bool) -> None:
        self._set_bool(":SOUR:AM:STAT", enabled)

    def get_am_state(self) -> bool:
        return self._query_bool(":SOUR:AM:STAT")

    def set_fm_state(self, enabled: bool) -> None:
        self._set_bool(":SOUR:FM:STAT", enabled)

    def get_fm_state(self) -> bool:
        return self._query_bool(":SOUR:FM:STAT")

    def set_fm_deviation(self, hertz: float) -> None:
        """Set the FM frequency deviation."""
        self._set_number(":FM:DEV", hertz, "Hz")

    def get_fm_deviation(self) -> float:
        """Query the FM frequency deviation in hertz."""
        return self._query_number(":FM:DEV")

    # -- Pulse modulation ---------------------------------------------------

    def set_pulse_modulation_state(self, enabled: bool) -> None:
        self._set_bool(":PULM:STAT", enabled)

    def get_pulse_modulation_state(self) -> bool:
        return self._query_bool(":PULM:STAT")

    def set_pulse_period(self, seconds: float) -> None:
        """Set the period of the internally generated pulse."""
        self._set_number(":PULM:PER", seconds, "s")

    def get_pulse_period(self) -> float:
        return self._query_number(":PULM:PER")

    def set_pulse_width(self, seconds: float) -> None:
        self._set_number(":PULM:WIDT", seconds, "s")

    def get_pulse_width(self) -> float:
        return self._query_number(":PULM:WIDT")

    def set_pulse_delay(self, seconds: float) -> None:
        """Set the delay from the pulse trigger to the pulse start."""
        self._set_number(":PULM:DEL", seconds, "s")

    def get_pulse_delay(self) -> float:
        return self._query_number(":PULM:DEL")


def create_instrument(
    host: str,
    port: int = DEFAULT_PORT,
    *,
    config: ExchangeConfig | None = None,
    probe: LivenessProbe | None = None,
    transport_factory: Callable[[], ExchangeTransport] | None = None,
) -> SMB100A:
    """Create an SMB100A driver for the generator at *host*:*port*.

    Raises:
        InvalidEndpointError: If host or port is invalid.
    """
    exchanger = LanExchanger(
        host, port, config=config, probe=probe, transport_factory=transport_factory
    )
    return SMB100A(exchanger)
