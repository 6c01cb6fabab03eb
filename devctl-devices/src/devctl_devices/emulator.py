"""Agilent N5746A power supply emulator.

Provides an in-process fake of the N5746A command subset used by
:class:`~devctl_devices.n5746a.N5746A`. Lines may hold several
``;``-separated commands; the replies of the queries among them are joined
with ``;`` into one response.

The decimal separator of numeric replies is configurable, to emulate
instruments that answer ``12,5000`` instead of ``12.5000``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from devctl_lan import ScpiSpecial, parse_bool, parse_int, parse_special

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Long-form -> short-form SCPI keyword map
# ---------------------------------------------------------------------------

_LONG_TO_SHORT: dict[str, str] = {
    "VOLTAGE": "VOLT",
    "CURRENT": "CURR",
    "OUTPUT": "OUTP",
    "MEASURE": "MEAS",
    "SOURCE": "SOUR",
    "LEVEL": "LEV",
    "IMMEDIATE": "IMM",
    "AMPLITUDE": "AMPL",
    "STATE": "STAT",
    "STATUS": "STAT",
    "SYSTEM": "SYST",
    "ERROR": "ERR",
    "PROTECTION": "PROT",
    "LIMIT": "LIM",
    "TRIGGER": "TRIG",
    "TRIGGERED": "TRIG",
    "CLEAR": "CLE",
    "INITIATE": "INIT",
    "ABORT": "ABOR",
    "QUESTIONABLE": "QUES",
    "CONDITION": "COND",
}

# Optional nodes, dropped anywhere but at the root
_OPTIONAL_NODES: set[str] = {"LEV", "IMM", "AMPL", "DC", "STAT"}
# Optional roots, dropped only as the first node
_OPTIONAL_ROOTS: set[str] = {"SOUR"}

_COMMAND_ERROR = (-100, "Command error")
_PARAMETER_ERROR = (-220, "Parameter error")
_DATA_OUT_OF_RANGE = (-222, "Data out of range")


def _normalize_header(header: str) -> str:
    """Normalize a SCPI header to canonical short form.

    ``:SOURce:VOLTage:LEVel:IMMediate`` and ``VOLT`` both become ``VOLT``.
    """
    upper = header.upper().lstrip(":")
    segments = [_LONG_TO_SHORT.get(seg, seg) for seg in upper.split(":")]
    if len(segments) > 1 and segments[0] in _OPTIONAL_ROOTS:
        segments = segments[1:]
    kept = [segments[0]] + [seg for seg in segments[1:] if seg not in _OPTIONAL_NODES]
    return ":".join(kept)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class N5746AEmulatorConfig:
    """Configuration for an N5746A emulator instance.

    Args:
        identity: ``*IDN?`` response string.
        max_voltage: Maximum programmable voltage in volts (> 0).
        max_current: Maximum programmable current in amps (> 0).
        decimal_separator: ``"."`` or ``","`` used in numeric replies.
    """

    identity: str = "Agilent Technologies,N5746A,US00000001,A.01.02"
    max_voltage: float = 40.0
    max_current: float = 19.0
    decimal_separator: str = "."

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if self.max_voltage <= 0:
            raise ValueError("max_voltage must be > 0")
        if self.max_current <= 0:
            raise ValueError("max_current must be > 0")
        if self.decimal_separator not in (".", ","):
            raise ValueError("decimal_separator must be '.' or ','")


# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------


@dataclass
class _SupplyState:
    voltage: float = 0.0
    current: float = 0.0
    triggered_voltage: float | None = None
    triggered_current: float | None = None
    output_enabled: bool = False
    power_on_state: str = "RST"
    ovp_level: float = 0.0
    voltage_low_limit: float = 0.0
    current_protection: bool = False
    trigger_source: str = "BUS"
    initiated: bool = False
    questionable: int = 0
    measured_voltage: float | None = None
    measured_current: float | None = None
    event_status_enable: int = 0
    saved: dict[int, tuple[float, float, bool]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class N5746AEmulator:
    """In-process N5746A power supply emulator.

    Use :meth:`write` to submit a line and :meth:`read` to collect the reply
    of the queries it contained.

    Args:
        config: Emulator configuration. Defaults to a 40 V / 19 A supply.
    """

    def __init__(self, config: N5746AEmulatorConfig | None = None) -> None:
        self._config = config if config is not None else N5746AEmulatorConfig()
        self._state = _SupplyState(ovp_level=self._ovp_default)
        self._responses: list[str] = []
        self._error_queue: list[tuple[int, str]] = []
        self._event_status = 0

        self._set_handlers: dict[str, Callable[[str], None]] = {
            "OUTP": self._set_output,
            "OUTP:PON": self._set_power_on_state,
            "OUTP:PROT:CLE": self._clear_protection,
            "VOLT": self._set_voltage,
            "CURR": self._set_current,
            "VOLT:TRIG": self._set_triggered_voltage,
            "CURR:TRIG": self._set_triggered_current,
            "VOLT:PROT": self._set_ovp,
            "VOLT:LIM:LOW": self._set_voltage_low_limit,
            "CURR:PROT": self._set_current_protection,
            "TRIG:SOUR": self._set_trigger_source,
            "TRIG": self._trigger,
            "INIT": self._initiate,
            "ABOR": self._abort,
        }

        self._query_handlers: dict[str, Callable[[], str]] = {
            "OUTP?": lambda: self._format_bool(self._state.output_enabled),
            "OUTP:PON?": lambda: self._state.power_on_state,
            "VOLT?": lambda: self._format(self._state.voltage),
            "CURR?": lambda: self._format(self._state.current),
            "VOLT:TRIG?": self._get_triggered_voltage,
            "CURR:TRIG?": self._get_triggered_current,
            "VOLT:PROT?": lambda: self._format(self._state.ovp_level),
            "VOLT:LIM:LOW?": lambda: self._format(self._state.voltage_low_limit),
            "CURR:PROT?": lambda: self._format_bool(self._state.current_protection),
            "MEAS:VOLT?": self._measure_voltage,
            "MEAS:CURR?": self._measure_current,
            "TRIG:SOUR?": lambda: self._state.trigger_source,
            "STAT:QUES:COND?": lambda: str(self._state.questionable),
        }

    @property
    def config(self) -> N5746AEmulatorConfig:
        return self._config

    @property
    def _ovp_default(self) -> float:
        return round(self._config.max_voltage * 1.05, 4)

    # -- Line interface -----------------------------------------------------

    def write(self, message: str) -> None:
        """Process a line of ``;``-separated SCPI commands and queries."""
        for part in message.split(";"):
            line = part.strip()
            if not line:
                continue
            is_query, header, args = self._parse_line(line)
            if self._handle_common_command(header, args, is_query):
                continue
            self._dispatch(header, args, is_query)

    def read(self) -> str:
        """Return and clear the buffered replies, joined with ``;``."""
        response = ";".join(self._responses)
        self._responses = []
        return response

    def close(self) -> None:
        """Close the emulator (no-op for the in-process fake)."""

    # -- Test helpers -------------------------------------------------------

    def set_measured_voltage(self, value: float | None) -> None:
        """Override the ``MEAS:VOLT?`` reading, None to follow the setpoint."""
        self._state.measured_voltage = value

    def set_measured_current(self, value: float | None) -> None:
        """Override the ``MEAS:CURR?`` reading, None to follow the setpoint."""
        self._state.measured_current = value

    def set_questionable_condition(self, value: int) -> None:
        """Set the questionable condition register (e.g. 0x02 for OVP)."""
        self._state.questionable = value

    @property
    def errors(self) -> list[tuple[int, str]]:
        """Copy of the pending error queue, oldest first."""
        return list(self._error_queue)

    # -- Parsing ------------------------------------------------------------

    @staticmethod
    def _parse_line(line: str) -> tuple[bool, str, str]:
        """Split one command into (is_query, header, args)."""
        is_query = "?" in line
        if is_query:
            qmark_idx = line.index("?")
            header = line[: qmark_idx + 1]
            args = line[qmark_idx + 1 :].strip()
        else:
            parts = line.split(None, 1)
            header = parts[0]
            args = parts[1] if len(parts) > 1 else ""
        return is_query, header, args

    def _handle_common_command(self, header: str, args: str, is_query: bool) -> bool:
        """Handle IEEE 488.2 and ``SYST:ERR?``. Returns True if handled."""
        upper = header.upper()
        if is_query:
            fixed = {
                "*IDN?": lambda: self._config.identity,
                "*OPC?": lambda: "1",
                "*TST?": lambda: "0",
                "*ESE?": lambda: str(self._state.event_status_enable),
                "*ESR?": self._pop_event_status,
            }
            if upper in fixed:
                self._responses.append(fixed[upper]())
                return True
            if _normalize_header(header.rstrip("?")) == "SYST:ERR":
                self._responses.append(self._pop_error())
                return True
            return False

        if upper == "*RST":
            self._reset()
        elif upper == "*CLS":
            self._error_queue.clear()
            self._event_status = 0
        elif upper in ("*WAI", "*OPC"):
            pass
        elif upper == "*TRG":
            self._trigger(args)
        elif upper == "*ESE":
            self._set_event_status_enable(args)
        elif upper == "*SAV":
            self._save(args)
        elif upper == "*RCL":
            self._recall(args)
        else:
            return False
        return True

    def _dispatch(self, header: str, args: str, is_query: bool) -> None:
        if is_query:
            query = self._query_handlers.get(_normalize_header(header.rstrip("?")) + "?")
            if query is None:
                self._push_error(_COMMAND_ERROR)
                return
            self._responses.append(query())
            return
        setter = self._set_handlers.get(_normalize_header(header))
        if setter is None:
            self._push_error(_COMMAND_ERROR)
            return
        setter(args)

    # -- Formatting ---------------------------------------------------------

    def _format(self, value: float) -> str:
        return f"{value:.4f}".replace(".", self._config.decimal_separator)

    @staticmethod
    def _format_bool(value: bool) -> str:
        return "1" if value else "0"

    # -- Helpers ------------------------------------------------------------

    def _push_error(self, error: tuple[int, str]) -> None:
        logger.debug("Emulated N5746A error %d: %s", *error)
        self._error_queue.append(error)
        # Command errors set CME (bit 5), execution errors EXE (bit 4)
        self._event_status |= 0x20 if error[0] > -200 else 0x10

    def _pop_error(self) -> str:
        if self._error_queue:
            code, msg = self._error_queue.pop(0)
            return f'{code},"{msg}"'
        return '0,"No error"'

    def _pop_event_status(self) -> str:
        value, self._event_status = self._event_status, 0
        return str(value)

    def _number(
        self, args: str, upper: float, lower: float = 0.0, default: float | None = None
    ) -> float | None:
        # MIN, MAX and DEF resolve to lower, upper and default (lower if None)
        try:
            value = parse_special(args)
        except ValueError:
            self._push_error(_PARAMETER_ERROR)
            return None
        if value is ScpiSpecial.MIN:
            return lower
        if value is ScpiSpecial.MAX:
            return upper
        if value is ScpiSpecial.DEF:
            return lower if default is None else default
        if not lower <= value <= upper:
            self._push_error(_DATA_OUT_OF_RANGE)
            return None
        return value

    def _bool(self, args: str) -> bool | None:
        try:
            return parse_bool(args)
        except ValueError:
            self._push_error(_PARAMETER_ERROR)
            return None

    def _slot(self, args: str) -> int | None:
        try:
            slot = parse_int(args)
        except ValueError:
            self._push_error(_PARAMETER_ERROR)
            return None
        if not 0 <= slot <= 15:
            self._push_error(_DATA_OUT_OF_RANGE)
            return None
        return slot

    def _reset(self) -> None:
        saved = self._state.saved
        self._state = _SupplyState(ovp_level=self._ovp_default, saved=saved)

    # -- Set handlers -------------------------------------------------------

    def _set_output(self, args: str) -> None:
        value = self._bool(args)
        if value is not None:
            self._state.output_enabled = value

    def _set_power_on_state(self, args: str) -> None:
        token = args.strip().upper()
        if token not in ("RST", "AUTO"):
            self._push_error(_PARAMETER_ERROR)
            return
        self._state.power_on_state = token

    def _clear_protection(self, args: str) -> None:
        self._state.questionable = 0

    def _set_voltage(self, args: str) -> None:
        value = self._number(args, self._config.max_voltage, self._state.voltage_low_limit)
        if value is not None:
            self._state.voltage = value

    def _set_current(self, args: str) -> None:
        value = self._number(args, self._config.max_current)
        if value is not None:
            self._state.current = value

    def _set_triggered_voltage(self, args: str) -> None:
        value = self._number(args, self._config.max_voltage)
        if value is not None:
            self._state.triggered_voltage = value

    def _set_triggered_current(self, args: str) -> None:
        value = self._number(args, self._config.max_current)
        if value is not None:
            self._state.triggered_current = value

    def _set_ovp(self, args: str) -> None:
        value = self._number(args, self._ovp_default, default=self._ovp_default)
        if value is not None:
            self._state.ovp_level = value

    def _set_voltage_low_limit(self, args: str) -> None:
        value = self._number(args, self._config.max_voltage)
        if value is not None:
            self._state.voltage_low_limit = value

    def _set_current_protection(self, args: str) -> None:
        value = self._bool(args)
        if value is not None:
            self._state.current_protection = value

    def _set_trigger_source(self, args: str) -> None:
        if args.strip().upper() != "BUS":
            self._push_error(_PARAMETER_ERROR)
            return
        self._state.trigger_source = "BUS"

    def _set_event_status_enable(self, args: str) -> None:
        try:
            mask = parse_int(args)
        except ValueError:
            self._push_error(_PARAMETER_ERROR)
            return
        if not 0 <= mask <= 255:
            self._push_error(_DATA_OUT_OF_RANGE)
            return
        self._state.event_status_enable = mask

    def _save(self, args: str) -> None:
        slot = self._slot(args)
        if slot is not None:
            s = self._state
            s.saved[slot] = (s.voltage, s.current, s.output_enabled)

    def _recall(self, args: str) -> None:
        slot = self._slot(args)
        if slot is None:
            return
        if slot not in self._state.saved:
            self._push_error((-221, "Settings conflict"))
            return
        s = self._state
        s.voltage, s.current, s.output_enabled = s.saved[slot]

    # -- Trigger system -----------------------------------------------------

    def _initiate(self, args: str) -> None:
        self._state.initiated = True

    def _abort(self, args: str) -> None:
        s = self._state
        s.initiated = False
        s.triggered_voltage = None
        s.triggered_current = None

    def _trigger(self, args: str) -> None:
        s = self._state
        if not s.initiated:
            self._push_error((-211, "Trigger ignored"))
            return
        if s.triggered_voltage is not None:
            s.voltage = s.triggered_voltage
        if s.triggered_current is not None:
            s.current = s.triggered_current
        s.initiated = False
        s.triggered_voltage = None
        s.triggered_current = None

    # -- Query handlers -----------------------------------------------------

    def _get_triggered_voltage(self) -> str:
        s = self._state
        return self._format(s.voltage if s.triggered_voltage is None else s.triggered_voltage)

    def _get_triggered_current(self) -> str:
        s = self._state
        return self._format(s.current if s.triggered_current is None else s.triggered_current)

    def _measure_voltage(self) -> str:
        s = self._state
        if s.measured_voltage is not None:
            return self._format(s.measured_voltage)
        return self._format(s.voltage if s.output_enabled else 0.0)

    def _measure_current(self) -> str:
        s = self._state
        if s.measured_current is not None:
            return self._format(s.measured_current)
        return self._format(s.current if s.output_enabled else 0.0)


def make_n5746a_emulator(
    serial: str = "US00000001", decimal_separator: str = "."
) -> N5746AEmulator:
    """Create an N5746A emulator.

    Args:
        serial: Serial number for the ``*IDN?`` response.
        decimal_separator: Separator used in numeric replies.

    Returns:
        Configured emulator instance (40 V, 19 A).
    """
    config = N5746AEmulatorConfig(
        identity=f"Agilent Technologies,N5746A,{serial},A.01.02",
        decimal_separator=decimal_separator,
    )
    return N5746AEmulator(config)
