"""Tests for the in-process N5746A emulator."""

from __future__ import annotations

import pytest

from devctl_devices.emulator import (
    N5746AEmulator,
    N5746AEmulatorConfig,
    _normalize_header,
    make_n5746a_emulator,
)


def _query(emu: N5746AEmulator, line: str) -> str:
    emu.write(line)
    return emu.read()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfig:
    """Tests for N5746AEmulatorConfig validation."""

    def test_defaults(self) -> None:
        config = N5746AEmulatorConfig()
        assert config.max_voltage == 40.0
        assert config.max_current == 19.0
        assert config.decimal_separator == "."

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"identity": ""}, "identity"),
            ({"max_voltage": 0}, "max_voltage"),
            ({"max_current": -1}, "max_current"),
            ({"decimal_separator": ";"}, "decimal_separator"),
        ],
    )
    def test_invalid(self, kwargs: dict[str, object], match: str) -> None:
        with pytest.raises(ValueError, match=match):
            N5746AEmulatorConfig(**kwargs)  # type: ignore[arg-type]

    def test_factory_serial(self) -> None:
        emu = make_n5746a_emulator(serial="US99")
        assert _query(emu, "*IDN?") == "Agilent Technologies,N5746A,US99,A.01.02"


# ---------------------------------------------------------------------------
# Header normalization
# ---------------------------------------------------------------------------


class TestNormalizeHeader:
    """Tests for long/short form normalization."""

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("VOLT", "VOLT"),
            (":SOURce:VOLTage:LEVel:IMMediate", "VOLT"),
            ("voltage:protection:level", "VOLT:PROT"),
            ("OUTP:STAT", "OUTP"),
            ("OUTPut:PON:STATe", "OUTP:PON"),
            ("STAT:QUES:COND", "STAT:QUES:COND"),
            ("STATus:QUEStionable:CONDition", "STAT:QUES:COND"),
            ("TRIG:SOUR", "TRIG:SOUR"),
            ("TRIGger:IMMediate", "TRIG"),
            ("MEAS:VOLT:DC", "MEAS:VOLT"),
            ("SYSTem:ERRor", "SYST:ERR"),
        ],
    )
    def test_normalize(self, header: str, expected: str) -> None:
        assert _normalize_header(header) == expected


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestCommands:
    """Tests for command handling."""

    def test_command_has_no_reply(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("VOLT 5")
        assert emu.read() == ""

    def test_long_form_and_case(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("source:voltage:level 12.5")
        assert _query(emu, "VOLT?") == "12.5000"

    def test_multiple_commands_on_one_line(self) -> None:
        emu = make_n5746a_emulator()
        assert _query(emu, "VOLT 5;CURR 1;VOLT?;CURR?;") == "5.0000;1.0000"

    def test_comma_separator_in_replies(self) -> None:
        emu = make_n5746a_emulator(decimal_separator=",")
        emu.write("VOLT 12.5;")
        assert _query(emu, "VOLT?;") == "12,5000"

    def test_comma_separator_in_arguments(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("VOLT 3,3;")
        assert _query(emu, "VOLT?;") == "3.3000"

    def test_unknown_command_queues_error(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("FOO 1;")
        assert emu.errors == [(-100, "Command error")]
        assert _query(emu, "SYST:ERR?;") == '-100,"Command error"'
        assert _query(emu, "SYST:ERR?;") == '0,"No error"'

    def test_unknown_query_queues_error(self) -> None:
        emu = make_n5746a_emulator()
        assert _query(emu, "FOO?;") == ""
        assert emu.errors == [(-100, "Command error")]

    def test_bad_parameter(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("OUTP MAYBE;")
        emu.write("VOLT abc;")
        assert emu.errors == [(-220, "Parameter error"), (-220, "Parameter error")]

    def test_out_of_range(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("CURR 20;")
        assert emu.errors == [(-222, "Data out of range")]
        assert _query(emu, "CURR?") == "0.0000"

    def test_keyword_arguments(self) -> None:
        emu = make_n5746a_emulator()
        assert _query(emu, "VOLT MAX;CURR MAX;VOLT?;CURR?;") == "40.0000;19.0000"
        assert _query(emu, "VOLT:LIM:LOW 2;VOLT MIN;VOLT?;") == "2.0000"
        assert _query(emu, "VOLT:PROT 10;VOLT:PROT DEF;VOLT:PROT?;") == "42.0000"
        assert emu.errors == []

    def test_cls_clears_errors(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("FOO;")
        emu.write("*CLS;")
        assert emu.errors == []
        assert _query(emu, "*ESR?;") == "0"

    def test_recall_empty_slot(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("*RCL 4;")
        assert emu.errors == [(-221, "Settings conflict")]

    def test_saved_states_survive_reset(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("VOLT 9;*SAV 2;*RST;*RCL 2;")
        assert _query(emu, "VOLT?;") == "9.0000"

    def test_trigger_source_only_bus(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("TRIG:SOUR EXT;")
        assert emu.errors == [(-220, "Parameter error")]

    def test_close_is_noop(self) -> None:
        emu = make_n5746a_emulator()
        emu.close()
        assert _query(emu, "*OPC?") == "1"


# ---------------------------------------------------------------------------
# Measurements
# ---------------------------------------------------------------------------


class TestMeasurements:
    """Tests for simulated readings."""

    def test_zero_when_output_off(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("VOLT 10;CURR 2;")
        assert _query(emu, "MEAS:VOLT?;MEAS:CURR?;") == "0.0000;0.0000"

    def test_setpoint_when_output_on(self) -> None:
        emu = make_n5746a_emulator()
        emu.write("VOLT 10;CURR 2;OUTP ON;")
        assert _query(emu, "MEAS:VOLT?;MEAS:CURR?;") == "10.0000;2.0000"

    def test_override(self) -> None:
        emu = make_n5746a_emulator()
        emu.set_measured_current(0.125)
        assert _query(emu, "MEAS:CURR?") == "0.1250"
        emu.set_measured_current(None)
        assert _query(emu, "MEAS:CURR?") == "0.0000"
