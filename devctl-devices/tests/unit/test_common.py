"""Tests for the IEEE 488.2 common command base."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from devctl_core import InstrumentIdentity
from devctl_devices.common import CommonCommands, parse_error_response, parse_idn_response
from devctl_lan import CommunicationError, LanExchanger, ReplyParseError


def _make(**returns: object) -> tuple[CommonCommands, MagicMock]:
    exchanger = MagicMock(spec=LanExchanger)
    for name, value in returns.items():
        getattr(exchanger, name).return_value = value
    return CommonCommands(exchanger), exchanger


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------


class TestParseIdnResponse:
    """Tests for parse_idn_response."""

    def test_four_fields(self) -> None:
        identity = parse_idn_response("Agilent Technologies,N5746A,US12345678,A.01.02")
        assert identity == InstrumentIdentity(
            manufacturer="Agilent Technologies",
            model="N5746A",
            serial="US12345678",
            firmware="A.01.02",
        )

    def test_extra_fields_join_firmware(self) -> None:
        identity = parse_idn_response("Rohde&Schwarz,SMB100A,1406.6000k03/101234,3.1,beta")
        assert identity.firmware == "3.1,beta"

    def test_whitespace_stripped(self) -> None:
        identity = parse_idn_response(" Acme , X1 , 42 , 1.0 ")
        assert identity.manufacturer == "Acme"
        assert identity.firmware == "1.0"

    def test_too_few_fields(self) -> None:
        with pytest.raises(ValueError, match="at least 4"):
            parse_idn_response("Acme,X1")


class TestParseErrorResponse:
    """Tests for parse_error_response."""

    def test_no_error(self) -> None:
        assert parse_error_response('0,"No error"') == (0, "No error")

    def test_negative_code(self) -> None:
        assert parse_error_response('-222,"Data out of range"') == (-222, "Data out of range")

    def test_code_only(self) -> None:
        assert parse_error_response("-100") == (-100, "")

    def test_invalid_code(self) -> None:
        with pytest.raises(ValueError):
            parse_error_response('oops,"No error"')


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestCommonCommands:
    """Each method sends the documented command text."""

    @pytest.mark.parametrize(
        ("method", "command"),
        [
            ("reset", "*RST;"),
            ("clear_status", "*CLS;"),
            ("wait", "*WAI;"),
            ("trigger", "*TRG;"),
        ],
    )
    def test_plain_commands(self, method: str, command: str) -> None:
        device, exchanger = _make()
        getattr(device, method)()
        exchanger.send_without_request.assert_called_once_with(command)

    def test_identify(self) -> None:
        device, exchanger = _make(send_with_request_string="Acme,X1,42,1.0")
        assert device.identify() == "Acme,X1,42,1.0"
        exchanger.send_with_request_string.assert_called_once_with("*IDN?;")

    def test_get_identity(self) -> None:
        device, _ = _make(send_with_request_string="Acme,X1,42,1.0")
        assert device.get_identity().matches("ACME", "x1")

    def test_get_identity_malformed(self) -> None:
        device, _ = _make(send_with_request_string="garbage")
        with pytest.raises(ReplyParseError) as exc_info:
            device.get_identity()
        assert exc_info.value.reply == "garbage"
        assert exc_info.value.command == "*IDN?;"

    @pytest.mark.parametrize(("reply", "expected"), [(1, True), (0, False)])
    def test_operation_complete(self, reply: int, expected: bool) -> None:
        device, exchanger = _make(send_with_request_int=reply)
        assert device.operation_complete() is expected
        exchanger.send_with_request_int.assert_called_once_with("*OPC?;")

    @pytest.mark.parametrize(("reply", "expected"), [(0, True), (1, False), (-330, False)])
    def test_self_test(self, reply: int, expected: bool) -> None:
        device, exchanger = _make(send_with_request_int=reply)
        assert device.self_test() is expected
        exchanger.send_with_request_int.assert_called_once_with("*TST?;")

    def test_event_status_enable(self) -> None:
        device, exchanger = _make(send_with_request_int=36)
        device.set_event_status_enable(36)
        exchanger.send_without_request.assert_called_once_with("*ESE 36;")
        assert device.get_event_status_enable() == 36
        exchanger.send_with_request_int.assert_called_once_with("*ESE?;")

    @pytest.mark.parametrize("mask", [-1, 256, True, 1.5])
    def test_event_status_enable_out_of_range(self, mask: object) -> None:
        device, exchanger = _make()
        with pytest.raises(ValueError, match="mask"):
            device.set_event_status_enable(mask)  # type: ignore[arg-type]
        exchanger.send_without_request.assert_not_called()

    def test_get_event_status(self) -> None:
        device, exchanger = _make(send_with_request_int=32)
        assert device.get_event_status() == 32
        exchanger.send_with_request_int.assert_called_once_with("*ESR?;")

    def test_save_and_recall(self) -> None:
        device, exchanger = _make()
        device.save_state(3)
        device.recall_state(15)
        assert [c.args[0] for c in exchanger.send_without_request.call_args_list] == [
            "*SAV 3;",
            "*RCL 15;",
        ]

    @pytest.mark.parametrize("slot", [-1, 16])
    def test_state_slot_out_of_range(self, slot: int) -> None:
        device, _ = _make()
        with pytest.raises(ValueError, match="slot"):
            device.save_state(slot)
        with pytest.raises(ValueError, match="slot"):
            device.recall_state(slot)

    def test_get_error(self) -> None:
        device, exchanger = _make(send_with_request_string='-113,"Undefined header"')
        assert device.get_error() == (-113, "Undefined header")
        exchanger.send_with_request_string.assert_called_once_with("SYST:ERR?;")

    def test_get_error_malformed(self) -> None:
        device, _ = _make(send_with_request_string="")
        with pytest.raises(ReplyParseError):
            device.get_error()

    def test_exchange_errors_propagate(self) -> None:
        device, exchanger = _make()
        exchanger.send_without_request.side_effect = CommunicationError("reset by peer")
        with pytest.raises(CommunicationError):
            device.reset()

    def test_close_and_context_manager(self) -> None:
        device, exchanger = _make()
        with device as entered:
            assert entered is device
        exchanger.close.assert_called_once_with()
