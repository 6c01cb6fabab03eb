"""Tests for DevicesManager and YAML device loading."""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock

import pytest

from devctl_devices.emulator import N5746AEmulator
from devctl_devices.manager import (
    DevicesManager,
    PowerSupplyModel,
    SignalGeneratorModel,
    create_power_supply,
    create_signal_generator,
    devices_from_dict,
    load_devices,
)
from devctl_devices.n5746a import N5746A
from devctl_devices.server import EmulatorServer
from devctl_devices.smb100a import SMB100A
from devctl_lan import ConnectionPolicy, InvalidEndpointError, LanExchanger, NullProbe

_VALID_YAML = """\
exchange:
  probe: none
  transaction_timeout: 2.5
  connection_policy: persistent

devices:
  bench_psu:
    model: N5746A
    host: 192.0.2.10
    port: 5025
  rf_source:
    model: smb100a
    host: "2001:db8::20"
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "devices.yaml"
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


class TestFactories:
    """Tests for create_power_supply / create_signal_generator."""

    def test_create_power_supply(self) -> None:
        psu = create_power_supply(PowerSupplyModel.N5746A, "192.0.2.10", 5025)
        assert isinstance(psu, N5746A)
        assert str(psu.exchanger.endpoint) == "192.0.2.10:5025"

    def test_create_signal_generator(self) -> None:
        generator = create_signal_generator(SignalGeneratorModel.SMB100A, "192.0.2.20")
        assert isinstance(generator, SMB100A)
        assert generator.exchanger.endpoint.port == 5025

    def test_invalid_endpoint(self) -> None:
        with pytest.raises(InvalidEndpointError):
            create_power_supply(PowerSupplyModel.N5746A, "192.0.2.10", 70000)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestDevicesManager:
    """Tests for the named device registry."""

    def test_add_and_lookup(self) -> None:
        manager = DevicesManager()
        psu = manager.add_power_supply("bench_psu", PowerSupplyModel.N5746A, "192.0.2.10")
        gen = manager.add_signal_generator("rf", SignalGeneratorModel.SMB100A, "192.0.2.20")
        assert manager["bench_psu"] is psu
        assert manager.power_supply("bench_psu") is psu
        assert manager.signal_generator("rf") is gen
        assert "rf" in manager
        assert manager.names == ["bench_psu", "rf"]
        assert list(manager) == ["bench_psu", "rf"]
        assert len(manager) == 2

    def test_missing_name(self) -> None:
        with pytest.raises(KeyError, match="nope"):
            DevicesManager()["nope"]

    def test_wrong_kind(self) -> None:
        manager = DevicesManager()
        manager.add_power_supply("psu", PowerSupplyModel.N5746A, "192.0.2.10")
        with pytest.raises(TypeError, match="not a signal generator"):
            manager.signal_generator("psu")

    def test_duplicate_name(self) -> None:
        manager = DevicesManager()
        manager.add_power_supply("psu", PowerSupplyModel.N5746A, "192.0.2.10")
        with pytest.raises(ValueError, match="already registered"):
            manager.add_power_supply("psu", PowerSupplyModel.N5746A, "192.0.2.11")

    def test_empty_name(self) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            DevicesManager().add("", MagicMock())

    def test_close_closes_every_device(self) -> None:
        manager = DevicesManager()
        devices = [MagicMock(), MagicMock()]
        manager.add("a", devices[0])
        manager.add("b", devices[1])
        with manager:
            pass
        for device in devices:
            device.close.assert_called_once_with()


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class TestLoadDevices:
    """Tests for load_devices and devices_from_dict."""

    def test_load_valid(self, tmp_path: Path) -> None:
        manager = load_devices(_write(tmp_path, _VALID_YAML))
        psu = manager.power_supply("bench_psu")
        gen = manager.signal_generator("rf_source")

        config = psu.exchanger.config
        assert config.probe == "none"
        assert config.transaction_timeout == 2.5
        assert config.connection_policy is ConnectionPolicy.PERSISTENT
        assert gen.exchanger.config == config
        assert gen.exchanger.endpoint.host == "2001:db8::20"
        assert gen.exchanger.endpoint.port == 5025

    def test_exchange_section_optional(self) -> None:
        manager = devices_from_dict(
            {"devices": {"psu": {"model": "N5746A", "host": "192.0.2.10"}}}
        )
        assert manager.power_supply("psu").exchanger.config.probe == "ping"

    def test_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_devices(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Malformed YAML"):
            load_devices(_write(tmp_path, "devices: [unclosed\n"))

    @pytest.mark.parametrize(
        ("text", "match"),
        [
            ("- a\n- b\n", "mapping"),
            ("exchange: {}\n", "devices"),
            ("devices:\n  psu: 3\n", "must be a mapping"),
            ("devices:\n  psu:\n    host: 192.0.2.10\n", "model"),
            ("devices:\n  psu:\n    model: N5746A\n", "host"),
            ("devices:\n  psu:\n    model: E3631A\n    host: 192.0.2.10\n", "unknown model"),
            ("devices:\n  psu:\n    model: N5746A\n    host: 192.0.2.10\n    ip: x\n", "unknown fields"),
            ("exchange:\n  retries: 3\ndevices:\n  psu:\n    model: N5746A\n    host: 192.0.2.10\n", "Unknown exchange"),
        ],
    )
    def test_invalid_config(self, tmp_path: Path, text: str, match: str) -> None:
        with pytest.raises(ValueError, match=match):
            load_devices(_write(tmp_path, text))

    def test_invalid_endpoint(self, tmp_path: Path) -> None:
        text = "devices:\n  psu:\n    model: N5746A\n    host: psu.lab.local\n"
        with pytest.raises(InvalidEndpointError):
            load_devices(_write(tmp_path, text))

    def test_factory_kwargs_forwarded(self, tmp_path: Path) -> None:
        probe = NullProbe()
        manager = load_devices(_write(tmp_path, _VALID_YAML), probe=probe)
        assert manager.power_supply("bench_psu").exchanger._probe is probe


class TestLoadedDevicesAgainstEmulator:
    """A YAML-configured supply talks to the served emulator."""

    def test_end_to_end(self, tmp_path: Path, emulator_server: EmulatorServer) -> None:
        host, port = emulator_server.address
        text = (
            "exchange:\n  probe: tcp\n"
            f"devices:\n  bench_psu:\n    model: N5746A\n    host: {host}\n    port: {port}\n"
        )
        with load_devices(_write(tmp_path, text)) as manager:
            psu = manager.power_supply("bench_psu")
            psu.set_voltage(24.0)
            psu.set_output_state(True)
            assert psu.measure_voltage() == pytest.approx(24.0)

    def test_in_process_transport(
        self, exchanger_for: Callable[[N5746AEmulator], LanExchanger], emulator: N5746AEmulator
    ) -> None:
        manager = DevicesManager()
        manager.add("psu", N5746A(exchanger_for(emulator)))
        assert manager.power_supply("psu").get_identity().model == "N5746A"
