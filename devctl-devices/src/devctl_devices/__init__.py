"""Instrument drivers, emulator and device manager for devctl.

This package provides drivers that talk to LAN instruments through
:class:`devctl_lan.LanExchanger`, plus an emulator for testing without
hardware.

Modules:
    common: IEEE 488.2 common commands and ``*IDN?`` parsing.
    n5746a: Agilent N5746A DC power supply driver.
    smb100a: Rohde & Schwarz SMB100A signal generator driver.
    emulator: In-process N5746A emulator.
    server: TCP server for exposing emulators on the LAN wire protocol.
    manager: Named device registry loaded from YAML.

Example:
    Connect to a real instrument::

        from devctl_devices import create_n5746a

        psu = create_n5746a("192.0.2.10", 5025)
        psu.set_voltage(12.0)
        psu.set_output_state(True)

    Use an emulator for testing::

        from devctl_devices import EmulatorServer, make_n5746a_emulator

        server = EmulatorServer(make_n5746a_emulator(), port=0)
        server.start()
"""

from devctl_devices.common import CommonCommands, parse_error_response, parse_idn_response
from devctl_devices.emulator import N5746AEmulator, N5746AEmulatorConfig, make_n5746a_emulator
from devctl_devices.manager import (
    DevicesManager,
    PowerSupplyModel,
    SignalGeneratorModel,
    create_power_supply,
    create_signal_generator,
    devices_from_dict,
    load_devices,
)
from devctl_devices.n5746a import N5746A, OutputPowerOnState
from devctl_devices.n5746a import create_instrument as create_n5746a
from devctl_devices.server import EmulatorServer, LineInstrument
from devctl_devices.smb100a import SMB100A
from devctl_devices.smb100a import create_instrument as create_smb100a

__all__ = [
    # Common commands
    "CommonCommands",
    "parse_error_response",
    "parse_idn_response",
    # Drivers
    "N5746A",
    "OutputPowerOnState",
    "SMB100A",
    "create_n5746a",
    "create_smb100a",
    # Emulator
    "N5746AEmulator",
    "N5746AEmulatorConfig",
    "make_n5746a_emulator",
    # Server
    "EmulatorServer",
    "LineInstrument",
    # Manager
    "DevicesManager",
    "PowerSupplyModel",
    "SignalGeneratorModel",
    "create_power_supply",
    "create_signal_generator",
    "devices_from_dict",
    "load_devices",
]
