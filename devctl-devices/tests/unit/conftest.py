"""Fixtures wiring drivers to an in-process N5746A emulator."""

from __future__ import annotations

from typing import Callable, Iterator

import pytest

from devctl_devices.emulator import N5746AEmulator, make_n5746a_emulator
from devctl_devices.n5746a import N5746A
from devctl_devices.server import EmulatorServer, LineInstrument
from devctl_lan import Endpoint, ExchangeConfig, LanExchanger, NullProbe


class EmulatorTransport:
    """Exchange transport delivering lines straight to an emulator."""

    def __init__(self, instrument: LineInstrument) -> None:
        self._instrument = instrument
        self._inbox = bytearray()
        self.is_open = False
        self.lines: list[str] = []

    def open(self, endpoint: Endpoint, timeout: float) -> None:
        self.is_open = True

    def write(self, payload: bytes, timeout: float) -> None:
        line = payload.decode("ascii").strip()
        self.lines.append(line)
        self._instrument.write(line)
        if "?" in line:
            self._inbox.extend((self._instrument.read() + "\n").encode("ascii"))

    def read(self, max_bytes: int, timeout: float) -> bytes:
        if not self._inbox:
            raise TimeoutError("emulator has no reply")
        data = bytes(self._inbox[:max_bytes])
        del self._inbox[:max_bytes]
        return data

    def close(self) -> None:
        self.is_open = False


@pytest.fixture
def emulator() -> N5746AEmulator:
    return make_n5746a_emulator()


@pytest.fixture
def exchanger_for() -> Callable[[LineInstrument], LanExchanger]:
    """Return a factory of exchangers bound to an in-process instrument."""

    def factory(instrument: LineInstrument) -> LanExchanger:
        return LanExchanger(
            "192.0.2.10",
            5025,
            config=ExchangeConfig(probe="none"),
            probe=NullProbe(),
            transport_factory=lambda: EmulatorTransport(instrument),
        )

    return factory


@pytest.fixture
def psu(
    emulator: N5746AEmulator, exchanger_for: Callable[[LineInstrument], LanExchanger]
) -> N5746A:
    """N5746A driver talking to the emulator without sockets."""
    return N5746A(exchanger_for(emulator))


@pytest.fixture
def emulator_server(emulator: N5746AEmulator) -> Iterator[EmulatorServer]:
    """Emulator served on an ephemeral local TCP port."""
    server = EmulatorServer(emulator, port=0)
    server.start()
    yield server
    server.stop()
