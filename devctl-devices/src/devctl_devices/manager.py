"""Device registry built from code or from a YAML file.

The manager creates drivers for the supported instrument models and keeps
them under configured names, so that test code can ask for ``"bench_psu"``
instead of wiring exchangers by hand.

Example YAML configuration::

    exchange:              # optional, shared by all devices
      probe: tcp
      transaction_timeout: 5

    devices:
      bench_psu:
        model: N5746A
        host: 192.0.2.10
        port: 5025
      rf_source:
        model: SMB100A
        host: 192.0.2.20
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Iterator

import yaml

from devctl_core import DeviceId
from devctl_lan import ExchangeConfig
from devctl_lan.probe import LivenessProbe
from devctl_lan.transport import ExchangeTransport

from devctl_devices import n5746a, smb100a
from devctl_devices.common import CommonCommands
from devctl_devices.n5746a import N5746A
from devctl_devices.smb100a import SMB100A

logger = logging.getLogger(__name__)


class PowerSupplyModel(Enum):
    """Supported power supply models."""

    N5746A = "N5746A"


class SignalGeneratorModel(Enum):
    """Supported signal generator models."""

    SMB100A = "SMB100A"


_POWER_SUPPLY_FACTORIES: dict[PowerSupplyModel, Callable[..., N5746A]] = {
    PowerSupplyModel.N5746A: n5746a.create_instrument,
}

_SIGNAL_GENERATOR_FACTORIES: dict[SignalGeneratorModel, Callable[..., SMB100A]] = {
    SignalGeneratorModel.SMB100A: smb100a.create_instrument,
}

_DEVICE_KEYS = {"model", "host", "port"}


def create_power_supply(
    model: PowerSupplyModel,
    host: str,
    port: int = n5746a.DEFAULT_PORT,
    *,
    config: ExchangeConfig | None = None,
    probe: LivenessProbe | None = None,
    transport_factory: Callable[[], ExchangeTransport] | None = None,
) -> N5746A:
    """Create a power supply driver of the given model.

    Raises:
        InvalidEndpointError: If host or port is invalid.
    """
    factory = _POWER_SUPPLY_FACTORIES[model]
    return factory(
        host, port, config=config, probe=probe, transport_factory=transport_factory
    )


def create_signal_generator(
    model: SignalGeneratorModel,
    host: str,
    port: int = smb100a.DEFAULT_PORT,
    *,
    config: ExchangeConfig | None = None,
    probe: LivenessProbe | None = None,
    transport_factory: Callable[[], ExchangeTransport] | None = None,
) -> SMB100A:
    """Create a signal generator driver of the given model.

    Raises:
        InvalidEndpointError: If host or port is invalid.
    """
    factory = _SIGNAL_GENERATOR_FACTORIES[model]
    return factory(
        host, port, config=config, probe=probe, transport_factory=transport_factory
    )


class DevicesManager:
    """Named collection of instrument drivers.

    Drivers are created lazily connected: no network traffic happens until
    the first command. Closing the manager closes every device.
    """

    def __init__(self) -> None:
        self._devices: dict[DeviceId, CommonCommands] = {}

    def add(self, name: str, device: CommonCommands) -> None:
        """Register *device* under *name*.

        Raises:
            ValueError: If *name* is empty or already registered.
        """
        if not name:
            raise ValueError("Device name must be non-empty")
        key = DeviceId(name)
        if key in self._devices:
            raise ValueError(f"Device '{name}' is already registered")
        self._devices[key] = device
        logger.info("Registered %s as '%s'", device, name)

    def add_power_supply(
        self,
        name: str,
        model: PowerSupplyModel,
        host: str,
        port: int = n5746a.DEFAULT_PORT,
        **kwargs: Any,
    ) -> N5746A:
        """Create a power supply and register it under *name*."""
        device = create_power_supply(model, host, port, **kwargs)
        self.add(name, device)
        return device

    def add_signal_generator(
        self,
        name: str,
        model: SignalGeneratorModel,
        host: str,
        port: int = smb100a.DEFAULT_PORT,
        **kwargs: Any,
    ) -> SMB100A:
        """Create a signal generator and register it under *name*."""
        device = create_signal_generator(model, host, port, **kwargs)
        self.add(name, device)
        return device

    # -- Lookup -------------------------------------------------------------

    def __getitem__(self, name: str) -> CommonCommands:
        try:
            return self._devices[DeviceId(name)]
        except KeyError:
            raise KeyError(f"No device named '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._devices

    def __iter__(self) -> Iterator[str]:
        return iter(self._devices)

    def __len__(self) -> int:
        return len(self._devices)

    @property
    def names(self) -> list[str]:
        """Registered device names, in registration order."""
        return list(self._devices)

    def power_supply(self, name: str) -> N5746A:
        """Return the power supply registered as *name*.

        Raises:
            KeyError: If no device has that name.
            TypeError: If the device is not a power supply.
        """
        device = self[name]
        if not isinstance(device, N5746A):
            raise TypeError(f"Device '{name}' is not a power supply")
        return device

    def signal_generator(self, name: str) -> SMB100A:
        """Return the signal generator registered as *name*.

        Raises:
            KeyError: If no device has that name.
            TypeError: If the device is not a signal generator.
        """
        device = self[name]
        if not isinstance(device, SMB100A):
            raise TypeError(f"Device '{name}' is not a signal generator")
        return device

    # -- Lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Close every registered device."""
        for name, device in self._devices.items():
            logger.debug("Closing device '%s'", name)
            device.close()

    def __enter__(self) -> DevicesManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _parse_model(name: str, value: Any) -> PowerSupplyModel | SignalGeneratorModel:
    text = str(value).upper()
    for enum_type in (PowerSupplyModel, SignalGeneratorModel):
        try:
            return enum_type(text)
        except ValueError:
            continue
    supported = [m.value for m in PowerSupplyModel] + [m.value for m in SignalGeneratorModel]
    raise ValueError(f"Device '{name}' has unknown model {value!r} (supported: {supported})")


def devices_from_dict(data: Any, **kwargs: Any) -> DevicesManager:
    """Build a manager from an already parsed configuration mapping.

    Args:
        data: Mapping with an optional ``exchange`` section and a ``devices``
            section.
        **kwargs: Extra keyword arguments for every driver factory
            (e.g. ``probe`` or ``transport_factory``).

    Raises:
        ValueError: If the configuration is invalid or missing required fields.
        InvalidEndpointError: If a device has an invalid host or port.
    """
    if not isinstance(data, dict):
        raise ValueError("Config must be a YAML mapping")

    exchange_data = data.get("exchange") or {}
    if not isinstance(exchange_data, dict):
        raise ValueError("exchange must be a mapping")
    config = ExchangeConfig.from_dict(exchange_data)

    devices_data = data.get("devices")
    if not isinstance(devices_data, dict) or not devices_data:
        raise ValueError("Missing required section: devices")

    manager = DevicesManager()
    for name, device_data in devices_data.items():
        if not isinstance(device_data, dict):
            raise ValueError(f"Device '{name}' must be a mapping")
        unknown = set(device_data) - _DEVICE_KEYS
        if unknown:
            raise ValueError(f"Device '{name}' has unknown fields: {sorted(unknown)}")
        for required in ("model", "host"):
            if not device_data.get(required):
                raise ValueError(f"Device '{name}' missing required field: {required}")

        model = _parse_model(name, device_data["model"])
        host = str(device_data["host"])
        port = device_data.get("port", n5746a.DEFAULT_PORT)

        if isinstance(model, PowerSupplyModel):
            manager.add_power_supply(str(name), model, host, port, config=config, **kwargs)
        else:
            manager.add_signal_generator(str(name), model, host, port, config=config, **kwargs)

    return manager


def load_devices(path: str | Path, **kwargs: Any) -> DevicesManager:
    """Load a device manager from a YAML file.

    Args:
        path: Path to the YAML configuration file.
        **kwargs: Extra keyword arguments for every driver factory.

    Returns:
        Manager holding one driver per configured device.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the YAML is malformed or the config is invalid.
        InvalidEndpointError: If a device has an invalid host or port.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"Malformed YAML in {path}: {exc}") from exc

    manager = devices_from_dict(data, **kwargs)
    logger.info("Loaded %d devices from %s", len(manager), path)
    return manager
