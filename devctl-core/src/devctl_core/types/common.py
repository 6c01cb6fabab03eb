"""Common types used across devctl modules.

Type Aliases:
    DeviceId: Identifies a configured device (e.g., "bench_psu").

Classes:
    InstrumentIdentity: Instrument identification metadata.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NewType

DeviceId = NewType("DeviceId", str)
"""Type alias for configured device names."""


@dataclass(frozen=True)
class InstrumentIdentity:
    """Instrument identification metadata.

    Represents the four standard fields returned by the SCPI ``*IDN?`` query.

    Attributes:
        manufacturer: Instrument manufacturer name (e.g., "Agilent Technologies").
        model: Instrument model number or name (e.g., "N5746A").
        serial: Serial number string.
        firmware: Firmware or hardware version string.

    Example:
        >>> identity = InstrumentIdentity(
        ...     manufacturer="Rohde&Schwarz",
        ...     model="SMB100A",
        ...     serial="1406.6000k03/101234",
        ...     firmware="3.1.19.15-3.50.124.73"
        ... )
    """

    manufacturer: str
    model: str
    serial: str
    firmware: str

    def matches(self, manufacturer: str, model: str) -> bool:
        """Return True if manufacturer and model match, ignoring case.

        Args:
            manufacturer: Expected manufacturer name.
            model: Expected model name.
        """
        return (
            self.manufacturer.casefold() == manufacturer.casefold()
            and self.model.casefold() == model.casefold()
        )

    def __str__(self) -> str:
        return f"{self.manufacturer} {self.model} (SN {self.serial}, FW {self.firmware})"
