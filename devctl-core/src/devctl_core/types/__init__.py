"""Core data types for devctl.

Submodules:
    common: Base types (DeviceId, InstrumentIdentity)
"""

from devctl_core.types.common import DeviceId, InstrumentIdentity

__all__ = [
    "DeviceId",
    "InstrumentIdentity",
]
