"""Core library for devctl instrument control.

This package provides the foundational error types and data types shared by
the devctl packages. It has no external dependencies and serves as the base
layer for ``devctl_lan`` and ``devctl_devices``.

Key components:
    - Types: ``DeviceId`` and ``InstrumentIdentity``.
    - Errors: ``DevctlError`` root exception and ``StateError``.
"""

from devctl_core.errors import DevctlError, StateError
from devctl_core.types import DeviceId, InstrumentIdentity

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Types
    "DeviceId",
    "InstrumentIdentity",
    # Errors
    "DevctlError",
    "StateError",
]
