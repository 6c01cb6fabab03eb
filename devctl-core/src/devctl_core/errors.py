"""Exception types for devctl-core.

This module defines the root of the exception hierarchy used throughout the
devctl packages. All devctl exceptions inherit from DevctlError, allowing
consumers to catch every library-specific error with a single except clause.

Exception hierarchy:
    DevctlError (base)
    +-- StateError: Connection or transaction state machine violations
    +-- ExchangeError: Instrument exchange failures (see ``devctl_lan.errors``)
"""


class DevctlError(Exception):
    """Base exception for all devctl errors.

    This is the root of the devctl exception hierarchy. Catch this to handle
    any library-specific error.
    """


class StateError(DevctlError):
    """Raised for invalid state or state transition errors.

    This occurs when a connection is asked to move between lifecycle states
    in an order the state machine does not allow, for example writing to a
    connection that was already closed.
    """
