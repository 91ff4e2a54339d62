"""Exception types raised by pi-dash."""

from __future__ import annotations


class DashError(Exception):
    """Base class for every pi-dash error."""


class DriverError(DashError):
    """The terminal driver could not be initialised or failed an I/O call."""


class SessionStateError(DashError):
    """An operation was attempted in the wrong lifecycle state."""
