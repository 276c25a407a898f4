"""Exceptions raised by the low-level PawFeeds clients.

Public operations (scans, dispatch, registry load, trigger ticks) catch these
and turn them into result values; only the thin request helpers and the
AP-mode provisioning client let them reach their caller.
"""

from typing import Optional


class PawfeedsError(Exception):
    """Base class for all PawFeeds errors."""


class DeviceConnectionError(PawfeedsError):
    """A device could not be reached or answered with a non-2xx status."""

    def __init__(self, address: str, message: str, status: Optional[int] = None):
        super().__init__(f"[{address}] {message}")
        self.address = address
        self.status = status


class DeviceResponseError(PawfeedsError):
    """A device answered with a payload that could not be understood."""


class RelayError(PawfeedsError):
    """The cloud command relay rejected or failed a command."""


class RelayAuthError(RelayError):
    """No bearer token could be obtained, or the relay refused it."""


class RegistryError(PawfeedsError):
    """The feeder registry store could not be written."""
