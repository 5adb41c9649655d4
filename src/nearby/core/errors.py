"""
Error taxonomy.

Location input problems (`LocationInputError`) are always recovered locally by the
write path and the migration: the offending field is dropped. The remaining errors are
surfaced to callers (API/CLI) so they can show a specific message.
"""

from __future__ import annotations


class NearbyError(Exception):
    """Base class for all errors raised by this package."""


class LocationInputError(NearbyError, ValueError):
    """A location value could not be turned into a canonical geo-point."""


class MalformedLocationError(LocationInputError):
    """Wrong token count or a non-numeric token."""


class OutOfRangeLocationError(LocationInputError):
    """Both coordinate orderings fail range validation."""


class NoUsableOriginError(NearbyError):
    """A search was requested from a user without a valid stored location."""

    def __init__(self, message: str, *, reason: str = "missing"):
        super().__init__(message)
        self.reason = reason


class InvalidSearchInputError(NearbyError, ValueError):
    """Search parameters (e.g. radius) are not usable."""


class UserNotFoundError(NearbyError, LookupError):
    pass


class StoreUnavailableError(NearbyError):
    """The document store could not be reached or rejected the query."""


class LocationLookupError(NearbyError):
    """An IP geolocation or place search lookup failed or found nothing."""
