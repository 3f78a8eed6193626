"""Error kinds surfaced by lookups."""

from __future__ import annotations


class WhoisRdapError(Exception):
    """Base class for all whois-rdap errors."""


class InvalidAddress(WhoisRdapError, ValueError):
    """Text that is neither an IPv4 nor an IPv6 address, or a bad range bound."""


class UnsupportedVersion(WhoisRdapError):
    """RDAP network object whose ipVersion is neither v4 nor v6."""


class FetchFailed(WhoisRdapError):
    """The RDAP server could not be reached or answered with an unusable status."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class StoreUnavailable(WhoisRdapError):
    """A backing store operation failed."""
