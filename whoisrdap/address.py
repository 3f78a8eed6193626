"""Address parsing, classification, and 128-bit range keys.

Every address the cache touches is reduced to a 16-byte big-endian key.
IPv4 addresses are embedded through their IPv4-mapped IPv6 form
(``::ffff:a.b.c.d``) so that IPv4 and IPv6 ranges share one ordering and
can be compared byte-wise by the store.
"""

from __future__ import annotations

import enum
import ipaddress
import re
from typing import Any, Union

from .exceptions import InvalidAddress, UnsupportedVersion

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

KEY_LENGTH = 16
_MAPPED_PREFIX = b"\x00" * 10 + b"\xff\xff"

# Patterns that replace the dot in defanged IPs
_DOT_PATTERNS = [
    r"\[\.\]",
    r"\[dot\]",
    r"\(dot\)",
    r"\(\.\)",
]
_DOT_RE = re.compile("|".join(_DOT_PATTERNS), re.IGNORECASE)


class AddressClass(str, enum.Enum):
    UNICAST = "unicast"
    UNSPECIFIED = "unspecified"
    LOOPBACK = "loopback"
    LINK_LOCAL = "link-local"
    MULTICAST = "multicast"
    RESERVED = "reserved"
    PRIVATE = "private"


def refang(text: str) -> str:
    """Replace defanged dot notations with actual dots.

    Handles: [.] [dot] (dot) (.)
    """
    return _DOT_RE.sub(".", text.strip())


def parse_address(text: str) -> IPAddress:
    """Parse a single IPv4 or IPv6 address, accepting defanged input."""
    cleaned = refang(text)
    try:
        return ipaddress.ip_address(cleaned)
    except ValueError:
        raise InvalidAddress(f"Not an IPv4 or IPv6 address: {text!r}") from None


def unmap(addr: IPAddress) -> IPAddress:
    """Return the embedded IPv4 address of an IPv4-mapped IPv6 address."""
    if addr.version == 6 and addr.ipv4_mapped is not None:
        return addr.ipv4_mapped
    return addr


def classify(addr: IPAddress) -> AddressClass:
    """Classify an address; only UNICAST is worth asking an RDAP server about."""
    addr = unmap(addr)

    if addr.is_unspecified:
        return AddressClass.UNSPECIFIED
    if addr.is_loopback:
        return AddressClass.LOOPBACK
    if addr.is_link_local:
        return AddressClass.LINK_LOCAL
    if addr.is_multicast:
        return AddressClass.MULTICAST
    if addr.is_reserved:
        return AddressClass.RESERVED
    if addr.is_private:
        return AddressClass.PRIVATE
    if not addr.is_global:
        # e.g. 100.64.0.0/10 shared address space
        return AddressClass.RESERVED
    return AddressClass.UNICAST


def to_key(addr: IPAddress) -> bytes:
    """Return the 16-byte key for *addr* in the unified IPv6 space."""
    if addr.version == 4:
        return _MAPPED_PREFIX + addr.packed
    return addr.packed


def from_key(key: bytes) -> IPAddress:
    """Inverse of :func:`to_key`; IPv4-mapped keys come back as IPv4."""
    if len(key) != KEY_LENGTH:
        raise InvalidAddress(f"Range key must be {KEY_LENGTH} bytes, got {len(key)}")
    if key.startswith(_MAPPED_PREFIX):
        return ipaddress.IPv4Address(key[len(_MAPPED_PREFIX):])
    return ipaddress.IPv6Address(key)


def _bound(value: Any, version: int, last: bool) -> IPAddress:
    if not isinstance(value, str) or not value:
        raise InvalidAddress(f"Missing range bound: {value!r}")
    try:
        if "/" in value:
            net = ipaddress.ip_network(value, strict=False)
            addr = net.broadcast_address if last else net.network_address
        else:
            addr = ipaddress.ip_address(value)
    except ValueError:
        raise InvalidAddress(f"Invalid range bound: {value!r}") from None
    if addr.version != version:
        raise InvalidAddress(f"Range bound {value!r} is not IPv{version}")
    return addr


def extract_range(rdap: dict) -> tuple[bytes, bytes]:
    """Return the inclusive ``(low, high)`` keys of an RDAP network object.

    ``startAddress``/``endAddress`` are taken as the literal first and last
    addresses. A bound written in CIDR form is widened to the first (start)
    or last (end) address of that block.
    """
    ip_version = rdap.get("ipVersion")
    if ip_version == "v4":
        version = 4
    elif ip_version == "v6":
        version = 6
    else:
        raise UnsupportedVersion(f"Unsupported IP version: {ip_version!r}")

    low = to_key(_bound(rdap.get("startAddress"), version, last=False))
    high = to_key(_bound(rdap.get("endAddress"), version, last=True))
    if low > high:
        raise InvalidAddress(
            f"Range start {rdap.get('startAddress')} is after end {rdap.get('endAddress')}"
        )
    return low, high
