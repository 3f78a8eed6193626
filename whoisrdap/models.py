"""Dataclasses for cached networks and lookup results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from .address import AddressClass, IPAddress, from_key


@dataclass
class NetworkRecord:
    """One stored network block and its canonical RDAP document."""

    record_id: int
    addr_range: tuple[bytes, bytes]  # inclusive 16-byte (low, high) keys
    rdap: dict[str, Any]
    validated_at: datetime
    first_seen: datetime

    @property
    def start_address(self) -> IPAddress:
        return from_key(self.addr_range[0])

    @property
    def end_address(self) -> IPAddress:
        return from_key(self.addr_range[1])

    def contains(self, key: bytes) -> bool:
        low, high = self.addr_range
        return low <= key <= high


@dataclass
class Found:
    """RDAP data for a looked-up address.

    ``record_id`` is ``None`` when no store is configured; ``cached`` tells
    whether the answer came from the store without a fetch.
    """

    rdap: dict[str, Any]
    record_id: Optional[int]
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"rdap": self.rdap, "record_id": self.record_id}


@dataclass
class Rejected:
    """A special-purpose address that is never looked up."""

    address: str
    classification: AddressClass

    def to_dict(self) -> dict[str, Any]:
        return {}


LookupResult = Union[Found, Rejected]
