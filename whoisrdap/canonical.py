"""Normalize RDAP documents so repeated fetches of one network compare equal.

RDAP servers echo the queried address back inside ``links`` and return
entity ``roles`` in no particular order. Both would make every fetch of
the same network look unique to the store, so they are normalized here
before a document is stored or compared.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def _walk(node: Any) -> Any:
    if isinstance(node, list):
        return [_walk(item) for item in node]
    if not isinstance(node, dict):
        return node

    out = {key: _walk(value) for key, value in node.items() if key != "links"}
    for entity in out.get("entities") or []:
        if isinstance(entity, dict) and isinstance(entity.get("roles"), list):
            entity["roles"] = sorted(entity["roles"], key=str)
    return out


def canonicalize(rdap: dict) -> dict:
    """Return a normalized copy of *rdap*; the input is left untouched.

    Drops every ``links`` member at any depth (notices and entities
    included) and sorts each entity's ``roles``.
    """
    return _walk(rdap)


def dumps(rdap: dict) -> str:
    """Stable JSON text for a canonical document."""
    return json.dumps(rdap, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def fingerprint(addr_range: tuple[bytes, bytes], rdap: dict) -> str:
    """Content hash of the natural key ``(addr_range, rdap)``."""
    low, high = addr_range
    digest = hashlib.sha256()
    digest.update(low)
    digest.update(high)
    digest.update(dumps(rdap).encode("utf-8"))
    return digest.hexdigest()
