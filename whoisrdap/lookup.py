"""Lookup engine: cache first, then RDAP, then revalidate into the cache."""

from __future__ import annotations

import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Iterable

from .address import AddressClass, classify, extract_range, parse_address, to_key, unmap
from .canonical import canonicalize
from .config import LookupConfig
from .database import RangeCache
from .fetch import fetch_rdap
from .models import Found, LookupResult, Rejected

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], dict]


class RdapLookup:
    """Answer "who controls this IP?" from the range cache or RDAP.

    A lookup for any address inside an already-cached network is served from
    the store as long as that network was validated within the freshness
    horizon. Fetch and store errors propagate; nothing falls back to stale
    data.
    """

    def __init__(
        self,
        config: LookupConfig,
        store: RangeCache | None = None,
        fetcher: Fetcher | None = None,
    ):
        self.config = config
        if store is None and config.store_path is not None:
            store = RangeCache(config.store_path)
            store.init_db()
        self.store = store
        self.fetcher = fetcher or functools.partial(
            fetch_rdap, timeout=config.fetch_timeout, base_url=config.rdap_url
        )

    @property
    def caching(self) -> bool:
        return self.store is not None and self.config.freshness_horizon.total_seconds() > 0

    def check_one(self, text: str) -> LookupResult:
        """Look up one address (defanged input accepted)."""
        addr = parse_address(text)

        kind = classify(addr)
        if kind is not AddressClass.UNICAST:
            logger.debug("Skipping %s address %s", kind.value, addr)
            return Rejected(address=str(addr), classification=kind)

        if self.caching:
            record = self.store.find_containing(to_key(addr), self.config.freshness_horizon)
            if record is not None:
                logger.debug("Using cached object: %s", record.record_id)
                return Found(rdap=record.rdap, record_id=record.record_id, cached=True)

        rdap = self.fetcher(str(unmap(addr)))
        return self.revalidate(rdap, datetime.now(timezone.utc))

    def revalidate(self, rdap: dict, observed_at: datetime | None = None) -> Found:
        """Canonicalize a fetched document and merge it into the store."""
        observed_at = observed_at or datetime.now(timezone.utc)
        rdap = canonicalize(rdap)
        addr_range = extract_range(rdap)

        if self.store is None:
            return Found(rdap=rdap, record_id=None)

        record = self.store.upsert_revalidate(addr_range, rdap, observed_at)
        return Found(rdap=record.rdap, record_id=record.record_id)

    def check_many(self, texts: Iterable[str], workers: int = 1) -> list[LookupResult]:
        """Look up several addresses, in input order.

        With ``workers > 1`` lookups run on a thread pool; the store's
        upsert keeps concurrent fetches of one network on a single record.
        """
        texts = list(texts)
        if workers <= 1 or len(texts) <= 1:
            return [self.check_one(t) for t in texts]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self.check_one, texts))
