"""Paths, constants, and lookup settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from platformdirs import user_data_dir

from . import __version__

APP_NAME = "whois-rdap"

# RDAP service; space held by other registries is answered via redirects
RDAP_BASE_URL = "https://rdap.db.ripe.net"
RDAP_MEDIA_TYPE = "application/rdap+json"

# Local storage
DATA_DIR = Path(user_data_dir(APP_NAME))
DB_PATH = DATA_DIR / "whois_ip.db"

# HTTP
USER_AGENT = f"whois-rdap/{__version__} (+https://netblocks.org)"
REQUEST_TIMEOUT = 2.5  # seconds

# Cache entries stop matching after this long without revalidation
DEFAULT_FRESHNESS = timedelta(days=7)


@dataclass(frozen=True)
class LookupConfig:
    """Settings handed to the lookup orchestrator.

    ``store_path`` of ``None`` disables the cache entirely; a
    ``freshness_horizon`` of zero keeps writing to the cache but never
    serves from it.
    """

    store_path: Path | None = DB_PATH
    freshness_horizon: timedelta = DEFAULT_FRESHNESS
    fetch_timeout: float = REQUEST_TIMEOUT
    rdap_url: str = RDAP_BASE_URL
