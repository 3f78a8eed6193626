"""RDAP-over-HTTP transport.

JSON Responses for the Registration Data Access Protocol are described in
RFC 7483. One GET per lookup; redirects between registries are followed by
requests, but nothing here retries or throttles.
"""

from __future__ import annotations

import logging
import re

import requests

from .config import RDAP_BASE_URL, RDAP_MEDIA_TYPE, REQUEST_TIMEOUT, USER_AGENT
from .exceptions import FetchFailed

logger = logging.getLogger(__name__)

_SESSION: requests.Session | None = None

# Some servers refuse ranges that span two countries with a 400 whose title
# still names the covering range, e.g.
#   "Multiple country: found in 1.2.3.0 - 1.2.3.255"
_MULTIPLE_COUNTRY_RE = re.compile(r"^Multiple country: found in (\S+) - (\S+)$")
_DIGITS_AND_DOTS_RE = re.compile(r"^[\d.]+$")


def _get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = requests.Session()
        _SESSION.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": RDAP_MEDIA_TYPE,
        })
    return _SESSION


def _multiple_country_network(resp: requests.Response) -> dict | None:
    """Turn a "Multiple country" 400 into a bare network object, if it is one."""
    try:
        body = resp.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    match = _MULTIPLE_COUNTRY_RE.match(str(body.get("title", "")))
    if not match:
        return None

    start, end = match.groups()
    return {
        "ipVersion": "v4" if _DIGITS_AND_DOTS_RE.match(start) else "v6",
        "startAddress": start,
        "endAddress": end,
    }


def fetch_rdap(
    address: str,
    timeout: float = REQUEST_TIMEOUT,
    base_url: str = RDAP_BASE_URL,
) -> dict:
    """GET the RDAP network object covering *address*.

    Returns the parsed document on HTTP 200. Raises FetchFailed for
    transport errors and any other status, except the "Multiple country"
    400 which is answered with a synthetic network object.
    """
    url = f"{base_url.rstrip('/')}/ip/{address}"
    logger.debug("Fetching RDAP with HTTP: %s", url)

    session = _get_session()
    try:
        resp = session.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise FetchFailed(f"RDAP request for {address} failed: {exc}") from exc

    if resp.status_code == 400:
        network = _multiple_country_network(resp)
        if network is not None:
            logger.debug(
                "Synthesized %s network %s - %s from HTTP 400",
                network["ipVersion"], network["startAddress"], network["endAddress"],
            )
            return network

    if resp.status_code != 200:
        raise FetchFailed(
            f"Invalid HTTP status for {address}: {resp.status_code}",
            status=resp.status_code,
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise FetchFailed(f"RDAP response for {address} is not JSON", status=200) from exc
    if not isinstance(data, dict):
        raise FetchFailed(f"RDAP response for {address} is not an object", status=200)
    return data
