"""whois-rdap: RDAP IP ownership lookups with a network-range cache."""

__version__ = "0.1.0"
