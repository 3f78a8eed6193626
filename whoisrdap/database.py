"""SQLite range cache for RDAP network records."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

from .address import KEY_LENGTH
from .canonical import dumps, fingerprint
from .exceptions import StoreUnavailable
from .models import NetworkRecord

logger = logging.getLogger(__name__)

# Fixed width so that text order is time order; the year is padded by hand
_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_TIME_FORMAT_NO_YEAR = "-%m-%dT%H:%M:%S.%fZ"
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)
_IPV4_MAPPED_LOW = b"\x00" * 10 + b"\xff\xff" + b"\x00" * 4
_IPV4_MAPPED_HIGH = b"\x00" * 10 + b"\xff" * 6

_COLUMNS = "id, addr_low, addr_high, rdap, validated_at, first_seen"


def _to_db_time(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return f"{dt.year:04d}" + dt.strftime(_TIME_FORMAT_NO_YEAR)


def _cutoff(now: datetime, freshness_horizon: timedelta) -> str:
    """Oldest acceptable validated_at; windows reaching past year 1 match everything."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    if freshness_horizon >= now - _EARLIEST:
        return _to_db_time(_EARLIEST)
    return _to_db_time(now - freshness_horizon)


def _from_db_time(value: str) -> datetime:
    return datetime.strptime(value, _TIME_FORMAT).replace(tzinfo=timezone.utc)


def _row_to_record(row: tuple) -> NetworkRecord:
    return NetworkRecord(
        record_id=row[0],
        addr_range=(bytes(row[1]), bytes(row[2])),
        rdap=json.loads(row[3]),
        validated_at=_from_db_time(row[4]),
        first_seen=_from_db_time(row[5]),
    )


class RangeCache:
    """Indexed store of network records keyed by 128-bit address ranges.

    Every operation opens its own connection, so one instance can be shared
    by concurrent lookups. The only write path is :meth:`upsert_revalidate`,
    an ``INSERT ... ON CONFLICT`` on the natural-key fingerprint (SQLite
    3.24+), which keeps concurrent fetches of the same network from
    creating duplicate rows.
    """

    def __init__(self, db_path: Path | str, timeout: float = 5.0):
        self.db_path = Path(db_path)
        self.timeout = timeout

    def _get_connection(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_connection()
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailable(f"Cannot open cache at {self.db_path}: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Cache operation failed: {exc}") from exc
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create the table and indexes if they don't exist."""
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS networks (
                    id           INTEGER PRIMARY KEY AUTOINCREMENT,
                    addr_low     BLOB NOT NULL,
                    addr_high    BLOB NOT NULL,
                    rdap         TEXT NOT NULL,
                    fingerprint  TEXT NOT NULL,
                    validated_at TEXT NOT NULL,
                    first_seen   TEXT NOT NULL,
                    CHECK (length(addr_low) = 16 AND length(addr_high) = 16),
                    CHECK (addr_low <= addr_high)
                );

                CREATE INDEX IF NOT EXISTS idx_networks_range
                    ON networks(addr_low DESC, addr_high ASC, validated_at DESC);

                CREATE UNIQUE INDEX IF NOT EXISTS idx_networks_fingerprint
                    ON networks(fingerprint);
            """)

    def find_containing(
        self,
        key: bytes,
        freshness_horizon: timedelta,
        now: datetime | None = None,
    ) -> NetworkRecord | None:
        """Return the most specific fresh record whose range contains *key*.

        Among containing records validated within *freshness_horizon*, the
        largest start wins, then the smallest end, then the most recent
        validation.
        """
        if len(key) != KEY_LENGTH:
            raise ValueError(f"key must be {KEY_LENGTH} bytes")
        now = now or datetime.now(timezone.utc)
        cutoff = _cutoff(now, freshness_horizon)

        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM networks
                WHERE addr_low <= ? AND addr_high >= ? AND validated_at >= ?
                ORDER BY addr_low DESC, addr_high ASC, validated_at DESC
                LIMIT 1
                """,
                (key, key, cutoff),
            ).fetchone()

        return _row_to_record(row) if row else None

    def upsert_revalidate(
        self,
        addr_range: tuple[bytes, bytes],
        rdap: dict,
        observed_at: datetime,
    ) -> NetworkRecord:
        """Insert a network or revalidate the record with the same natural key.

        *rdap* must already be canonical. ``validated_at`` only moves
        forward and ``first_seen`` only moves back; the record id is kept.
        """
        low, high = addr_range
        stamp = _to_db_time(observed_at)
        key = fingerprint(addr_range, rdap)

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO networks
                    (addr_low, addr_high, rdap, fingerprint, validated_at, first_seen)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(fingerprint) DO UPDATE SET
                    validated_at = MAX(validated_at, excluded.validated_at),
                    first_seen   = MIN(first_seen, excluded.first_seen)
                """,
                (low, high, dumps(rdap), key, stamp, stamp),
            )
            # Same transaction, so this sees the row the upsert just wrote
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM networks WHERE fingerprint = ?",
                (key,),
            ).fetchone()

        record = _row_to_record(row)
        logger.debug(
            "Stored network %s - %s as record %s",
            record.start_address, record.end_address, record.record_id,
        )
        return record

    def get_record(self, record_id: int) -> NetworkRecord | None:
        """Fetch a record by id."""
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM networks WHERE id = ?",
                (record_id,),
            ).fetchone()
        return _row_to_record(row) if row else None

    def list_records(self, limit: int | None = None) -> list[NetworkRecord]:
        """List records, most recently validated first."""
        sql = f"SELECT {_COLUMNS} FROM networks ORDER BY validated_at DESC, id DESC"
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_record(r) for r in rows]

    def get_stats(
        self,
        freshness_horizon: timedelta,
        now: datetime | None = None,
    ) -> dict:
        """Return cache statistics."""
        now = now or datetime.now(timezone.utc)
        cutoff = _cutoff(now, freshness_horizon)

        with self._connect() as conn:
            total = conn.execute("SELECT COUNT(*) FROM networks").fetchone()[0]

            ipv4 = conn.execute(
                "SELECT COUNT(*) FROM networks WHERE addr_low >= ? AND addr_high <= ?",
                (_IPV4_MAPPED_LOW, _IPV4_MAPPED_HIGH),
            ).fetchone()[0]

            fresh = conn.execute(
                "SELECT COUNT(*) FROM networks WHERE validated_at >= ?",
                (cutoff,),
            ).fetchone()[0]

            oldest, newest = conn.execute(
                "SELECT MIN(first_seen), MAX(validated_at) FROM networks"
            ).fetchone()

        return {
            "networks": total,
            "ipv4": ipv4,
            "ipv6": total - ipv4,
            "fresh": fresh,
            "stale": total - fresh,
            "first_seen": _from_db_time(oldest) if oldest else None,
            "last_validated": _from_db_time(newest) if newest else None,
        }
