"""
SQLite booking store, partitioned by calendar month.

Every bucket replacement (delete, insert, metadata update) runs in one
transaction. The database uses WAL journaling so readers on other
connections keep seeing the last committed bucket while a write is open.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from core.config import DB_PATH
from core.dates import parse_instant, parse_iso, parse_month_key, to_utc_iso, utc_now
from core.exceptions import StoreWriteError
from models.events import BookingRecord, MonthMetadata

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS bookings (
        id TEXT PRIMARY KEY,
        month_key TEXT NOT NULL,
        service_id TEXT,
        service_name TEXT,
        customer_name TEXT,
        customer_email TEXT,
        customer_phone TEXT,
        start_datetime TEXT NOT NULL,
        end_datetime TEXT NOT NULL,
        location_name TEXT,
        location_email TEXT,
        location_uri TEXT,
        record_json TEXT NOT NULL,
        stored_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_bookings_month ON bookings(month_key)",
    "CREATE INDEX IF NOT EXISTS idx_bookings_start ON bookings(start_datetime)",
    """
    CREATE TABLE IF NOT EXISTS sync_metadata (
        month_key TEXT PRIMARY KEY,
        last_sync TEXT NOT NULL,
        booking_count INTEGER DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        updated_by TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS api_requests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        request_id TEXT UNIQUE NOT NULL,
        timestamp TEXT NOT NULL,
        endpoint TEXT NOT NULL,
        method TEXT NOT NULL,
        client_ip TEXT,
        status_code INTEGER,
        error_code TEXT,
        error_message TEXT,
        processing_time_ms INTEGER,
        months_processed INTEGER,
        bookings_stored INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS api_request_details (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        request_id TEXT NOT NULL,
        detail_type TEXT NOT NULL,
        message TEXT NOT NULL,
        FOREIGN KEY (request_id) REFERENCES api_requests(request_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_api_requests_timestamp ON api_requests(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_api_request_details_request ON api_request_details(request_id)",
]


class BookingStore:
    """Booking records grouped into YYYY-MM buckets with per-bucket sync metadata."""

    def __init__(self, db_path: Path | str = DB_PATH):
        self.db_path = Path(db_path)

    def connect(self) -> sqlite3.Connection:
        """Open a new connection in autocommit mode (transactions are explicit)."""
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def init_schema(self) -> None:
        """Create the database file and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self.connect()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            for statement in SCHEMA:
                conn.execute(statement)
        finally:
            conn.close()
        logger.info("Booking store initialized at %s", self.db_path)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction; rolled back on any error and reported as StoreWriteError."""
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as e:
            raise StoreWriteError(str(e)) from e
        finally:
            conn.close()

    # =========================================================================
    # WRITES
    # =========================================================================

    def replace_month(
        self,
        month_key: str,
        records: list[BookingRecord],
        synced_at: datetime | None = None,
    ) -> int:
        """
        Atomically replace one bucket's records and metadata.

        Returns:
            Number of records stored
        """
        parse_month_key(month_key)
        synced_at = synced_at or utc_now()
        try:
            with self.transaction() as conn:
                stored = self._write_month(conn, month_key, records, synced_at)
        except StoreWriteError as e:
            raise StoreWriteError(f"Failed to store bookings for {month_key}: {e}") from e
        logger.info("Stored %d bookings for %s", stored, month_key)
        return stored

    def replace_months(
        self,
        batch: list[tuple[str, list[BookingRecord]]],
        synced_at: datetime | None = None,
    ) -> int:
        """Replace several buckets in a single transaction. Returns total records stored."""
        for month_key, _ in batch:
            parse_month_key(month_key)
        synced_at = synced_at or utc_now()
        total = 0
        with self.transaction() as conn:
            for month_key, records in batch:
                total += self._write_month(conn, month_key, records, synced_at)
        logger.info("Stored %d bookings across %d months", total, len(batch))
        return total

    def _write_month(
        self,
        conn: sqlite3.Connection,
        month_key: str,
        records: list[BookingRecord],
        synced_at: datetime,
    ) -> int:
        self._delete_month(conn, month_key)
        displaced = self._displaced_months(conn, records)
        stored = self._insert_records(conn, month_key, records, synced_at)
        self._update_metadata(conn, month_key, stored, synced_at)
        for other in displaced:
            self._recount_month(conn, other)
        return stored

    def _delete_month(self, conn: sqlite3.Connection, month_key: str) -> None:
        conn.execute("DELETE FROM bookings WHERE month_key = ?", (month_key,))

    def _displaced_months(self, conn: sqlite3.Connection, records: list[BookingRecord]) -> set[str]:
        """Other buckets currently holding one of these booking ids."""
        months = set()
        for record in records:
            if not record.get("id"):
                continue
            row = conn.execute(
                "SELECT month_key FROM bookings WHERE id = ?", (record["id"],)
            ).fetchone()
            if row:
                months.add(row["month_key"])
        return months

    def _insert_records(
        self,
        conn: sqlite3.Connection,
        month_key: str,
        records: list[BookingRecord],
        synced_at: datetime,
    ) -> int:
        stored_ids = set()
        stored_at = to_utc_iso(synced_at)
        for record in records:
            row = _record_to_row(record)
            if row is None:
                logger.warning("Skipping booking without id or valid times: %r", record.get("id"))
                continue
            # A booking moved to another month leaves its previous bucket here
            conn.execute(
                """
                INSERT OR REPLACE INTO bookings (
                    id, month_key, service_id, service_name, customer_name,
                    customer_email, customer_phone, start_datetime, end_datetime,
                    location_name, location_email, location_uri, record_json, stored_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    row["id"],
                    month_key,
                    row["service_id"],
                    row["service_name"],
                    row["customer_name"],
                    row["customer_email"],
                    row["customer_phone"],
                    row["start_datetime"],
                    row["end_datetime"],
                    row["location_name"],
                    row["location_email"],
                    row["location_uri"],
                    row["record_json"],
                    stored_at,
                ),
            )
            stored_ids.add(row["id"])
        return len(stored_ids)

    def _update_metadata(
        self, conn: sqlite3.Connection, month_key: str, count: int, synced_at: datetime
    ) -> None:
        conn.execute(
            """
            INSERT OR REPLACE INTO sync_metadata (month_key, last_sync, booking_count)
            VALUES (?, ?, ?)
            """,
            (month_key, synced_at.isoformat(), count),
        )

    def _recount_month(self, conn: sqlite3.Connection, month_key: str) -> None:
        conn.execute(
            """
            UPDATE sync_metadata
            SET booking_count = (SELECT COUNT(*) FROM bookings WHERE month_key = ?)
            WHERE month_key = ?
            """,
            (month_key, month_key),
        )

    def delete_months_except(self, keep: list[str]) -> int:
        """
        Remove every bucket and its metadata except the given months.

        Returns:
            Number of buckets removed
        """
        keep = sorted(set(keep))
        if not keep:
            removed = len(self.list_month_metadata())
            self.clear_all()
            return removed
        placeholders = ", ".join("?" for _ in keep)
        with self.transaction() as conn:
            removed = conn.execute(
                f"SELECT COUNT(*) FROM sync_metadata WHERE month_key NOT IN ({placeholders})", keep
            ).fetchone()[0]
            conn.execute(f"DELETE FROM bookings WHERE month_key NOT IN ({placeholders})", keep)
            conn.execute(f"DELETE FROM sync_metadata WHERE month_key NOT IN ({placeholders})", keep)
        return removed

    def clear_all(self) -> None:
        """Remove every booking and every bucket's metadata."""
        with self.transaction() as conn:
            conn.execute("DELETE FROM bookings")
            conn.execute("DELETE FROM sync_metadata")
        logger.info("Cleared all bookings and sync metadata")

    # =========================================================================
    # READS
    # =========================================================================

    def get_bookings(self, start: datetime, end: datetime) -> list[BookingRecord]:
        """Bookings whose start falls in [start, end], ascending by start."""
        conn = self.connect()
        try:
            rows = conn.execute(
                """
                SELECT record_json FROM bookings
                WHERE start_datetime >= ? AND start_datetime <= ?
                ORDER BY start_datetime ASC
                """,
                (to_utc_iso(start), to_utc_iso(end)),
            ).fetchall()
        finally:
            conn.close()
        return [json.loads(row["record_json"]) for row in rows]

    def get_bookings_for_month(self, month_key: str) -> list[BookingRecord]:
        parse_month_key(month_key)
        conn = self.connect()
        try:
            rows = conn.execute(
                "SELECT record_json FROM bookings WHERE month_key = ? ORDER BY start_datetime ASC",
                (month_key,),
            ).fetchall()
        finally:
            conn.close()
        return [json.loads(row["record_json"]) for row in rows]

    def get_month_metadata(self, month_key: str) -> MonthMetadata | None:
        """Metadata for a bucket, or None if it was never synced."""
        conn = self.connect()
        try:
            row = conn.execute(
                "SELECT * FROM sync_metadata WHERE month_key = ?", (month_key,)
            ).fetchone()
        finally:
            conn.close()
        return _metadata_from_row(row) if row else None

    def list_month_metadata(self) -> list[MonthMetadata]:
        conn = self.connect()
        try:
            rows = conn.execute("SELECT * FROM sync_metadata ORDER BY month_key ASC").fetchall()
        finally:
            conn.close()
        return [_metadata_from_row(row) for row in rows]

    def count_bookings(self) -> int:
        conn = self.connect()
        try:
            return conn.execute("SELECT COUNT(*) FROM bookings").fetchone()[0]
        finally:
            conn.close()

    def get_sync_status(self) -> dict:
        """
        Summary of stored data.

        Returns:
            Dict with total_bookings, last_full_sync (epoch ms or None) and months
        """
        months = self.list_month_metadata()
        last_full_sync = None
        if months:
            latest = max(parse_iso(m["last_synced_at"]) for m in months)
            last_full_sync = int(latest.timestamp() * 1000)
        return {
            "total_bookings": self.count_bookings(),
            "last_full_sync": last_full_sync,
            "months": months,
        }

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str) -> dict | None:
        """Stored setting as {value, updated_at, updated_by}, or None."""
        conn = self.connect()
        try:
            row = conn.execute(
                "SELECT value, updated_at, updated_by FROM settings WHERE key = ?", (key,)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        try:
            value: Any = json.loads(row["value"])
        except json.JSONDecodeError:
            value = row["value"]
        return {"value": value, "updated_at": row["updated_at"], "updated_by": row["updated_by"]}

    def save_setting(self, key: str, value: Any, updated_by: str | None = None) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO settings (key, value, updated_at, updated_by)
                VALUES (?, ?, ?, ?)
                """,
                (key, json.dumps(value, ensure_ascii=False), utc_now().isoformat(), updated_by),
            )
        logger.info("Saved setting: %s", key)


def _record_to_row(record: BookingRecord) -> dict | None:
    """Column values for a booking, or None if it cannot be stored."""
    if not record.get("id"):
        return None
    try:
        start = parse_instant(record["start"])
        end = parse_instant(record["end"])
    except (KeyError, TypeError, ValueError):
        return None

    location = record.get("location") or {}
    return {
        "id": record["id"],
        "service_id": record.get("service_id"),
        "service_name": record.get("service_name"),
        "customer_name": record.get("customer_name"),
        "customer_email": record.get("customer_email"),
        "customer_phone": record.get("customer_phone"),
        "start_datetime": to_utc_iso(start),
        "end_datetime": to_utc_iso(end),
        "location_name": location.get("display_name"),
        "location_email": location.get("email_address"),
        "location_uri": location.get("uri"),
        "record_json": json.dumps(record, ensure_ascii=False),
    }


def _metadata_from_row(row: sqlite3.Row) -> MonthMetadata:
    return {
        "month_key": row["month_key"],
        "last_synced_at": row["last_sync"],
        "record_count": row["booking_count"],
    }
