"""Local SQLite persistence for shipment records.

The table carries a UNIQUE(package_id, order_id) constraint, so the
idempotency key is enforced by the storage layer itself: inserting an
existing key replaces the row instead of adding a duplicate.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import closing
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from models import ShipmentRecord

SHIPMENT_DB_PATH = os.getenv("SHIPMENT_DB_PATH", "shipments.db")

LOGGER = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS shipment_records (
  id TEXT PRIMARY KEY,
  ingested_at TEXT NOT NULL,
  transfer_timestamp TEXT NOT NULL,
  source_ref TEXT NOT NULL,
  sequence_number INTEGER NOT NULL,
  package_id TEXT NOT NULL,
  weight_kg TEXT NOT NULL,
  order_id TEXT NOT NULL,
  submitted_by TEXT NOT NULL DEFAULT '',
  needs_review INTEGER NOT NULL DEFAULT 0,
  synced INTEGER NOT NULL DEFAULT 0,
  synced_at TEXT,
  UNIQUE(package_id, order_id)
);

CREATE INDEX IF NOT EXISTS idx_package_order ON shipment_records(package_id, order_id);
CREATE INDEX IF NOT EXISTS idx_synced ON shipment_records(synced);
CREATE INDEX IF NOT EXISTS idx_transfer_timestamp ON shipment_records(transfer_timestamp);
"""

_COLUMNS = (
    "id",
    "ingested_at",
    "transfer_timestamp",
    "source_ref",
    "sequence_number",
    "package_id",
    "weight_kg",
    "order_id",
    "submitted_by",
    "needs_review",
    "synced",
    "synced_at",
)
_INSERT_SQL = (
    f"INSERT OR REPLACE INTO shipment_records ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _COLUMNS)})"
)
_ORDER_BY = "ORDER BY transfer_timestamp DESC, sequence_number ASC"


class RecordStore:
    """Shipment records keyed by id, unique by (package_id, order_id)."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = Path(db_path or SHIPMENT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        LOGGER.info("Record store ready at %s", self.db_path)

    def exists(self, package_id: str, order_id: str) -> bool:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT 1 FROM shipment_records WHERE package_id = ? AND order_id = ? LIMIT 1",
                (package_id, order_id),
            ).fetchone()
        return row is not None

    def insert_records(self, records: Iterable[ShipmentRecord]) -> int:
        """Insert-or-replace records; returns the number of rows written."""
        params = [_to_params(record) for record in records]
        if not params:
            return 0
        with closing(self._connect()) as conn, conn:
            conn.executemany(_INSERT_SQL, params)
        LOGGER.info("Stored %s records in %s", len(params), self.db_path)
        return len(params)

    def all_records(self) -> list[ShipmentRecord]:
        return self._query(f"SELECT * FROM shipment_records {_ORDER_BY}")

    def unsynced_records(self) -> list[ShipmentRecord]:
        return self._query(f"SELECT * FROM shipment_records WHERE synced = 0 {_ORDER_BY}")

    def records_by_source(self, source_ref: str) -> list[ShipmentRecord]:
        return self._query(
            "SELECT * FROM shipment_records WHERE source_ref = ? ORDER BY sequence_number ASC",
            (source_ref,),
        )

    def mark_synced(self, record_ids: Iterable[str], synced_at: datetime | None = None) -> int:
        """Flip pending records to synced; already-synced rows keep their original synced_at."""
        stamp = (synced_at or datetime.now(UTC)).isoformat()
        ids = list(record_ids)
        if not ids:
            return 0
        with closing(self._connect()) as conn, conn:
            cursor = conn.executemany(
                "UPDATE shipment_records SET synced = 1, synced_at = ? WHERE id = ? AND synced = 0",
                [(stamp, record_id) for record_id in ids],
            )
            updated = cursor.rowcount
        LOGGER.info("Marked %s records as synced", updated)
        return updated

    def delete_record(self, record_id: str) -> int:
        return self._execute("DELETE FROM shipment_records WHERE id = ?", (record_id,))

    def delete_synced(self) -> int:
        return self._execute("DELETE FROM shipment_records WHERE synced = 1")

    def delete_all(self) -> int:
        return self._execute("DELETE FROM shipment_records")

    def statistics(self) -> dict[str, int]:
        with closing(self._connect()) as conn:
            total, synced = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(synced), 0) FROM shipment_records"
            ).fetchone()
        return {"total": total, "synced": synced, "unsynced": total - synced}

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _query(self, sql: str, params: tuple = ()) -> list[ShipmentRecord]:
        with closing(self._connect()) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_from_row(row) for row in rows]

    def _execute(self, sql: str, params: tuple = ()) -> int:
        with closing(self._connect()) as conn, conn:
            count = conn.execute(sql, params).rowcount
        LOGGER.info("Deleted %s records", count)
        return count


def _to_params(record: ShipmentRecord) -> tuple:
    return (
        record.id,
        record.ingested_at.isoformat(),
        record.transfer_timestamp.isoformat(),
        record.source_ref,
        record.sequence_number,
        record.package_id,
        str(record.weight_kg),
        record.order_id,
        record.submitted_by,
        int(record.needs_review),
        int(record.synced),
        record.synced_at.isoformat() if record.synced_at else None,
    )


def _from_row(row: sqlite3.Row) -> ShipmentRecord:
    return ShipmentRecord(
        id=row["id"],
        ingested_at=datetime.fromisoformat(row["ingested_at"]),
        transfer_timestamp=datetime.fromisoformat(row["transfer_timestamp"]),
        source_ref=row["source_ref"],
        sequence_number=row["sequence_number"],
        package_id=row["package_id"],
        weight_kg=Decimal(row["weight_kg"]),
        order_id=row["order_id"],
        submitted_by=row["submitted_by"],
        needs_review=bool(row["needs_review"]),
        synced=bool(row["synced"]),
        synced_at=datetime.fromisoformat(row["synced_at"]) if row["synced_at"] else None,
    )
