"""Post-run reporting: one summary row per ingested document.

Output columns
--------------
source_ref          document the records came from
transfer_timestamp  printed transfer date of the document
submitted_by        submitting party, possibly empty
record_count        rows stored for the document
total_weight_kg     sum of row weights
synced_count        rows already published
fully_synced        True when every row is published
needs_review_count  rows whose weight came from the document-wide fallback

Runnable standalone:
    python report.py [db_path]
"""

from __future__ import annotations

import csv
import logging
import os
from collections import defaultdict
from decimal import Decimal
from typing import Any, Iterable

from models import ShipmentRecord

LOGGER = logging.getLogger(__name__)

DOCUMENT_REPORT_PATH = os.getenv("DOCUMENT_REPORT_PATH", "shipments_documents.csv")

DOCUMENT_COLUMNS = [
    "source_ref",
    "transfer_timestamp",
    "submitted_by",
    "record_count",
    "total_weight_kg",
    "synced_count",
    "fully_synced",
    "needs_review_count",
]


def summarize_documents(records: Iterable[ShipmentRecord]) -> list[dict[str, Any]]:
    """Group records by source_ref, newest transfer first."""
    by_source: dict[str, list[ShipmentRecord]] = defaultdict(list)
    for record in records:
        by_source[record.source_ref].append(record)

    rows = []
    for source_ref, group in by_source.items():
        synced = sum(1 for r in group if r.synced)
        rows.append({
            "source_ref": source_ref,
            "transfer_timestamp": max(r.transfer_timestamp for r in group),
            "submitted_by": group[0].submitted_by,
            "record_count": len(group),
            "total_weight_kg": sum((r.weight_kg for r in group), Decimal("0")),
            "synced_count": synced,
            "fully_synced": synced == len(group),
            "needs_review_count": sum(1 for r in group if r.needs_review),
        })

    rows.sort(key=lambda row: row["transfer_timestamp"], reverse=True)
    return rows


def generate_document_report(
    records: Iterable[ShipmentRecord],
    report_path: str | None = None,
) -> int:
    """Write the per-document summary CSV; returns the number of documents."""
    path = report_path or DOCUMENT_REPORT_PATH
    rows = summarize_documents(records)
    if not rows:
        LOGGER.warning("report: no records to summarize")

    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=DOCUMENT_COLUMNS)
        writer.writeheader()
        for row in rows:
            writer.writerow({**row, "transfer_timestamp": row["transfer_timestamp"].isoformat()})

    LOGGER.info("report: %d documents → %s", len(rows), path)
    return len(rows)


if __name__ == "__main__":
    import sys

    from dotenv import load_dotenv

    from record_store import RecordStore

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    db_path = sys.argv[1] if len(sys.argv) > 1 else None
    count = generate_document_report(RecordStore(db_path).all_records())
    print(f"{count} documents → {DOCUMENT_REPORT_PATH}")
