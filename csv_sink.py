"""Spreadsheet-style CSV publication sink for shipment records."""

from __future__ import annotations

import csv
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable

from models import ShipmentRecord

SHEET_CSV_PATH = os.getenv("SHEET_CSV_PATH", "shipments_sheet.csv")

LOGGER = logging.getLogger(__name__)

SHEET_COLUMNS = [
    "ingested_at",
    "transfer_timestamp",
    "source_ref",
    "sequence_number",
    "package_id",       # dedup key, part 1
    "weight_kg",
    "order_id",         # dedup key, part 2
    "submitted_by",
    "needs_review",     # weight taken from the document-wide fallback
]

_SHEET_DATE_FORMAT = "%d.%m.%Y %H:%M:%S"


def existing_keys(csv_path: str | None = None) -> set[tuple[str, str]]:
    """Re-derive (package_id, order_id) keys from the rows already in the sheet."""
    path = Path(csv_path or SHEET_CSV_PATH)
    if not path.exists():
        return set()

    keys: set[tuple[str, str]] = set()
    with path.open(newline="", encoding="utf-8") as fh:
        for row in csv.DictReader(fh):
            package_id = _key_part(row.get("package_id"))
            order_id = _key_part(row.get("order_id"))
            if package_id and order_id:
                keys.add((package_id, order_id))
    return keys


def publish_records(
    records: Iterable[ShipmentRecord],
    csv_path: str | None = None,
) -> list[ShipmentRecord]:
    """Append records whose key is not yet in the sheet; return the ones appended."""
    path = Path(csv_path or SHEET_CSV_PATH)
    seen = existing_keys(str(path))

    to_append: list[ShipmentRecord] = []
    for record in records:
        if record.dedup_key in seen:
            LOGGER.info(
                "Skipping existing sheet row package_id=%s order_id=%s",
                record.package_id,
                record.order_id,
            )
            continue
        seen.add(record.dedup_key)
        to_append.append(record)

    if not to_append:
        LOGGER.info("All records already present in %s", path)
        return []

    write_header = not path.exists() or path.stat().st_size == 0
    with path.open("a", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=SHEET_COLUMNS)
        if write_header:
            writer.writeheader()
        writer.writerows(_to_sheet_row(record) for record in to_append)

    LOGGER.info("Appended %s rows to %s", len(to_append), path)
    return to_append


def _to_sheet_row(record: ShipmentRecord) -> dict[str, str]:
    return {
        "ingested_at": _format_date(record.ingested_at),
        "transfer_timestamp": _format_date(record.transfer_timestamp),
        "source_ref": record.source_ref,
        "sequence_number": str(record.sequence_number),
        "package_id": record.package_id,
        "weight_kg": str(record.weight_kg),
        "order_id": record.order_id,
        "submitted_by": record.submitted_by,
        "needs_review": "yes" if record.needs_review else "",
    }


def _format_date(value: datetime) -> str:
    return value.strftime(_SHEET_DATE_FORMAT)


def _key_part(value: str | None) -> str:
    return "".join((value or "").split()).upper()
