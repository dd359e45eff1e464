"""Single-flight ingestion gate between the extraction pipeline and storage."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime

from csv_sink import publish_records
from pipeline import extract_records
from record_store import RecordStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IngestionOutcome:
    source_ref: str
    busy: bool = False
    strategy: str = ""
    parsed: int = 0
    inserted: int = 0
    skipped_existing: int = 0


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    busy: bool = False
    pending: int = 0
    published: int = 0
    marked_synced: int = 0


class IngestionGate:
    """Serializes extract -> dedup-check -> persist cycles for the application.

    A cycle attempted while another is in flight is rejected immediately
    with a ``busy`` outcome; it is never queued.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def ingest(self, raw_text: str, source_ref: str) -> IngestionOutcome:
        """Extract one document and persist the records whose key is new.

        MetadataMissing and NoRecordsRecovered propagate unchanged.
        """
        if not self._lock.acquire(blocking=False):
            LOGGER.warning("Ingestion already in progress; rejecting source_ref=%s", source_ref)
            return IngestionOutcome(source_ref=source_ref, busy=True)

        try:
            result = extract_records(raw_text, source_ref)

            seen: set[tuple[str, str]] = set()
            new_records = []
            for record in result.records:
                key = record.dedup_key
                if key in seen or self._store.exists(*key):
                    LOGGER.info("Skipping existing package_id=%s order_id=%s", *key)
                    continue
                seen.add(key)
                new_records.append(record)

            inserted = self._store.insert_records(new_records)
            LOGGER.info(
                "Ingested source_ref=%s strategy=%s parsed=%s inserted=%s skipped=%s",
                source_ref,
                result.strategy,
                len(result.records),
                inserted,
                len(result.records) - inserted,
            )
            return IngestionOutcome(
                source_ref=source_ref,
                strategy=result.strategy,
                parsed=len(result.records),
                inserted=inserted,
                skipped_existing=len(result.records) - inserted,
            )
        finally:
            self._lock.release()

    def sync(self, csv_path: str | None = None) -> SyncOutcome:
        """Publish pending records to the sheet and mark them synced.

        Every pending record is marked synced afterwards: its key is in the
        sheet either because it was just appended or because it already was.
        """
        if not self._lock.acquire(blocking=False):
            LOGGER.warning("Ingestion already in progress; rejecting sync")
            return SyncOutcome(busy=True)

        try:
            pending = self._store.unsynced_records()
            if not pending:
                LOGGER.info("No records to sync")
                return SyncOutcome()

            published = publish_records(pending, csv_path=csv_path)
            marked = self._store.mark_synced(
                [record.id for record in pending],
                synced_at=datetime.now(UTC),
            )
            LOGGER.info(
                "Sync complete: pending=%s published=%s marked_synced=%s",
                len(pending),
                len(published),
                marked,
            )
            return SyncOutcome(pending=len(pending), published=len(published), marked_synced=marked)
        finally:
            self._lock.release()
