"""Document record extraction: normalize -> metadata -> strategies -> records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Sequence

from errors import NoRecordsRecovered
from metadata import extract_metadata
from models import DocumentMetadata, ShipmentRecord
from record_builder import build_record
from row_strategies import STRATEGIES, RowStrategy
from text_normalizer import normalize

LOGGER = logging.getLogger(__name__)

_PREVIEW_CHARS = 500


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Records recovered from one document and the strategy that produced them."""

    source_ref: str
    metadata: DocumentMetadata
    strategy: str
    records: tuple[ShipmentRecord, ...]
    rejected: int = 0


def extract_records(
    raw_text: str,
    source_ref: str,
    strategies: Sequence[RowStrategy] = STRATEGIES,
    now: datetime | None = None,
) -> ExtractionResult:
    """Run the full extraction for one document.

    Strategies are tried in order; the first one that yields at least one
    valid record wins and no later strategy runs. Raises MetadataMissing or
    NoRecordsRecovered; nothing partial is returned on failure.
    """
    normalized = normalize(raw_text)
    text = normalized.text
    LOGGER.debug(
        "Normalized text for source_ref=%s (first %s chars):\n%s",
        source_ref,
        _PREVIEW_CHARS,
        text[:_PREVIEW_CHARS],
    )

    meta = extract_metadata(text, source_ref)
    LOGGER.info(
        "Document metadata: source_ref=%s transfer_timestamp=%s submitted_by=%r",
        source_ref,
        meta.transfer_timestamp.isoformat(),
        meta.submitted_by,
    )

    ingested_at = now or datetime.now(UTC)
    for strategy in strategies:
        rows = strategy.extract(normalized)
        records = []
        for row in rows:
            record = build_record(row, meta, source_ref, now=ingested_at)
            if record is not None:
                records.append(record)

        LOGGER.info(
            "Strategy %s: source_ref=%s candidates=%s valid=%s",
            strategy.name,
            source_ref,
            len(rows),
            len(records),
        )
        if records:
            if strategy.low_confidence:
                LOGGER.warning(
                    "Low-confidence strategy %s matched source_ref=%s; %s records flagged for review",
                    strategy.name,
                    source_ref,
                    sum(1 for r in records if r.needs_review),
                )
            return ExtractionResult(
                source_ref=source_ref,
                metadata=meta,
                strategy=strategy.name,
                records=tuple(records),
                rejected=len(rows) - len(records),
            )

    LOGGER.error("No strategy recovered rows for source_ref=%s. Normalized text:\n%s", source_ref, text)
    raise NoRecordsRecovered("No table rows could be recovered from document", source_ref)


def run(raw_text: str, source_ref: str) -> list[ShipmentRecord]:
    """Return every record the winning strategy produced for the document."""
    return list(extract_records(raw_text, source_ref).records)
