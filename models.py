"""Shared typed models for the manifest extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class NormalizedText:
    """Canonicalized document text, one entry per physical line."""

    lines: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def non_empty_lines(self) -> list[str]:
        return [line for line in self.lines if line]


@dataclass(frozen=True, slots=True)
class DocumentMetadata:
    transfer_timestamp: datetime
    submitted_by: str = ""


@dataclass(frozen=True, slots=True)
class RawRowTuple:
    """Fields recovered by a strategy for one table row, before validation."""

    sequence_number: int
    package_id: str
    weight_kg: Decimal
    order_id: str
    # True when the weight came from the document-wide fallback, not the row itself.
    weight_estimated: bool = False


@dataclass(frozen=True, slots=True)
class ShipmentRecord:
    """One persisted shipment row.

    Immutable once built. ``synced`` flips to True exactly once, in the store,
    after the record has been published.
    """

    id: str
    ingested_at: datetime
    transfer_timestamp: datetime
    source_ref: str
    sequence_number: int
    package_id: str
    weight_kg: Decimal
    order_id: str
    submitted_by: str = ""
    needs_review: bool = False
    synced: bool = False
    synced_at: datetime | None = field(default=None)

    @property
    def dedup_key(self) -> tuple[str, str]:
        """Idempotency key identifying the same logical shipment across ingestions."""
        return (self.package_id, self.order_id)
