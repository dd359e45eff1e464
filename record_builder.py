"""Validation and conversion of raw row tuples into shipment records."""

from __future__ import annotations

import logging
import re
import uuid
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation

from errors import InvalidRowTuple
from models import DocumentMetadata, RawRowTuple, ShipmentRecord

LOGGER = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")


def normalize_identifier(value: str | None) -> str:
    """Strip all whitespace and uppercase a package or order id."""
    return _WS_RE.sub("", value or "").upper()


def parse_decimal(raw: str | None) -> Decimal | None:
    """Parse a weight token accepting either "." or "," as the fractional separator."""
    if not raw:
        return None
    try:
        value = Decimal(raw.strip().replace(",", "."))
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def validate_row(row: RawRowTuple) -> RawRowTuple:
    """Return the row with normalized ids, or raise InvalidRowTuple."""
    package_id = normalize_identifier(row.package_id)
    order_id = normalize_identifier(row.order_id)
    if not package_id:
        raise InvalidRowTuple(f"empty package id in row {row.sequence_number}")
    if not order_id:
        raise InvalidRowTuple(f"empty order id in row {row.sequence_number}")
    if row.weight_kg is None or row.weight_kg <= 0:
        raise InvalidRowTuple(f"non-positive weight {row.weight_kg} in row {row.sequence_number}")
    if row.sequence_number < 0:
        raise InvalidRowTuple(f"negative sequence number {row.sequence_number}")
    return RawRowTuple(
        sequence_number=row.sequence_number,
        package_id=package_id,
        weight_kg=row.weight_kg,
        order_id=order_id,
        weight_estimated=row.weight_estimated,
    )


def build_record(
    row: RawRowTuple,
    meta: DocumentMetadata,
    source_ref: str,
    now: datetime | None = None,
) -> ShipmentRecord | None:
    """Convert a raw tuple into a ShipmentRecord; return None when it is invalid."""
    try:
        row = validate_row(row)
    except InvalidRowTuple as exc:
        LOGGER.debug("Rejected row for source_ref=%s: %s", source_ref, exc)
        return None

    return ShipmentRecord(
        id=str(uuid.uuid4()),
        ingested_at=now or datetime.now(UTC),
        transfer_timestamp=meta.transfer_timestamp,
        source_ref=source_ref,
        sequence_number=row.sequence_number,
        package_id=row.package_id,
        weight_kg=row.weight_kg,
        order_id=row.order_id,
        submitted_by=meta.submitted_by,
        needs_review=row.weight_estimated,
    )
