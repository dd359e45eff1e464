"""Row-recovery strategies for manifest tables.

The same logical table comes out of different renderers with different
physical layouts, so each strategy encodes one layout hypothesis and is
applied to the whole normalized document. Strategies are pure functions
``NormalizedText -> list[RawRowTuple]``; the pipeline tries them in
``STRATEGIES`` order and keeps the first non-empty result.

Layouts
-------
single_line             "1 ZMKZ0000001 7,25 кг WB123456789"
single_line_hyphenated  "1 696166030-1 7.25 69616 6030"
four_line_block         "7.25" / "1" / "69616 6030" / "696166030-1"
three_line_block        "1" / "69616 6030" / "696166030-1"  (weight from the document)
loose_line_scan         any line holding a letters+digits package, a weight and an order
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Callable, NamedTuple

from errors import InvalidRowTuple
from models import NormalizedText, RawRowTuple
from record_builder import normalize_identifier, parse_decimal, validate_row

LOGGER = logging.getLogger(__name__)

_UNIT = r"(?i:кг|kg)"
_WEIGHT = rf"(\d+(?:[.,]\d+)?)(?: ?{_UNIT})?"

_SINGLE_LINE_RE = re.compile(
    rf"^(\d+) ([^\W_]+) {_WEIGHT} (?!{_UNIT}$)([^\W_]+)$",
    re.MULTILINE,
)
_SINGLE_LINE_HYPHENATED_RE = re.compile(
    rf"^(\d+) (\d+-\d+) {_WEIGHT} (\d+) (\d+)$",
    re.MULTILINE,
)

_WEIGHT_LINE_RE = re.compile(rf"^{_WEIGHT}$")
_SEQUENCE_LINE_RE = re.compile(r"^(\d+)$")
_ORDER_PARTS_LINE_RE = re.compile(r"^(\d+) (\d+)$")
_PACKAGE_LINE_RE = re.compile(r"^(\d+-\d+)$")

_STANDALONE_DECIMAL_RE = re.compile(r"^\d+[.,]\d+$")
_ANY_DECIMAL_RE = re.compile(r"\d+[.,]\d+")

# Token boundaries exclude dates, times and hyphenated ids.
_BOUNDARY = r"\w.,:\-"
_LOOSE_PACKAGE_RE = re.compile(rf"(?<![{_BOUNDARY}])[^\W\d_]{{2,}}\d+(?![{_BOUNDARY}])")
_LOOSE_ORDER_RE = re.compile(rf"(?<![{_BOUNDARY}])[^\W\d_]{{2}}\d+(?![{_BOUNDARY}])")
_LOOSE_WEIGHT_RE = re.compile(rf"(?<![{_BOUNDARY}])(\d+(?:[.,]\d+)?){_UNIT}?(?![{_BOUNDARY}])")
_LEADING_SEQUENCE_RE = re.compile(r"^(\d+) ")


class RowStrategy(NamedTuple):
    name: str
    extract: Callable[[NormalizedText], list[RawRowTuple]]
    # Rows from a low-confidence strategy are flagged for manual review.
    low_confidence: bool = False


def single_line_rows(text: NormalizedText) -> list[RawRowTuple]:
    """Rows kept intact as "<seq> <package> <weight> <order>" on one line."""
    rows: list[RawRowTuple] = []
    for match in _SINGLE_LINE_RE.finditer(text.text):
        sequence, package_id, weight, order_id = match.groups()
        _append_row(rows, int(sequence), package_id, weight, order_id)
    return rows


def single_line_hyphenated_rows(text: NormalizedText) -> list[RawRowTuple]:
    """Desktop layout: hyphenated package id and the order id split into two groups."""
    rows: list[RawRowTuple] = []
    for match in _SINGLE_LINE_HYPHENATED_RE.finditer(text.text):
        sequence, package_id, weight, order_head, order_tail = match.groups()
        _append_row(rows, int(sequence), package_id, weight, order_head + order_tail)
    return rows


def four_line_block_rows(text: NormalizedText) -> list[RawRowTuple]:
    """Mobile layout: weight, sequence, order parts and package id on separate lines."""
    lines = text.non_empty_lines()
    rows: list[RawRowTuple] = []
    i = 0
    while i + 4 <= len(lines):
        weight = _WEIGHT_LINE_RE.match(lines[i])
        sequence = _SEQUENCE_LINE_RE.match(lines[i + 1])
        order = _ORDER_PARTS_LINE_RE.match(lines[i + 2])
        package = _PACKAGE_LINE_RE.match(lines[i + 3])
        if not (weight and sequence and order and package):
            i += 1
            continue

        _append_row(
            rows,
            int(sequence.group(1)),
            package.group(1),
            weight.group(1),
            order.group(1) + order.group(2),
        )
        i += 4
    return rows


def three_line_block_rows(text: NormalizedText) -> list[RawRowTuple]:
    """Mobile layout without a per-row weight token.

    Every row gets the same document-wide weight, so results are approximate.
    """
    lines = text.non_empty_lines()
    blocks: list[tuple[int, str, str]] = []
    i = 0
    while i + 3 <= len(lines):
        sequence = _SEQUENCE_LINE_RE.match(lines[i])
        order = _ORDER_PARTS_LINE_RE.match(lines[i + 1])
        package = _PACKAGE_LINE_RE.match(lines[i + 2])
        if not (sequence and order and package):
            i += 1
            continue

        blocks.append((int(sequence.group(1)), package.group(1), order.group(1) + order.group(2)))
        i += 3

    if not blocks:
        return []

    weight = document_fallback_weight(text)
    if weight is None:
        LOGGER.warning("three_line_block: %s blocks found but no fallback weight", len(blocks))
        return []
    LOGGER.warning("three_line_block: using document-wide weight %s for %s rows", weight, len(blocks))

    rows: list[RawRowTuple] = []
    for sequence_number, package_id, order_id in blocks:
        _append_row(rows, sequence_number, package_id, weight, order_id, weight_estimated=True)
    return rows


def loose_line_rows(text: NormalizedText) -> list[RawRowTuple]:
    """Most permissive scan: letters+digits ids and a weight anywhere on a line."""
    rows: list[RawRowTuple] = []
    for line in text.non_empty_lines():
        start = 0
        sequence_number = len(rows) + 1
        leading = _LEADING_SEQUENCE_RE.match(line)
        if leading:
            sequence_number = int(leading.group(1))
            start = leading.end()

        package = _LOOSE_PACKAGE_RE.search(line)
        weight = _LOOSE_WEIGHT_RE.search(line, start)
        if package is None or weight is None:
            continue

        package_id = normalize_identifier(package.group(0))
        order_id = next(
            (
                candidate.group(0)
                for candidate in _LOOSE_ORDER_RE.finditer(line)
                if normalize_identifier(candidate.group(0)) != package_id
            ),
            None,
        )
        if order_id is None:
            continue

        _append_row(rows, sequence_number, package_id, weight.group(1), order_id)
    return rows


def document_fallback_weight(text: NormalizedText) -> Decimal | None:
    """Pick one weight for the whole document.

    Prefers a standalone decimal token; otherwise takes the first
    decimal-looking substring anywhere, which may be part of the date.
    """
    for token in text.text.split():
        if _STANDALONE_DECIMAL_RE.match(token):
            value = parse_decimal(token)
            if value is not None and value > 0:
                return value

    for match in _ANY_DECIMAL_RE.finditer(text.text):
        value = parse_decimal(match.group(0))
        if value is not None and value > 0:
            return value
    return None


def _append_row(
    rows: list[RawRowTuple],
    sequence_number: int,
    package_id: str,
    weight: str | Decimal,
    order_id: str,
    weight_estimated: bool = False,
) -> None:
    weight_kg = weight if isinstance(weight, Decimal) else parse_decimal(weight)
    try:
        if weight_kg is None:
            raise InvalidRowTuple(f"unparseable weight {weight!r} in row {sequence_number}")
        row = validate_row(
            RawRowTuple(
                sequence_number=sequence_number,
                package_id=package_id,
                weight_kg=weight_kg,
                order_id=order_id,
                weight_estimated=weight_estimated,
            )
        )
    except InvalidRowTuple as exc:
        LOGGER.warning("Skipping row candidate: %s", exc)
        return
    rows.append(row)
    LOGGER.debug(
        "Row %s: package=%s weight=%s order=%s",
        row.sequence_number,
        row.package_id,
        row.weight_kg,
        row.order_id,
    )


STRATEGIES: tuple[RowStrategy, ...] = (
    RowStrategy("single_line", single_line_rows),
    RowStrategy("single_line_hyphenated", single_line_hyphenated_rows),
    RowStrategy("four_line_block", four_line_block_rows),
    RowStrategy("three_line_block", three_line_block_rows, low_confidence=True),
    RowStrategy("loose_line_scan", loose_line_rows),
)
