from __future__ import annotations

from decimal import Decimal

import pytest

from models import RawRowTuple
from row_strategies import (
    STRATEGIES,
    document_fallback_weight,
    four_line_block_rows,
    loose_line_rows,
    single_line_hyphenated_rows,
    single_line_rows,
    three_line_block_rows,
)
from text_normalizer import normalize


def _keys(rows: list[RawRowTuple]) -> list[tuple[int, str, Decimal, str]]:
    return [(r.sequence_number, r.package_id, r.weight_kg, r.order_id) for r in rows]


def test_strategy_order_is_fixed() -> None:
    assert [s.name for s in STRATEGIES] == [
        "single_line",
        "single_line_hyphenated",
        "four_line_block",
        "three_line_block",
        "loose_line_scan",
    ]
    assert [s.name for s in STRATEGIES if s.low_confidence] == ["three_line_block"]


# ---------------------------------------------------------------------------
# 1. single line
# ---------------------------------------------------------------------------

def test_single_line_rows_parses_each_row() -> None:
    text = normalize(
        "14.11.2025 13:06:30\n"
        "1 ZMKZ0000001 7,25 WB123456789\n"
        "2 zmkz0000002 3.5 кг wb987654321\n"
        "Итого: 2"
    )
    assert _keys(single_line_rows(text)) == [
        (1, "ZMKZ0000001", Decimal("7.25"), "WB123456789"),
        (2, "ZMKZ0000002", Decimal("3.5"), "WB987654321"),
    ]


def test_single_line_rows_drops_zero_weight_but_keeps_others() -> None:
    text = normalize("1 ZM1 0 WB1\n2 ZM2 0,0 WB2\n3 ZM3 1.5 WB3")
    assert _keys(single_line_rows(text)) == [(3, "ZM3", Decimal("1.5"), "WB3")]


def test_single_line_rows_ignores_hyphenated_layout() -> None:
    assert single_line_rows(normalize("1 696166030-1 7.25 69616 6030")) == []


@pytest.mark.parametrize("line", ["1 ZM1 5 kg", "1 ZM1 5 КГ", "1 ZM1 5кг"])
def test_single_line_rows_never_reads_unit_as_order_id(line: str) -> None:
    assert single_line_rows(normalize(line)) == []


def test_single_line_rows_accepts_order_id_after_unit() -> None:
    assert _keys(single_line_rows(normalize("1 ZM1 5 kg KG7"))) == [(1, "ZM1", Decimal("5"), "KG7")]


# ---------------------------------------------------------------------------
# 2. single line, hyphenated package id
# ---------------------------------------------------------------------------

def test_hyphenated_rows_concatenate_order_parts() -> None:
    text = normalize("1 696166030-1 7.25 69616 6030\n2 696166030\u00ad2 2,5 69616 6030")
    assert _keys(single_line_hyphenated_rows(text)) == [
        (1, "696166030-1", Decimal("7.25"), "696166030"),
        (2, "696166030-2", Decimal("2.5"), "696166030"),
    ]


# ---------------------------------------------------------------------------
# 3. four-line blocks
# ---------------------------------------------------------------------------

def test_four_line_blocks_consume_non_overlapping_windows() -> None:
    text = normalize(
        "14.11.2025 13:06:30\n\nACME Co\n\n"
        "7.25\n\n1\n\n69616 6030\n\n696166030-1\n\n"
        "3,1\n2\n71037 1844\n710371844-1\n"
    )
    assert _keys(four_line_block_rows(text)) == [
        (1, "696166030-1", Decimal("7.25"), "696166030"),
        (2, "710371844-1", Decimal("3.1"), "710371844"),
    ]


def test_four_line_blocks_skip_unmatched_lines() -> None:
    text = normalize("garbage\n7.25\nnoise\n1.0\n1\n1 2\n1-2")
    assert _keys(four_line_block_rows(text)) == [(1, "1-2", Decimal("1.0"), "12")]


def test_four_line_blocks_need_all_four_lines() -> None:
    assert four_line_block_rows(normalize("1\n69616 6030\n696166030-1")) == []


# ---------------------------------------------------------------------------
# 4. three-line blocks with document-wide weight
# ---------------------------------------------------------------------------

def test_three_line_blocks_use_fallback_weight_and_flag_rows() -> None:
    text = normalize("Вес 12,5\n1\n69616 6030\n696166030-1\n2\n71037 1844\n710371844-1")
    rows = three_line_block_rows(text)
    assert _keys(rows) == [
        (1, "696166030-1", Decimal("12.5"), "696166030"),
        (2, "710371844-1", Decimal("12.5"), "710371844"),
    ]
    assert all(r.weight_estimated for r in rows)


def test_three_line_blocks_without_any_decimal_yield_nothing() -> None:
    assert three_line_block_rows(normalize("1\n69616 6030\n696166030-1")) == []


def test_fallback_weight_prefers_standalone_decimal() -> None:
    text = normalize("14.11.2025 13:06:30\nВес: 7,25")
    assert document_fallback_weight(text) == Decimal("7.25")


def test_fallback_weight_uses_first_decimal_substring_otherwise() -> None:
    text = normalize("14.11.2025 13:06:30\nACME Co")
    assert document_fallback_weight(text) == Decimal("14.11")


# ---------------------------------------------------------------------------
# 5. loose line scan
# ---------------------------------------------------------------------------

def test_loose_scan_extracts_tokens_anywhere_on_line() -> None:
    text = normalize("Место ZMKZ0000001 вес 7,25кг заказ WB123\n3 ZMKZ0000003 1.5 WB333 доп.")
    assert _keys(loose_line_rows(text)) == [
        (1, "ZMKZ0000001", Decimal("7.25"), "WB123"),
        (3, "ZMKZ0000003", Decimal("1.5"), "WB333"),
    ]


def test_loose_scan_order_must_differ_from_package() -> None:
    text = normalize("WB111 2.0 WB222\nWB555 3.0")
    assert _keys(loose_line_rows(text)) == [(1, "WB111", Decimal("2.0"), "WB222")]


def test_loose_scan_running_counter_follows_output_position() -> None:
    text = normalize("ZMA1 1.0 WB1\nno row here\nZMB2 2.0 WB2")
    assert [r.sequence_number for r in loose_line_rows(text)] == [1, 2]


def test_loose_scan_ignores_dates_and_times_as_weights() -> None:
    text = normalize("14.11.2025 13:06:30 ZM1 WB2")
    assert loose_line_rows(text) == []


@pytest.mark.parametrize("strategy", [s.extract for s in STRATEGIES])
def test_strategies_return_empty_for_empty_text(strategy) -> None:
    assert strategy(normalize("")) == []
