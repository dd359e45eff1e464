"""Tests for the CLI entrypoint (main.main / main.run_ingest)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

import main
from errors import MetadataMissing, NoRecordsRecovered
from ingestion import IngestionOutcome
from record_store import RecordStore

DOC = "14.11.2025 13:06:30\nСдал: ACME Co\n1 ZM1 7.25 WB1\n2 ZM2 1.5 WB2\n"


@pytest.fixture()
def doc_path(tmp_path: Path) -> Path:
    path = tmp_path / "manifest.txt"
    path.write_text(DOC, encoding="utf-8")
    return path


@pytest.mark.parametrize("exc, message", [
    (MetadataMissing("x", "doc"), "could not read this document's date"),
    (NoRecordsRecovered("x", "doc"), "could not find any rows in this document"),
])
def test_describe_failure_translates_fatal_errors(exc, message: str) -> None:
    assert main.describe_failure(exc) == message


def test_ingest_mode_stores_records(doc_path: Path, tmp_path: Path) -> None:
    db = tmp_path / "cli.db"

    assert main.main([str(doc_path), "--db-path", str(db), "--source-ref", "https://example.com/a.pdf"]) == 0

    records = RecordStore(db).all_records()
    assert {r.package_id for r in records} == {"ZM1", "ZM2"}
    assert {r.source_ref for r in records} == {"https://example.com/a.pdf"}


def test_dry_run_writes_nothing(doc_path: Path, tmp_path: Path) -> None:
    with patch("main.RecordStore") as mock_store:
        assert main.main([str(doc_path), "--dry-run"]) == 0
    mock_store.assert_not_called()


def test_failed_document_does_not_stop_the_run(doc_path: Path, tmp_path: Path) -> None:
    bad = tmp_path / "bad.txt"
    bad.write_text("no date, no rows", encoding="utf-8")
    gate = MagicMock()
    gate.ingest.side_effect = [
        MetadataMissing("No transfer timestamp found in document", str(bad)),
        IngestionOutcome(source_ref=str(doc_path), parsed=2, inserted=2),
    ]

    failed = main.run_ingest([str(bad), str(doc_path)], gate, None, dry_run=False)

    assert failed == 1
    assert gate.ingest.call_count == 2


def test_unreadable_file_does_not_stop_the_run(doc_path: Path, tmp_path: Path) -> None:
    missing = tmp_path / "missing.txt"
    latin1 = tmp_path / "latin1.txt"
    latin1.write_bytes(b"14.11.2025\n1 ZM1 7.25 WB1 \xe9\xff\n")
    gate = MagicMock()
    gate.ingest.return_value = IngestionOutcome(source_ref=str(doc_path), parsed=2, inserted=2)

    failed = main.run_ingest([str(missing), str(latin1), str(doc_path)], gate, None, dry_run=False)

    assert failed == 2
    gate.ingest.assert_called_once()
    assert gate.ingest.call_args.args[1] == str(doc_path)


def test_busy_outcome_is_not_a_failure(doc_path: Path) -> None:
    gate = MagicMock()
    gate.ingest.return_value = IngestionOutcome(source_ref=str(doc_path), busy=True)

    assert main.run_ingest([str(doc_path)], gate, None, dry_run=False) == 0


def test_main_returns_nonzero_when_a_document_fails(tmp_path: Path) -> None:
    bad = tmp_path / "bad.txt"
    bad.write_text("no date here", encoding="utf-8")
    assert main.main([str(bad), "--db-path", str(tmp_path / "cli.db")]) == 1


def test_ingest_without_paths_is_usage_error(tmp_path: Path) -> None:
    assert main.main(["--db-path", str(tmp_path / "cli.db")]) == 2


def test_sync_and_report_modes(doc_path: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    db = str(tmp_path / "cli.db")
    sheet = tmp_path / "sheet.csv"
    report_path = tmp_path / "documents.csv"
    monkeypatch.setattr("csv_sink.SHEET_CSV_PATH", str(sheet))
    monkeypatch.setattr("report.DOCUMENT_REPORT_PATH", str(report_path))

    main.main([str(doc_path), "--db-path", db])
    assert main.main(["--mode", "sync", "--db-path", db]) == 0
    assert main.main(["--mode", "report", "--db-path", db]) == 0

    assert sheet.exists()
    assert report_path.exists()
    assert RecordStore(db).unsynced_records() == []
