"""CLI entrypoint for the shipment manifest ingestion pipeline."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from errors import ExtractionError, MetadataMissing, NoRecordsRecovered
from ingestion import IngestionGate
from pipeline import extract_records
from record_store import RecordStore
from report import generate_document_report

# User-facing translations of the fatal document errors.
_FAILURE_MESSAGES: dict[type[ExtractionError], str] = {
    MetadataMissing: "could not read this document's date",
    NoRecordsRecovered: "could not find any rows in this document",
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Extract shipment records from manifest text dumps")
    parser.add_argument("paths", nargs="*", help="Text files extracted from manifest documents")
    parser.add_argument(
        "--mode",
        choices=["ingest", "sync", "report"],
        default="ingest",
        help=(
            "'ingest' (default): extract records from each file and store the new ones. "
            "'sync': publish pending records to the sheet CSV and mark them synced. "
            "'report': write the per-document summary CSV."
        ),
    )
    parser.add_argument(
        "--source-ref",
        default=None,
        help="Source reference to record (e.g. the document URL); defaults to the file path",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only log the records that would be extracted, without writing anything",
    )
    parser.add_argument("--db-path", default=None, help="Override SHIPMENT_DB_PATH")
    return parser.parse_args(argv)


def describe_failure(exc: ExtractionError) -> str:
    return _FAILURE_MESSAGES.get(type(exc), str(exc))


def run_ingest(paths: list[str], gate: IngestionGate | None, source_ref: str | None, dry_run: bool) -> int:
    """Process each document; returns the number of documents that failed."""
    failed = 0
    inserted = 0
    skipped = 0

    for raw_path in paths:
        path = Path(raw_path)
        ref = source_ref or str(path)

        try:
            raw_text = path.read_text(encoding="utf-8")
            if dry_run:
                result = extract_records(raw_text, ref)
                for record in result.records:
                    logging.info(
                        "[dry-run] %s #%s package=%s weight=%s order=%s",
                        ref,
                        record.sequence_number,
                        record.package_id,
                        record.weight_kg,
                        record.order_id,
                    )
                continue

            outcome = gate.ingest(raw_text, ref)
        except ExtractionError as exc:
            failed += 1
            logging.error("Failed processing %s: %s (%s)", ref, describe_failure(exc), exc)
            continue
        except (OSError, UnicodeDecodeError) as exc:
            failed += 1
            logging.error("Failed reading %s: %s", path, exc)
            continue

        if outcome.busy:
            logging.warning("Skipped %s: another ingestion is in progress", ref)
            continue
        inserted += outcome.inserted
        skipped += outcome.skipped_existing

    logging.info(
        "Run complete. documents=%s inserted=%s skipped=%s failed=%s",
        len(paths),
        inserted,
        skipped,
        failed,
    )
    return failed


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the selected mode."""
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    args = parse_args(argv)

    if args.mode == "ingest" and args.dry_run:
        return 1 if run_ingest(args.paths, None, args.source_ref, dry_run=True) else 0

    store = RecordStore(args.db_path)

    if args.mode == "sync":
        outcome = IngestionGate(store).sync()
        logging.info("Published %s of %s pending records", outcome.published, outcome.pending)
        return 0

    if args.mode == "report":
        generate_document_report(store.all_records())
        return 0

    if not args.paths:
        logging.error("No input files given")
        return 2
    return 1 if run_ingest(args.paths, IngestionGate(store), args.source_ref, dry_run=False) else 0


if __name__ == "__main__":
    sys.exit(main())
