"""Document-level field recovery: transfer timestamp and submitting party."""

from __future__ import annotations

import logging
import re
from datetime import datetime

from errors import MetadataMissing
from models import DocumentMetadata

LOGGER = logging.getLogger(__name__)

# "14.11.2025 13:06:30" or bare "14.11.2025".
_TIMESTAMP_RE = re.compile(
    r"(?<!\d)(\d{1,2})\.(\d{1,2})\.(\d{4})(?!\d)"
    r"(?:\s+(\d{1,2}):(\d{1,2}):(\d{1,2})(?!\d))?"
)
_SUBMITTER_LABEL_RE = re.compile(r"Сдал:", re.IGNORECASE)
# Any following "<Label>:" field ends the submitter value.
_NEXT_LABEL_RE = re.compile(r"\s*(?<!\S)[^\W\d_]+:")
_PICKUP_POINT_RE = re.compile(r"\s*PickUp\s+Point", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")
# Table rows and block fields open with a number.
_ROW_START_RE = re.compile(r"^\d+(?:[.,]\d+)?(?:\s|$)")


def extract_transfer_timestamp(text: str) -> datetime | None:
    """Return the first valid day.month.year [h:m:s] timestamp in the text."""
    found = _find_timestamp(text)
    return found[0] if found else None


def _find_timestamp(text: str) -> tuple[datetime, re.Match[str]] | None:
    for match in _TIMESTAMP_RE.finditer(text):
        day, month, year, hour, minute, second = match.groups()
        try:
            date = datetime(int(year), int(month), int(day))
        except ValueError as exc:
            LOGGER.warning("Skipping invalid timestamp %r: %s", match.group(0), exc)
            continue
        if hour is None:
            return date, match

        try:
            return date.replace(hour=int(hour), minute=int(minute), second=int(second)), match
        except ValueError as exc:
            # Keep the date; an unreadable time counts as a missing one.
            LOGGER.warning("Ignoring invalid time in %r: %s", match.group(0), exc)
            return date, match
    return None


def extract_submitter(text: str) -> str:
    """Return the submitting party's name, or an empty string when absent.

    Tries the labeled "Сдал:" field first, then the first non-empty line
    below the transfer timestamp.
    """
    submitter = _labeled_submitter(text) or _line_after_timestamp(text)
    if not submitter:
        LOGGER.warning("Could not extract submitter from document")
    return submitter


def extract_metadata(text: str, source_ref: str = "") -> DocumentMetadata:
    """Recover document metadata; a missing timestamp fails the whole document."""
    transfer_timestamp = extract_transfer_timestamp(text)
    if transfer_timestamp is None:
        raise MetadataMissing("No transfer timestamp found in document", source_ref)
    return DocumentMetadata(
        transfer_timestamp=transfer_timestamp,
        submitted_by=extract_submitter(text),
    )


def _labeled_submitter(text: str) -> str:
    label = _SUBMITTER_LABEL_RE.search(text)
    if label is None:
        return ""

    # The value may wrap onto following lines; it ends at the next label,
    # a blank line, or a line that opens the date or the table.
    parts: list[str] = []
    for index, line in enumerate(text[label.end():].split("\n")):
        if not line.strip():
            if parts:
                break
            continue
        if index and _ends_submitter_value(line):
            break
        value = _cut_at_next_label(line)
        if value.strip():
            parts.append(value)
        if len(value) < len(line):
            break
    return _clean_submitter(" ".join(parts))


def _line_after_timestamp(text: str) -> str:
    found = _find_timestamp(text)
    if found is None:
        return ""

    _, match = found
    line_end = text.find("\n", match.end())
    if line_end == -1:
        return ""
    for line in text[line_end + 1:].split("\n"):
        if line.strip():
            return _clean_submitter(line)
    return ""


def _ends_submitter_value(line: str) -> bool:
    return bool(_TIMESTAMP_RE.search(line) or _ROW_START_RE.match(line.strip()))


def _cut_at_next_label(value: str) -> str:
    match = _NEXT_LABEL_RE.search(value)
    return value[: match.start()] if match else value


def _clean_submitter(value: str) -> str:
    value = _PICKUP_POINT_RE.split(value, maxsplit=1)[0]
    return _WS_RE.sub(" ", value).strip()
