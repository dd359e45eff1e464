"""Exception taxonomy for document extraction."""

from __future__ import annotations


class ExtractionError(RuntimeError):
    """A whole document could not be turned into records."""

    def __init__(self, message: str, source_ref: str = "") -> None:
        self.source_ref = source_ref
        super().__init__(f"{message} (source_ref={source_ref!r})" if source_ref else message)


class MetadataMissing(ExtractionError):
    """No transfer timestamp could be recovered from the document."""


class NoRecordsRecovered(ExtractionError):
    """Every row strategy was exhausted without producing a valid record."""


class InvalidRowTuple(ValueError):
    """A single candidate row failed validation; always handled by skipping it."""
