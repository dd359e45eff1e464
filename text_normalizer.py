"""Canonicalization of raw text extracted from manifest documents."""

from __future__ import annotations

import re

from models import NormalizedText

SOFT_HYPHEN = "\u00ad"

# Soft hyphen between two digits is a real separator inside ids like "710371844\u00ad1".
_NUMERIC_SOFT_HYPHEN_RE = re.compile("(?<=\\d)\u00ad(?=\\d)")
_INVISIBLE_RE = re.compile("[\u00ad\u200b\u200c\u200d\u2060\ufeff]")
_NBSP_RE = re.compile("[\u00a0\u2007\u202f]")
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
# Horizontal whitespace only; newlines have already been split out.
_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")


def normalize(raw_text: str | None) -> NormalizedText:
    """Return the canonical line sequence for raw extracted text.

    Line breaks are kept one-to-one (blank lines included) because several
    row strategies depend on physical line positions.
    """
    if not raw_text:
        return NormalizedText()

    text = _NUMERIC_SOFT_HYPHEN_RE.sub("-", raw_text)
    text = _INVISIBLE_RE.sub("", text)
    text = _NBSP_RE.sub(" ", text)

    lines = tuple(
        _HORIZONTAL_WS_RE.sub(" ", line).strip()
        for line in _LINE_BREAK_RE.split(text)
    )
    return NormalizedText(lines=lines)
