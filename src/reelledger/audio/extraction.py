"""Page-number extraction for audio records.

Precedence is fixed: an explicit page field, then page keys in the
producer metadata, then the title patterns in ``TITLE_PATTERNS`` in
order.  New title conventions are appended to that tuple; nothing else
in the resolver depends on how a number was found.
"""

from __future__ import annotations

import re
from typing import Any

from reelledger.audio.models import AudioRecord, ExtractionSource, PageExtraction

METADATA_PAGE_KEYS = ("pageNumber", "page_number")

TITLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"scene[\s_]+page[\s_]+(\d+)", re.IGNORECASE),
    re.compile(r"page[\s_]+(\d+)", re.IGNORECASE),
)

_INT_RE = re.compile(r"^[+]?\d+$")


def page_audio_title(page_number: int) -> str:
    """Title producers give to narration of one script page."""
    return f"Scene Page {page_number} Audio"


def coerce_page_number(value: Any) -> int | None:
    """Parse an upstream page value into an int, or None if it is not one.

    Accepts ints, integral floats, and digit strings (surrounding
    whitespace allowed).  Booleans, fractions, and anything else are
    rejected rather than cast.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        return int(text) if _INT_RE.match(text) else None
    return None


def page_from_title(title: str) -> int | None:
    """First page number captured by the ordered title patterns."""
    for pattern in TITLE_PATTERNS:
        match = pattern.search(title or "")
        if match is None:
            continue
        page = coerce_page_number(match.group(1))
        if page is not None:
            return page
    return None


def extract_page_number(record: AudioRecord) -> PageExtraction | None:
    """Find the page an audio record narrates, without validating it.

    Returns None when no source yields an integer; that is an expected
    outcome for audio that is not page narration.
    """
    page = coerce_page_number(record.page_number)
    if page is not None:
        return PageExtraction(page_number=page, source=ExtractionSource.FIELD)

    for key in METADATA_PAGE_KEYS:
        page = coerce_page_number(record.metadata.get(key))
        if page is not None:
            return PageExtraction(page_number=page, source=ExtractionSource.METADATA)

    page = page_from_title(record.title)
    if page is not None:
        return PageExtraction(page_number=page, source=ExtractionSource.TITLE)
    return None
