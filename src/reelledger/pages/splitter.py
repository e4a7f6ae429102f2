"""Deterministic pagination of script text.

A script body is split on ``"\\n"`` and cut into consecutive chunks of
exactly ``lines_per_page`` lines; the last chunk may be shorter.  Any
``"\\r"`` stays inside its line, so rejoining pages with ``"\\n"``
reproduces the input byte for byte.

Stored audio references point at page numbers produced here, so
``SCRIPT_LINES_PER_PAGE`` is fixed.  Changing it renumbers every page of
every script and needs its own migration.
"""

from __future__ import annotations

from collections.abc import Iterable

from reelledger.errors import InvalidArgumentError
from reelledger.pages.models import Page

SCRIPT_LINES_PER_PAGE = 55

_LINE_BREAK = "\n"


def _check_lines_per_page(lines_per_page: int) -> None:
    if isinstance(lines_per_page, bool) or not isinstance(lines_per_page, int):
        raise InvalidArgumentError(f"lines_per_page must be an int, got {lines_per_page!r}")
    if lines_per_page < 1:
        raise InvalidArgumentError(f"lines_per_page must be >= 1, got {lines_per_page}")


def split_pages(
    text: str,
    lines_per_page: int = SCRIPT_LINES_PER_PAGE,
    *,
    scene_id: str | None = None,
    source_asset_id: str | None = None,
) -> list[Page]:
    """Split ``text`` into pages of ``lines_per_page`` lines.

    Args:
        text: Script body. Empty text yields no pages.
        lines_per_page: Lines per page, at least 1.
        scene_id: Owning scene, copied onto every page.
        source_asset_id: Script asset the text came from.

    Returns:
        Pages ordered by ``page_number`` (1-based, contiguous).

    Raises:
        InvalidArgumentError: If ``lines_per_page`` is not a positive int.
    """
    _check_lines_per_page(lines_per_page)
    if not text:
        return []

    lines = text.split(_LINE_BREAK)
    pages: list[Page] = []
    for start in range(0, len(lines), lines_per_page):
        chunk = lines[start : start + lines_per_page]
        pages.append(
            Page(
                scene_id=scene_id,
                source_asset_id=source_asset_id,
                page_number=len(pages) + 1,
                content=_LINE_BREAK.join(chunk),
            )
        )
    return pages


def page_count(text: str, lines_per_page: int = SCRIPT_LINES_PER_PAGE) -> int:
    """Number of pages ``split_pages`` would produce."""
    _check_lines_per_page(lines_per_page)
    if not text:
        return 0
    line_count = text.count(_LINE_BREAK) + 1
    return -(-line_count // lines_per_page)


def join_pages(pages: Iterable[Page]) -> str:
    """Reassemble a body from pages, in page-number order."""
    ordered = sorted(pages, key=lambda p: p.page_number)
    return _LINE_BREAK.join(p.content for p in ordered)


def replace_page(
    text: str,
    page_number: int,
    content: str,
    lines_per_page: int = SCRIPT_LINES_PER_PAGE,
) -> str:
    """Return ``text`` with one page's content swapped for ``content``.

    The replacement may have more or fewer lines than the original page;
    later pages shift accordingly once the result is split again.

    Raises:
        InvalidArgumentError: If the page does not exist in ``text``.
    """
    pages = split_pages(text, lines_per_page)
    if not 1 <= page_number <= len(pages):
        raise InvalidArgumentError(
            f"Page {page_number} does not exist (body has {len(pages)} pages)"
        )
    edited = [
        p.model_copy(update={"content": content}) if p.page_number == page_number else p
        for p in pages
    ]
    return join_pages(edited)
