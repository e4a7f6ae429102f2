"""Audio reconciliation models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class AudioRecord(BaseModel):
    """One audio asset as reported by an audio feed.

    ``page_number`` is kept raw: upstream producers emit ints, floats,
    or strings, and coercion happens during extraction.
    """

    asset_id: str
    scene_id: str | None = None
    title: str = ""
    url: str = ""
    page_number: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AudioRef(BaseModel):
    """An audio asset attached to a page in the index."""

    asset_id: str
    url: str
    title: str = ""


class ExtractionSource(StrEnum):
    """Where a page number was read from."""

    FIELD = "field"
    METADATA = "metadata"
    TITLE = "title"


class PageExtraction(BaseModel):
    """A page number extracted from an audio record, before validation."""

    page_number: int
    source: ExtractionSource


class ResolutionResult(BaseModel):
    """Outcome of resolving one scene's audio against its pages.

    ``page_numbers`` is the run's scope: ``None`` covers the whole scene,
    otherwise only the listed pages.  ``entries`` only holds pages that
    received at least one audio ref.
    """

    scene_id: str
    page_numbers: frozenset[int] | None = None
    entries: dict[int, list[AudioRef]] = Field(default_factory=dict)
    unresolved: list[str] = Field(default_factory=list)
    page_total: int = 0

    def in_scope(self, page_number: int) -> bool:
        return self.page_numbers is None or page_number in self.page_numbers

    @property
    def resolved_count(self) -> int:
        return sum(len(refs) for refs in self.entries.values())
