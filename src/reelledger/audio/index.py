"""PageAudioIndex — (scene, page) → audio refs, merged run by run.

The index is derived data: it can always be rebuilt from the asset
store and the current pages.  Merges are scoped: a run replaces only the
pages it covered and leaves every other key alone, so a refresh of the
scene on screen never erases what was resolved for other scenes.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from pydantic import BaseModel, Field

from reelledger.audio.models import AudioRef, ResolutionResult

logger = logging.getLogger(__name__)

INDEX_FILENAME = ".reelledger-page-audio.json"


class _IndexEntry(BaseModel):
    scene_id: str
    page_number: int
    audio: list[AudioRef] = Field(default_factory=list)


class _IndexData(BaseModel):
    """Internal wrapper for JSON serialization."""

    entries: list[_IndexEntry] = Field(default_factory=list)


class PageAudioIndex:
    """Thread-safe mapping of ``(scene_id, page_number)`` to audio refs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[tuple[str, int], list[AudioRef]] = {}

    def lookup(self, scene_id: str, page_number: int) -> list[AudioRef]:
        """Audio refs for a page, or an empty list."""
        with self._lock:
            return [ref.model_copy() for ref in self._entries.get((scene_id, page_number), [])]

    def scene_entries(self, scene_id: str) -> dict[int, list[AudioRef]]:
        """All indexed pages of one scene."""
        with self._lock:
            return {
                page: [ref.model_copy() for ref in refs]
                for (sid, page), refs in sorted(self._entries.items())
                if sid == scene_id
            }

    def scenes(self) -> list[str]:
        with self._lock:
            return sorted({sid for sid, _ in self._entries})

    def merge(self, result: ResolutionResult) -> None:
        """Apply a resolution run, replacing only the pages in its scope.

        Each in-scope page's list is replaced wholesale; an in-scope page
        with no accepted audio is removed.  Keys of other scenes, and of
        out-of-scope pages of the same scene, are left as they were.
        """
        with self._lock:
            stale = [
                key
                for key in self._entries
                if key[0] == result.scene_id and result.in_scope(key[1])
            ]
            for key in stale:
                del self._entries[key]
            for page, refs in result.entries.items():
                if refs and result.in_scope(page):
                    self._entries[(result.scene_id, page)] = [r.model_copy() for r in refs]
        logger.debug(
            "Merged %d refs into scene %s (scope=%s)",
            result.resolved_count,
            result.scene_id,
            "all" if result.page_numbers is None else sorted(result.page_numbers),
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ── Persistence ──────────────────────────────────────────────

    def save(self, path: Path) -> None:
        """Write a JSON snapshot of the index."""
        with self._lock:
            data = _IndexData(
                entries=[
                    _IndexEntry(scene_id=sid, page_number=page, audio=refs)
                    for (sid, page), refs in sorted(self._entries.items())
                ]
            )
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(data.model_dump_json(indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> PageAudioIndex:
        """Read a snapshot written by ``save``; corrupt files yield an empty index."""
        index = cls()
        if not path.exists():
            return index
        try:
            data = _IndexData.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValueError, KeyError):
            logger.warning("Corrupt page-audio index at %s, starting fresh", path)
            return index
        for entry in data.entries:
            if entry.audio:
                index._entries[(entry.scene_id, entry.page_number)] = entry.audio
        return index
