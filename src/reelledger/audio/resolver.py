"""Page-audio resolution — map a scene's audio onto its script pages.

For each candidate audio record the resolver extracts a page number
(see ``reelledger.audio.extraction``), checks that the page exists in
the scene's current pagination, and groups the accepted refs by page.
Records that fail any step are skipped and counted, never raised; only
a failure of the feed as a whole aborts the run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from reelledger.assets.models import ContentType
from reelledger.assets.store import LineageStore
from reelledger.audio.extraction import extract_page_number
from reelledger.audio.feeds import AudioFeed
from reelledger.audio.index import PageAudioIndex
from reelledger.audio.models import AudioRef, ResolutionResult
from reelledger.pages.models import Page
from reelledger.pages.splitter import SCRIPT_LINES_PER_PAGE, split_pages

logger = logging.getLogger(__name__)


class PageAudioResolver:
    """Resolves audio records against the latest script of a scene."""

    def __init__(
        self,
        store: LineageStore,
        feed: AudioFeed,
        lines_per_page: int = SCRIPT_LINES_PER_PAGE,
    ) -> None:
        self.store = store
        self.feed = feed
        self.lines_per_page = lines_per_page

    def pages_for_scene(self, scene_id: str) -> list[Page]:
        """Current pages of the scene's most recent latest script asset."""
        scripts = self.store.list(
            content_type=ContentType.SCRIPT, scene_id=scene_id, latest_only=True
        )
        if not scripts:
            return []
        script = max(scripts, key=lambda a: a.created_at)
        return split_pages(
            script.body,
            self.lines_per_page,
            scene_id=scene_id,
            source_asset_id=script.id,
        )

    def resolve(
        self,
        scene_id: str,
        page_numbers: Iterable[int] | None = None,
    ) -> ResolutionResult:
        """Resolve the scene's audio, limited to ``page_numbers`` if given.

        Raises:
            FeedUnavailableError: If the feed cannot be read.
        """
        scope = frozenset(page_numbers) if page_numbers is not None else None
        records = self.feed.fetch(scene_id)
        pages = self.pages_for_scene(scene_id)
        valid_pages = {p.page_number for p in pages}

        result = ResolutionResult(scene_id=scene_id, page_numbers=scope, page_total=len(pages))
        for record in records:
            if record.scene_id is not None and record.scene_id != scene_id:
                logger.debug(
                    "Audio %s belongs to scene %s, skipping", record.asset_id, record.scene_id
                )
                continue
            extraction = extract_page_number(record)
            if extraction is None:
                logger.debug("No page number for audio %s (%r)", record.asset_id, record.title)
                result.unresolved.append(record.asset_id)
                continue
            page = extraction.page_number
            if page not in valid_pages:
                logger.debug(
                    "Audio %s points at page %d, scene %s has %d pages",
                    record.asset_id,
                    page,
                    scene_id,
                    len(pages),
                )
                result.unresolved.append(record.asset_id)
                continue
            if not result.in_scope(page):
                continue
            result.entries.setdefault(page, []).append(
                AudioRef(asset_id=record.asset_id, url=record.url, title=record.title)
            )
        return result

    def run(
        self,
        scene_id: str,
        index: PageAudioIndex,
        page_numbers: Iterable[int] | None = None,
    ) -> ResolutionResult:
        """Resolve and merge into ``index`` in one step.

        On feed failure the exception propagates and ``index`` is not
        touched.
        """
        result = self.resolve(scene_id, page_numbers)
        index.merge(result)
        logger.info(
            "Resolved %d audio refs across %d pages of scene %s (%d unresolved)",
            result.resolved_count,
            len(result.entries),
            scene_id,
            len(result.unresolved),
        )
        return result
