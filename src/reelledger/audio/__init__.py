"""Audio domain — resolve generated audio onto script pages.

Extraction reads a page number from each audio record, the resolver
validates it against the scene's current pages, and the scheduler merges
run results into a scope-limited PageAudioIndex.
"""

from reelledger.audio.extraction import (
    TITLE_PATTERNS,
    coerce_page_number,
    extract_page_number,
    page_audio_title,
)
from reelledger.audio.feeds import AudioFeed, HttpAudioFeed, StoreAudioFeed
from reelledger.audio.index import PageAudioIndex
from reelledger.audio.models import AudioRecord, AudioRef, PageExtraction, ResolutionResult
from reelledger.audio.resolver import PageAudioResolver
from reelledger.audio.scheduler import (
    ReconciliationScheduler,
    RunOutcome,
    RunStatus,
    TriggerReason,
)

__all__ = [
    "AudioFeed",
    "AudioRecord",
    "AudioRef",
    "HttpAudioFeed",
    "PageAudioIndex",
    "PageAudioResolver",
    "PageExtraction",
    "ReconciliationScheduler",
    "ResolutionResult",
    "RunOutcome",
    "RunStatus",
    "StoreAudioFeed",
    "TITLE_PATTERNS",
    "TriggerReason",
    "coerce_page_number",
    "extract_page_number",
    "page_audio_title",
]
