"""Audio feeds — where the resolver reads candidate audio records from.

Audio is generated out of band, so the resolver asks a feed for the
current audio of a scene on every run.  A feed either returns the full
list or raises FeedUnavailableError; it never returns a partial list.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Protocol

from pydantic import ValidationError

from reelledger.assets.models import ContentAsset, ContentType
from reelledger.assets.store import LineageStore
from reelledger.audio.models import AudioRecord
from reelledger.errors import FeedUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_FEED_TIMEOUT = 10.0


class AudioFeed(Protocol):
    """Source of audio records for a scene."""

    def fetch(self, scene_id: str) -> list[AudioRecord]: ...


def record_from_asset(asset: ContentAsset) -> AudioRecord:
    """Project an audio ContentAsset onto the feed record shape."""
    return AudioRecord(
        asset_id=asset.id,
        scene_id=asset.scene_id,
        title=asset.title,
        url=asset.body,
        page_number=asset.page_number,
        metadata=dict(asset.metadata),
    )


class StoreAudioFeed:
    """Reads latest audio versions of a scene straight from the LineageStore."""

    def __init__(self, store: LineageStore) -> None:
        self.store = store

    def fetch(self, scene_id: str) -> list[AudioRecord]:
        assets = self.store.list(
            content_type=ContentType.AUDIO, scene_id=scene_id, latest_only=True
        )
        assets.sort(key=lambda a: (a.created_at, a.id))
        return [record_from_asset(a) for a in assets]


class HttpAudioFeed:
    """Client for a remote audio listing endpoint.

    Issues ``GET {url}?scene_id=<id>`` and expects
    ``{"audio": [{"asset_id": ..., "title": ..., "url": ...}, ...]}``.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_FEED_TIMEOUT,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Accept": "application/json", **(headers or {})}

    def _request(self, scene_id: str) -> dict:
        query = urllib.parse.urlencode({"scene_id": scene_id})
        req = urllib.request.Request(f"{self.url}?{query}", headers=self.headers)
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))

    def fetch(self, scene_id: str) -> list[AudioRecord]:
        try:
            data = self._request(scene_id)
        except (urllib.error.URLError, TimeoutError, OSError, ValueError) as exc:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            logger.warning("Audio feed unavailable for scene %s: %s", scene_id, exc)
            raise FeedUnavailableError(f"Audio feed unavailable: {exc}") from exc

        items = data.get("audio") if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.debug("Feed payload for scene %s has no audio list", scene_id)
            return []

        records: list[AudioRecord] = []
        for item in items:
            if not isinstance(item, dict) or not item.get("asset_id"):
                logger.debug("Skipping malformed feed item: %r", item)
                continue
            try:
                record = AudioRecord(
                    asset_id=str(item["asset_id"]),
                    scene_id=item.get("scene_id") or scene_id,
                    title=item.get("title") or "",
                    url=item.get("url") or "",
                    page_number=item.get("page_number"),
                    metadata=item.get("metadata") or {},
                )
            except ValidationError as exc:
                logger.debug("Skipping invalid feed item %s: %s", item.get("asset_id"), exc)
                continue
            records.append(record)
        return records
