"""JSON-backed lineage store — the system of record for ContentAssets.

Persists every asset version in a single JSON file, loaded on init and
saved after every write.  All reads and writes go through one re-entrant
lock so the latest-flag flip, the insert of a new version, and the
promotion after a delete are each a single critical section followed by
one save.  Readers therefore see the state before or after a flip, never
a lineage with two latest members.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

from reelledger.assets.models import ContentAsset, ContentType
from reelledger.errors import ConflictError, InvalidArgumentError, NotFoundError

logger = logging.getLogger(__name__)

STORE_FILENAME = ".reelledger-assets.json"

# Alias to avoid shadowing by LineageStore.list method
_list = list


class _StoreData(BaseModel):
    """Internal wrapper for JSON serialization."""

    assets: list[ContentAsset] = Field(default_factory=list)


class LineageStore:
    """Lineage-aware CRUD store for content assets.

    Pass ``directory=None`` for a purely in-memory store (tests, scratch
    runs).  Returned assets are copies; mutate through the store only.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self._path = directory / STORE_FILENAME if directory is not None else None
        self._lock = threading.RLock()
        self._assets: dict[str, ContentAsset] = {}
        self._lineages: dict[str, list[str]] = {}
        for asset in self._load().assets:
            self._index(asset)

    # ── Private helpers ──────────────────────────────────────────

    def _load(self) -> _StoreData:
        if self._path is None or not self._path.exists():
            return _StoreData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _StoreData.model_validate(raw)
        except (json.JSONDecodeError, ValueError, KeyError):
            stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%S%f")
            quarantined = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
            os.replace(self._path, quarantined)
            logger.warning(
                "Corrupt asset store at %s, moved to %s and starting fresh",
                self._path,
                quarantined,
            )
            return _StoreData()

    def _save(self) -> None:
        """Write the store atomically via tmp-file + os.replace."""
        if self._path is None:
            return
        data = _StoreData(assets=_list(self._assets.values()))
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self._path.name, dir=str(self._path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data.model_dump_json(indent=2))
            os.replace(tmp, self._path)
        finally:
            Path(tmp).unlink(missing_ok=True)

    def _index(self, asset: ContentAsset) -> None:
        self._assets[asset.id] = asset
        self._lineages.setdefault(asset.lineage_root_id, []).append(asset.id)

    def _members(self, lineage_root_id: str) -> _list[ContentAsset]:
        ids = self._lineages.get(lineage_root_id, [])
        return sorted((self._assets[i] for i in ids), key=lambda a: a.version)

    def _latest(self, lineage_root_id: str) -> ContentAsset | None:
        for asset in self._members(lineage_root_id):
            if asset.is_latest:
                return asset
        return None

    def _require(self, asset_id: str) -> ContentAsset:
        asset = self._assets.get(asset_id)
        if asset is None:
            raise NotFoundError(f"Asset not found: {asset_id}")
        return asset

    # ── Write operations ─────────────────────────────────────────

    def insert_root(self, asset: ContentAsset) -> ContentAsset:
        """Insert the first version of a brand-new lineage."""
        if not asset.is_root or asset.version != 1 or not asset.is_latest:
            raise InvalidArgumentError(
                "A lineage root must be version 1, latest, and its own root"
            )
        with self._lock:
            if asset.id in self._assets or asset.lineage_root_id in self._lineages:
                raise InvalidArgumentError(f"Asset already exists: {asset.id}")
            self._index(asset.model_copy(deep=True))
            self._save()
        return asset.model_copy(deep=True)

    def commit_version(
        self, asset: ContentAsset, expected_latest_id: str
    ) -> ContentAsset:
        """Append a new latest version, retiring the previous latest.

        The write is conditional: it only applies when the lineage's
        current latest member is still ``expected_latest_id`` and the new
        version number directly follows the lineage maximum.  Otherwise
        raises ConflictError and leaves the lineage untouched.
        """
        root_id = asset.lineage_root_id
        with self._lock:
            if asset.id in self._assets:
                raise InvalidArgumentError(f"Asset already exists: {asset.id}")
            members = self._members(root_id)
            if not members:
                raise NotFoundError(f"Lineage not found: {root_id}")
            current = self._latest(root_id)
            current_id = current.id if current is not None else None
            max_version = members[-1].version
            if current_id != expected_latest_id or asset.version != max_version + 1:
                raise ConflictError(root_id, expected_latest_id, current_id)

            now = datetime.now(tz=UTC)
            if current is not None:
                current.is_latest = False
                current.updated_at = now
            stored = asset.model_copy(deep=True, update={"is_latest": True})
            self._index(stored)
            self._save()
        return stored.model_copy(deep=True)

    def delete(self, asset_id: str) -> ContentAsset | None:
        """Remove one version; promote the next-highest if it was latest.

        Returns the promoted asset, or None when nothing was promoted
        (the deleted row was not latest, or the lineage is now empty).
        """
        with self._lock:
            asset = self._require(asset_id)
            del self._assets[asset_id]
            root_id = asset.lineage_root_id
            remaining = [i for i in self._lineages[root_id] if i != asset_id]
            promoted: ContentAsset | None = None
            if remaining:
                self._lineages[root_id] = remaining
                if asset.is_latest:
                    promoted = max(
                        (self._assets[i] for i in remaining), key=lambda a: a.version
                    )
                    promoted.is_latest = True
                    promoted.updated_at = datetime.now(tz=UTC)
            else:
                del self._lineages[root_id]
            self._save()
        return promoted.model_copy(deep=True) if promoted is not None else None

    def set_label(self, asset_id: str, label: str | None) -> ContentAsset:
        """Update the display label of a version in place."""
        with self._lock:
            asset = self._require(asset_id)
            asset.version_label = label
            asset.updated_at = datetime.now(tz=UTC)
            self._save()
            return asset.model_copy(deep=True)

    # ── Read operations ──────────────────────────────────────────

    def get(self, asset_id: str) -> ContentAsset | None:
        """Return an asset by id, or None if not found."""
        with self._lock:
            asset = self._assets.get(asset_id)
            return asset.model_copy(deep=True) if asset is not None else None

    def versions(self, lineage_root_id: str) -> _list[ContentAsset]:
        """Return all versions of a lineage, ascending by version."""
        with self._lock:
            return [a.model_copy(deep=True) for a in self._members(lineage_root_id)]

    def latest(self, lineage_root_id: str) -> ContentAsset | None:
        """Return the latest member of a lineage, or None if empty."""
        with self._lock:
            asset = self._latest(lineage_root_id)
            return asset.model_copy(deep=True) if asset is not None else None

    def list(
        self,
        content_type: ContentType | None = None,
        project_id: str | None = None,
        scene_id: str | None = None,
        latest_only: bool = False,
    ) -> _list[ContentAsset]:
        """Return assets, optionally filtered by type, owner, and latest flag."""
        with self._lock:
            results = _list(self._assets.values())
            if content_type is not None:
                results = [a for a in results if a.content_type == content_type]
            if project_id is not None:
                results = [a for a in results if a.project_id == project_id]
            if scene_id is not None:
                results = [a for a in results if a.scene_id == scene_id]
            if latest_only:
                results = [a for a in results if a.is_latest]
            return [a.model_copy(deep=True) for a in results]

    def lineage_ids(self) -> _list[str]:
        """Return the root ids of all non-empty lineages."""
        with self._lock:
            return _list(self._lineages)

    def exists(self, asset_id: str) -> bool:
        """Check whether an asset with this id exists."""
        with self._lock:
            return asset_id in self._assets

    def __len__(self) -> int:
        with self._lock:
            return len(self._assets)
