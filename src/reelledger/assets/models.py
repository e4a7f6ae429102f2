"""Asset domain models — pure Pydantic v2 data types.

Every generated artifact (script text, image, video, audio) is a
ContentAsset.  Assets that derive from one original creation event
share a ``lineage_root_id`` and form a lineage; exactly one member of a
non-empty lineage carries ``is_latest``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class ContentType(StrEnum):
    """Kind of generated content."""

    SCRIPT = "script"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class ContentAsset(BaseModel):
    """One generated artifact, one version of its lineage.

    Bodies are immutable once created; only ``is_latest`` and
    ``version_label`` change afterwards, and only those bump
    ``updated_at``.
    """

    id: str = Field(default_factory=_new_id)
    lineage_root_id: str = ""
    version: int = Field(default=1, ge=1)
    is_latest: bool = True
    version_label: str | None = None
    content_type: ContentType
    project_id: str | None = None
    scene_id: str | None = None
    page_number: int | None = None
    title: str = ""
    body: str = ""  # inline text for scripts, URL for media
    source_prompt: str | None = None
    generation_model: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _default_lineage_root(self) -> ContentAsset:
        """An asset with no recorded root is the root of its own lineage."""
        if not self.lineage_root_id:
            self.lineage_root_id = self.id
        return self

    @property
    def is_root(self) -> bool:
        return self.lineage_root_id == self.id


class Lineage(BaseModel):
    """All versions of one lineage, ascending by version."""

    root_id: str
    versions: list[ContentAsset] = Field(default_factory=list)

    @property
    def current(self) -> ContentAsset | None:
        """The member flagged latest (not necessarily the highest version)."""
        for asset in self.versions:
            if asset.is_latest:
                return asset
        return None

    @property
    def max_version(self) -> int:
        return max((a.version for a in self.versions), default=0)


class VersionComparison(BaseModel):
    """Two versions of the same lineage, side by side."""

    a: ContentAsset
    b: ContentAsset
