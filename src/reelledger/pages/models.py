"""Page and scene models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class Page(BaseModel):
    """A fixed-size slice of a script body, numbered from 1.

    Derived from the owning script asset, never persisted.
    """

    scene_id: str | None = None
    source_asset_id: str | None = None
    page_number: int = Field(ge=1)
    content: str


class Scene(BaseModel):
    """A scene under a project, as supplied by the production planner."""

    id: str
    project_id: str | None = None
    name: str = ""
    scene_number: str | None = None  # "12", "12A"
    order_index: int | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
