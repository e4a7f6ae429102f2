"""Stable, total ordering of scenes within a project."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime

from reelledger.pages.models import Scene

_SCENE_NUMBER_RE = re.compile(r"^(\d+)([A-Za-z])?")


def parse_scene_number(scene_number: str | None) -> float:
    """Turn a scene number like ``"12"`` or ``"12A"`` into a sort value.

    A trailing letter adds a tenth per position (A=0.1, B=0.2, ...), so
    inserted scenes such as 12A land between 12 and 13.  Blank or
    non-numeric values sort as 0.
    """
    if not scene_number or not scene_number.strip():
        return 0
    match = _SCENE_NUMBER_RE.match(scene_number.strip())
    if match is None:
        return 0
    value: float = int(match.group(1))
    if match.group(2):
        value += (ord(match.group(2).upper()) - 64) / 10
    return value


def scene_sort_key(scene: Scene) -> tuple[float, int, datetime, str]:
    """Scene number first, then order index, creation time, and id."""
    return (
        parse_scene_number(scene.scene_number),
        scene.order_index or 0,
        scene.created_at,
        scene.id,
    )


def sort_scenes(scenes: Iterable[Scene]) -> list[Scene]:
    """Return scenes in production order."""
    return sorted(scenes, key=scene_sort_key)
